import pytest

from ..config.engine_config import EngineConfig


@pytest.fixture
def config():
    """Engine config pinned to UTC so day buckets don't depend on the host."""
    return EngineConfig(timezone="UTC")
