"""Injectable tuning values for the feed engine.

Every engine entry point takes an optional ``EngineConfig``. When it is
omitted the engine calls ``EngineConfig.from_settings()``, which reads the
environment constants from ``common_settings`` and then overlays the YAML
file named by ``FEED_ENGINE_CONFIG_PATH`` (if any).
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator

from proposals_feed.config import common_settings

logger = logging.getLogger(__name__)


class EngineConfig(BaseModel):
    """Thresholds and environment knobs used by the engine."""

    min_visible_width_percent: float = Field(1.0, ge=0)
    accumulate_voting_power_threshold: float = Field(50000, gt=0)
    voting_power_tiers: Dict[str, float] = Field(
        default_factory=lambda: {"50k": 50000, "500k": 500000, "5m": 5000000}
    )
    timezone: Optional[str] = None  # None means host-local
    cache_ttl_minutes: int = Field(5, ge=0)

    model_config = {"frozen": True}

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{value}'") from e
        return value

    def tzinfo(self) -> Optional[ZoneInfo]:
        """Zone used for daily bucketing, or None for host-local."""
        return ZoneInfo(self.timezone) if self.timezone else None

    @classmethod
    def from_settings(cls, config_path: Optional[str] = None) -> "EngineConfig":
        """Build the config from environment settings plus an optional YAML overlay."""
        values: Dict[str, Any] = {
            "min_visible_width_percent": common_settings.FEED_MIN_VISIBLE_WIDTH_PERCENT,
            "accumulate_voting_power_threshold": common_settings.FEED_ACCUMULATE_VOTING_POWER_THRESHOLD,
            "timezone": common_settings.FEED_TIMEZONE,
            "cache_ttl_minutes": common_settings.FEED_CACHE_TTL_MINUTES,
        }
        path = config_path or common_settings.FEED_ENGINE_CONFIG_PATH
        if path:
            values.update(_load_yaml_overrides(Path(path)))
        return cls(**values)


def _load_yaml_overrides(path: Path) -> Dict[str, Any]:
    """Load engine overrides from a YAML mapping."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Engine configuration file not found at {path}.")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Engine configuration at {path} must be a mapping")

    logger.info(f"Loaded engine overrides from {path}: {sorted(data)}")
    return data


def resolve_config(config: Optional[EngineConfig]) -> EngineConfig:
    return config if config is not None else EngineConfig.from_settings()
