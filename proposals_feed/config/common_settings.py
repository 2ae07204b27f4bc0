import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

# --------------------------------------------------
# Vote Segment Configuration
# --------------------------------------------------
# A single vote must cover at least this share (in percent) of the total
# voting power to get its own segment in the feed vote bar
FEED_MIN_VISIBLE_WIDTH_PERCENT = float(os.environ.get("FEED_MIN_VISIBLE_WIDTH_PERCENT", "1"))

# Votes below this voting power are accumulated into time series points and
# aggregated feed votes instead of being reported one by one
FEED_ACCUMULATE_VOTING_POWER_THRESHOLD = float(
    os.environ.get("FEED_ACCUMULATE_VOTING_POWER_THRESHOLD", "50000")
)

# --------------------------------------------------
# Timeline Configuration
# --------------------------------------------------
# IANA timezone used to cut votes and posts into calendar days.
# Leave unset to use the host's local timezone.
FEED_TIMEZONE = os.environ.get("FEED_TIMEZONE") or None

# --------------------------------------------------
# Cache Configuration
# --------------------------------------------------
FEED_CACHE_TTL_MINUTES = int(os.environ.get("FEED_CACHE_TTL_MINUTES", "5"))

# --------------------------------------------------
# Engine Overrides
# --------------------------------------------------
# Optional YAML file whose keys override EngineConfig fields
FEED_ENGINE_CONFIG_PATH = os.environ.get("FEED_ENGINE_CONFIG_PATH") or None

# --------------------------------------------------
# Logging Configuration
# --------------------------------------------------
FEED_LOG_LEVEL = os.environ.get("FEED_LOG_LEVEL", "INFO").upper()
