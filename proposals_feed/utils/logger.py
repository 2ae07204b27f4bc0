import logging

from proposals_feed.config.common_settings import FEED_LOG_LEVEL

# Set up Python logging
logger = logging.getLogger("proposals-feed")
logger.setLevel(getattr(logging, FEED_LOG_LEVEL, logging.INFO))
logger.propagate = False  # Prevent duplicate logging from the host application's root handler

# Configure logging handler/format only if no handlers present
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s - [%(levelname)s] - %(name)s - %(funcName)s() - %(message)s"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
