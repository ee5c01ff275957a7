import logging
import sys
from logging import StreamHandler

from rsvp_automation.config.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO, which includes Twilio account paths
    logging.getLogger("httpx").setLevel(logging.WARNING)
