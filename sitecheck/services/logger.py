import logging
from typing import Optional

LOG_FORMAT = "[SITECHECK] %(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install the process-wide log format. Safe to call more than once."""
    if level is None:
        from ..settings import get_settings
        level = get_settings().LOG_LEVEL
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
