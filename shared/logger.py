import logging
import sys

from shared.config import Settings
from shared.constants import LOG_FORMAT

_configured = False


def configure_logging(settings: Settings | None = None, force: bool = False) -> None:
    """Configure root logging from settings.log_level"""
    global _configured
    if _configured and not force:
        return

    settings = settings or Settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=force,
    )
    # uvicorn access logs are noisy at DEBUG
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))
    _configured = True

