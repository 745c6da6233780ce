import logging
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the API process."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # uvicorn --reload re-imports the app; don't stack handlers
    if any(getattr(h, "_criseo", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._criseo = True
    root.addHandler(handler)
