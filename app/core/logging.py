"""
Centralized logging configuration.

Modules log through `logging.getLogger(__name__)`; this only installs the
root handler once at startup.
"""
import logging
import sys
from typing import Optional

from app.core.config import Settings, settings


def setup_logging(config: Optional[Settings] = None) -> None:
    config = config or settings
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
