"""Process-wide logging bootstrap shared by the API and the scripts."""

from __future__ import annotations

import logging
from typing import Optional

from relgraph.config import settings


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    # the Bolt driver is chatty at INFO
    logging.getLogger("neo4j").setLevel(logging.WARNING)
