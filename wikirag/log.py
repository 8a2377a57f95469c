"""Logging setup shared by the API and the CLI."""

from __future__ import annotations

import logging

from wikirag.config import settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the ``wikirag`` logger.

    Safe to call more than once; later calls only adjust the level.
    """
    logger = logging.getLogger("wikirag")
    logger.setLevel((level or settings.log_level).upper())
    if not any(getattr(h, "_wikirag", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._wikirag = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
