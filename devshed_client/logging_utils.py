from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    resolved = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=resolved,
        format=_LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    logging.getLogger("urllib3").setLevel(max(logging.INFO, resolved))
