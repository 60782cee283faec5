from __future__ import annotations

import logging


def setup_logging(level: str = "INFO") -> None:
    """Route bus records to stderr for hosts that have no logging of their own.

    Unknown level names fall back to INFO.
    """

    # Drop existing root handlers so a second bootstrap replaces the format
    # instead of silently keeping the first one.
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)8s | %(name)s | %(message)s",
    )
