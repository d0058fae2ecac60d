"""Process-wide logger access.

``get_logger`` falls back to a plain-text basic config when nothing has set up
the JSON handler yet (scripts, tests).
"""

from __future__ import annotations

import logging

_configured = False


def get_logger(name: str, auto_configure: bool = True) -> logging.Logger:
    global _configured

    if auto_configure and not _configured:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        _configured = True

    return logging.getLogger(name)


def is_configured() -> bool:
    return _configured


def mark_configured():
    """Called by shared.logging.json.configure_logging."""
    global _configured
    _configured = True
