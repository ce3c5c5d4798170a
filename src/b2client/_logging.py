from __future__ import annotations

import logging
import os

logger = logging.getLogger("b2client")


def _debug_enabled_from_env() -> bool:
    debug_env = os.getenv("DEBUG", "")
    return "b2" in debug_env.split(",") or debug_env == "*"


def configure_from_env() -> None:
    """Attach a stderr handler when ``DEBUG`` names ``b2`` (e.g. ``DEBUG=b2``)."""
    if not _debug_enabled_from_env():
        return
    if any(getattr(h, "_b2client_debug", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("b2client: %(name)s %(message)s"))
    handler._b2client_debug = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)


logger.addHandler(logging.NullHandler())
