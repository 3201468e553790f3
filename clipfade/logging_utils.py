"""Root logging setup for the ``clipfade`` command line."""

import logging
import os

_CONFIGURED = False


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once.

    Args:
        level: Optional log level name (e.g. "INFO", "DEBUG"). If omitted,
               reads LOG_LEVEL env, else WARNING: the CLI already prints merge
               progress, so engine commands (DEBUG) and completions (INFO)
               only show when asked for.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (level or os.getenv("LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _CONFIGURED = True
