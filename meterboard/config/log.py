"""
Console logging setup.
"""

import logging
import sys
from typing import Union

from rich.logging import RichHandler


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Route meterboard loggers through Rich on a TTY, plain stderr otherwise."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.WARNING

    if sys.stderr.isatty():
        handler: logging.Handler = RichHandler(rich_tracebacks=True, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logger = logging.getLogger("meterboard")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
