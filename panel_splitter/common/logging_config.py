"""
Logging setup for the command line entry point.

Library modules only create named loggers; handlers are attached here,
once, so repeated calls never duplicate output.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from .config import settings

_configured = False

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger (idempotent)

    Args:
        log_level: Level name, defaults to settings.log_level
        log_file: Optional log file, defaults to settings.log_file

    Returns:
        The configured root logger
    """
    global _configured

    root = logging.getLogger()
    level = (log_level or settings.log_level).upper()
    root.setLevel(level)

    if _configured:
        return root

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    target = log_file or settings.log_file
    if target:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet noisy libraries
    for name in ("shapely", "rtree"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.captureWarnings(True)
    _configured = True
    return root
