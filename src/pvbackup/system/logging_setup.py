# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/system/logging_setup.py

import sys
from pathlib import Path

from loguru import logger


def console_level(verbose: bool = False, debug: bool = False) -> str:
    if debug:
        return "TRACE"
    if verbose:
        return "DEBUG"
    return "INFO"


def setup_logging(verbose: bool = False, debug: bool = False, log_file: Path | None = None) -> None:
    """Setup loguru logging for the entire application.

    Configures:
    - Console output: INFO+ (DEBUG+ with verbose, TRACE+ with debug)
    - File output: DEBUG+ if a log file is configured
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=console_level(verbose, debug),
        format="<level>{level}</level>: {message}",
        colorize=True
    )

    if log_file is None:
        return

    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="30 days",
            compression="gz"
        )
        logger.debug(f"File logging enabled: {log_path}")
    except OSError as e:
        # A broken log destination must not stop a backup
        logger.warning(f"Failed to setup file logging: {e}")
