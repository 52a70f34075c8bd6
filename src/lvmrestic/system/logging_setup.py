# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/system/logging_setup.py

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logging(local_log: Optional[Path] = None, verbose: bool = False,
                  repo_name: Optional[str] = None) -> None:
    """Setup loguru logging for the entire application.

    Configures:
    - Console output: WARNING+ (INFO+ with verbose)
    - File output: DEBUG+ if local_log is configured
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level="INFO" if verbose else "WARNING",
        format="<level>{level}</level>: {message}",
        colorize=True
    )

    if not local_log:
        return

    try:
        log_dir = Path(local_log)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"lvmrestic-{repo_name or 'global'}.log"

        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="30 days",
            compression="gz"
        )
        logger.debug(f"File logging enabled: {log_file}")

    except OSError as e:
        # Backups still run without the debug log
        logger.warning(f"Failed to setup file logging: {e}")
