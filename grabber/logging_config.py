"""
Logging setup for the command line: console output plus an optional log file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
) -> Optional[Path]:
    """
    Configure the root logger.

    Args:
        log_level: console level (DEBUG, INFO, WARNING, ERROR)
        log_dir: directory for a DEBUG-level log file; no file when None
        log_file: file name inside log_dir (timestamped by default)

    Returns:
        Path of the log file, if one was opened.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if log_dir else level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO
    for name in ("asyncio", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    if log_file is None:
        log_file = f"grabber_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    log_path = log_dir / log_file
    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.info("Log file: %s", log_path.absolute())
    return log_path
