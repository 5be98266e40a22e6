"""
log_setup.py
PURPOSE: Configure process-wide logging for the acquisition controller
"""

import logging
import logging.handlers
import os

LOG_FORMAT = '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s'


def setup_logging(level="INFO", log_folder=None, filename="scpi_daq.log"):
    """
    Send log records to the console and, optionally, a rotating file.

    Args:
        level: Level name or number for the root logger
        log_folder: Directory for the log file; None disables file logging
        filename: Log file name inside log_folder

    Returns:
        Path of the log file, or None
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers = [logging.StreamHandler()]
    log_path = None
    if log_folder:
        os.makedirs(log_folder, exist_ok=True)
        log_path = os.path.join(log_folder, filename)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_path, maxBytes=5 * 1024 * 1024, backupCount=3))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return log_path
