"""
Logging configuration for command line use.

Library modules only create loggers with logging.getLogger(__name__); this
module attaches handlers to the root logger and is called once at startup.
"""

import logging
from pathlib import Path
from typing import Optional, Union


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None
) -> Optional[Path]:
    """
    Configure the root logger with a stderr handler and an optional file handler.

    Args:
        level: Minimum log level, as a number or a level name
        log_file: Optional path of a log file (parent directories are created)

    Returns:
        Path to the log file, or None if logging only to stderr
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if log_file is None:
        return None

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    return log_path
