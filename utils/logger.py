import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from core.default_config import DEFAULT_CONFIG

__all__ = ["setup_logger"]


def _get_log_level(level: Optional[Union[int, str]]) -> int:
    """Convert a log level string or int into the logging module constant."""
    if isinstance(level, int):
        return level

    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)

    return logging.INFO


def setup_logger(
    name: str,
    *,
    config: Optional[Mapping[str, Any]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[Union[int, str]] = None,
) -> logging.Logger:
    """
    Configure and return a logger that writes to both console and a daily log file.

    Args:
        name: Logger name.
        config: Effective configuration; built-in defaults are used when omitted.
        log_dir: Directory to store log files. Defaults to config paths.log_dir.
        level: Desired log level; falls back to config logging.level or INFO.
    """
    config = config or DEFAULT_CONFIG
    resolved_dir = Path(log_dir or config.get("paths", {}).get("log_dir", "data/logs"))
    resolved_dir.mkdir(parents=True, exist_ok=True)

    level_name = level or config.get("logging", {}).get("level", "INFO")
    resolved_level = _get_log_level(level_name)

    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)

    if logger.handlers:
        return logger

    log_file = resolved_dir / f"{datetime.now().strftime('%Y%m%d')}.log"
    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s")

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(resolved_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
