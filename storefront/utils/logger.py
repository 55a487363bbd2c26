"""Logging for the storefront processes.

The API, the scheduler and the one-off CLI jobs run as separate processes
against the same database. Each one tags its records with a component name
and writes its own rotating file next to the configured one, so two
processes never rotate the same file.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import Config, get_config

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[component]} | {name}:{line} - {message}"
)


def component_log_file(log_file: str, component: str) -> Path:
    """``data/logs/storefront.log`` becomes ``data/logs/storefront-api.log``"""
    path = Path(log_file)
    return path.with_name(f"{path.stem}-{component}{path.suffix or '.log'}")


def setup_logging(
    component: str = "storefront",
    config: Optional[Config] = None,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> Optional[Path]:
    """Configure loguru sinks for one storefront process.

    Args:
        component: Process name bound to every record (api, scheduler, ...)
        config: Configuration; the global one when omitted
        log_level: Overrides ``logging.level``
        log_file: Overrides ``logging.file``; empty string disables the file sink

    Returns:
        Path of the file sink, or None when logging to the console only
    """
    logging_config = (config or get_config()).logging
    log_level = log_level or logging_config.level
    if log_file is None:
        log_file = logging_config.file

    logger.remove()
    logger.configure(extra={"component": component})
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    path = None
    if log_file:
        path = component_log_file(log_file, component)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            format=FILE_FORMAT,
            level=log_level,
            rotation=logging_config.rotation,
            retention=logging_config.retention,
            compression="zip",
        )

    logger.info(f"Logging initialized for {component} at {log_level} level")
    return path
