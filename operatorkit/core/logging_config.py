"""
Logging Configuration Module.

This module provides centralized logging configuration for OperatorKit.
It sets up logging with different levels for different modules.

Features:
- Configurable log levels per module
- Console and optional file logging
- Simple, detailed or JSON-shaped line formats
"""

import logging
import os
from pathlib import Path
from typing import Optional


def _get_logging_config():
    """Get logging configuration from settings model.

    The settings import is deferred to avoid circular imports during module
    initialization.
    """
    try:
        from operatorkit.core.config import settings

        cfg = settings.logging
        return {
            "log_level": cfg.level.upper(),
            "log_format": cfg.format,
            "log_file_dir": cfg.file_dir,
            "enable_file_logging": cfg.enable_file,
        }
    except Exception:
        # Fallback to environment variables if settings not available
        return {
            "log_level": os.getenv("OPERATORKIT_LOG_LEVEL", "INFO").upper(),
            "log_format": os.getenv("OPERATORKIT_LOG_FORMAT", "detailed"),
            "log_file_dir": os.getenv("OPERATORKIT_LOG_FILE_DIR", "logs"),
            "enable_file_logging": os.getenv("OPERATORKIT_ENABLE_FILE_LOGGING", "false").lower()
            in ("true", "1", "yes"),
        }


SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

# Module-specific log levels
MODULE_LOG_LEVELS = {
    "operatorkit.governance": "INFO",
    "operatorkit.governance.approval": "DEBUG",
    "operatorkit.governance.evidence": "INFO",
    "operatorkit.governance.skills": "DEBUG",
    "operatorkit.governance.entitlements": "INFO",
    "operatorkit.governance.repos": "INFO",
    "operatorkit.governance.service": "DEBUG",
    # Third-party libraries (reduce noise)
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "aiosqlite": "WARNING",
    "httpx": "WARNING",
    "asyncio": "WARNING",
}


def _format_for(name: str) -> str:
    if name == "json":
        return JSON_FORMAT
    if name == "simple":
        return SIMPLE_FORMAT
    return DETAILED_FORMAT


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
) -> None:
    """
    Configure logging for the application.

    Unlike a library import, this is called explicitly by the composition root
    (``operatorkit.governance.factory``) so that embedding applications keep
    control over the root logger.

    Args:
        log_level: Override default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Override default format (simple, detailed, json)
        enable_file: Whether to enable file logging
    """
    cfg = _get_logging_config()
    level = (log_level or cfg["log_level"]).upper()
    fmt = log_format or cfg["log_format"]
    to_file = cfg["enable_file_logging"] if enable_file is None else enable_file

    formatter = logging.Formatter(_format_for(fmt), datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels, filter at handler level

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if to_file:
        log_dir = Path(cfg["log_file_dir"])
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "operatorkit.log")
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={to_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The module name (typically __name__)

    Returns:
        A configured logger instance
    """
    return logging.getLogger(name)
