from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from operatorkit.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    module_levels = {name: logging.getLogger(name).level for name in MODULE_LOG_LEVELS}
    yield
    ours = {SIMPLE_FORMAT, DETAILED_FORMAT, JSON_FORMAT}
    for handler in root.handlers[:]:
        if handler.formatter is not None and handler.formatter._fmt in ours:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    for name, lvl in module_levels.items():
        logging.getLogger(name).setLevel(lvl)


@pytest.mark.parametrize("fmt,expected", [("simple", SIMPLE_FORMAT), ("json", JSON_FORMAT), ("detailed", DETAILED_FORMAT)])
def test_console_handler_uses_requested_format(fmt: str, expected: str) -> None:
    setup_logging(log_level="warning", log_format=fmt, enable_file=False)

    root = logging.getLogger()
    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert handler.level == logging.WARNING
    assert handler.formatter is not None and handler.formatter._fmt == expected


def test_setup_is_idempotent() -> None:
    setup_logging(log_level="INFO", log_format="simple", enable_file=False)
    setup_logging(log_level="INFO", log_format="simple", enable_file=False)
    assert len(logging.getLogger().handlers) == 1


def test_module_levels_are_applied() -> None:
    setup_logging(log_level="INFO", log_format="simple", enable_file=False)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("operatorkit.governance.approval").level == logging.DEBUG


def test_file_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "operatorkit.core.logging_config._get_logging_config",
        lambda: {
            "log_level": "INFO",
            "log_format": "simple",
            "log_file_dir": str(tmp_path / "logs"),
            "enable_file_logging": True,
        },
    )

    setup_logging()

    root = logging.getLogger()
    file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert (tmp_path / "logs" / "operatorkit.log").exists()


def test_get_logger_returns_named_logger() -> None:
    assert get_logger("operatorkit.governance.service").name == "operatorkit.governance.service"
