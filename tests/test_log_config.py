from __future__ import annotations

import logging
from pathlib import Path

import pytest

from ad_directory import log_config
from ad_directory.env_settings import EnvSettings


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def test_setup_logging_replaces_own_handlers(restore_root_logger, tmp_path: Path) -> None:
    root = restore_root_logger
    before = len(root.handlers)

    log_config.setup_logging("debug", log_dir=str(tmp_path))
    log_config.setup_logging("warning", log_dir=str(tmp_path))

    assert len(root.handlers) == before + 2
    assert root.level == logging.WARNING
    assert logging.getLogger("ldap3").level == logging.WARNING
    assert (tmp_path / "ad_directory.log").exists()


def test_unknown_level_falls_back_to_info(restore_root_logger) -> None:
    log_config.setup_logging("chatty")
    assert restore_root_logger.level == logging.INFO


def test_setup_logging_from_env(restore_root_logger, tmp_path: Path) -> None:
    env = EnvSettings(LOG_LEVEL="error", LOG_DIR=str(tmp_path / "logs"))

    log_config.setup_logging_from_env(env)

    assert restore_root_logger.level == logging.ERROR
    assert (tmp_path / "logs" / "ad_directory.log").exists()
