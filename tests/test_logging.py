import logging

import pytest

from messyroute.infra.logging import get_current_log_path, get_logger, init_logging, log_banner


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_init_logging_writes_to_explicit_file(restore_root, tmp_path):
    target = tmp_path / "nested" / "run.log"
    init_logging(level="DEBUG", force=False, log_file=target)
    log = get_logger("messyroute.tests")
    log_banner(log, "hello banner", char="-", width=10)

    assert get_current_log_path() == target.resolve()
    for handler in restore_root.handlers:
        handler.flush()
    text = target.read_text(encoding="utf-8")
    assert "hello banner" in text
    assert "-" * 10 in text
    assert "[INFO][messyroute.tests]" in text


def test_env_level_overrides_argument(restore_root, monkeypatch, tmp_path):
    monkeypatch.setenv("MESSYROUTE_LOG_LEVEL", "WARNING")
    init_logging(level="DEBUG", force=False, write_output=True, logs_dir=tmp_path)

    assert restore_root.level == logging.WARNING
    path = get_current_log_path()
    assert path is not None
    assert path.parent == tmp_path.resolve()
    assert path.suffix == ".log"


def test_log_path_is_cleared_without_file_output(restore_root, tmp_path):
    init_logging(force=False, log_file=tmp_path / "first.log")
    assert get_current_log_path() is not None

    init_logging(force=False)
    assert get_current_log_path() is None
    assert get_logger().name == "messyroute"
