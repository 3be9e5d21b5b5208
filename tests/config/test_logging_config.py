import logging

from lost_in_transit.config.logging_config import (
    ROOT_LOGGER_NAME,
    component_logger,
    get_logger,
)


def _reset(name):
    lg = logging.getLogger(name)
    for h in list(lg.handlers):
        lg.removeHandler(h)
    return lg


def test_get_logger_idempotent_no_duplicate_handlers(tmp_path):
    _reset("lit.test")
    log_path = tmp_path / "run.log"
    logger = get_logger("lit.test", level="DEBUG", log_file=log_path, console=False)
    logger2 = get_logger("lit.test", level="DEBUG", log_file=log_path, console=False)

    assert logger is logger2
    assert len(logger.handlers) == 1


def test_get_logger_adds_console_handler():
    _reset("lit.console")
    logger = get_logger("lit.console", level="INFO", console=True, log_file=None)
    shs = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    assert len(shs) == 1


def test_get_logger_writes_to_file(tmp_path):
    _reset("lit.file")
    log_file = tmp_path / "logs" / "app.log"
    logger = get_logger("lit.file", level="INFO", log_file=log_file, console=False)
    logger.info("hello world")

    assert "hello world" in log_file.read_text(encoding="utf-8")


def test_get_logger_respects_level_env(monkeypatch, tmp_path):
    _reset("lit.level.env")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    log_file = tmp_path / "lvl.log"
    logger = get_logger("lit.level.env", log_file=log_file, console=False)

    logger.info("should NOT appear")
    logger.error("should appear")

    text = log_file.read_text(encoding="utf-8")
    assert "should appear" in text
    assert "should NOT appear" not in text


def test_warn_alias_and_unknown_level():
    _reset("lit.alias")
    assert get_logger("lit.alias", level="warn", console=False).level == logging.WARNING
    assert get_logger("lit.alias", level="chatty", console=False).level == logging.INFO


def test_component_loggers_hang_off_the_package_logger(tmp_path):
    root = _reset(ROOT_LOGGER_NAME)
    log_file = tmp_path / "pkg.log"
    get_logger(ROOT_LOGGER_NAME, level="INFO", log_file=log_file, console=False)

    child = component_logger("pipelines.recheck")
    assert child.name == "lost_in_transit.pipelines.recheck"
    child.info("recheck started")

    assert "recheck started" in log_file.read_text(encoding="utf-8")
    _reset(ROOT_LOGGER_NAME)
    assert root.handlers == []
