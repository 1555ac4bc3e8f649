import io
import logging

import pytest

import movement_analytics.logging_setup as logging_setup
from movement_analytics.cli import main


@pytest.fixture
def package_logger():
    """The package logger, unconfigured, restored to its prior state after."""
    logger = logging.getLogger("movement_analytics")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logging_setup.reset_logging()
    yield logger
    logging_setup.reset_logging()
    logger.handlers = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def stream_handler_targets(logger: logging.Logger) -> list:
    """Streams of the plain StreamHandlers attached by configure_logging."""
    return [h.stream for h in logger.handlers if type(h) is logging.StreamHandler]


@pytest.mark.parametrize(
    "level, expected",
    [
        ("debug", logging.DEBUG),
        (" WARNING ", logging.WARNING),
        (logging.ERROR, logging.ERROR),
        ("15", 15),
    ],
)
def test_parse_level(level, expected) -> None:
    assert logging_setup._parse_level(level) == expected


def test_parse_level_falls_back_to_env_then_info(monkeypatch) -> None:
    monkeypatch.setenv("MOVEMENT_ANALYTICS_LOG_LEVEL", "error")
    assert logging_setup._parse_level(None) == logging.ERROR

    monkeypatch.setenv("MOVEMENT_ANALYTICS_LOG_LEVEL", "nonsense")
    assert logging_setup._parse_level("also-nonsense") == logging.INFO

    monkeypatch.delenv("MOVEMENT_ANALYTICS_LOG_LEVEL")
    assert logging_setup._parse_level(None) == logging.INFO


def test_get_logger_is_silent_until_configured(package_logger) -> None:
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    logger = logging_setup.get_logger("movement_analytics.some_module")

    assert logger.name == "movement_analytics.some_module"
    assert any(isinstance(h, logging.NullHandler) for h in package_logger.handlers)


def test_configure_logging_once(package_logger) -> None:
    stream = io.StringIO()
    ignored = io.StringIO()

    logging_setup.configure_logging("DEBUG", fmt="%(levelname)s %(message)s", stream=stream)
    logging_setup.configure_logging("ERROR", stream=ignored)
    logging_setup.get_logger("movement_analytics.test").debug("hello %s", "world")

    assert stream.getvalue() == "DEBUG hello world\n"
    assert ignored.getvalue() == ""
    assert stream_handler_targets(package_logger) == [stream]
    assert not any(isinstance(h, logging.NullHandler) for h in package_logger.handlers)
    assert package_logger.propagate is False


def test_reset_logging_allows_configuring_again(package_logger) -> None:
    first = io.StringIO()
    second = io.StringIO()

    logging_setup.configure_logging("INFO", fmt="%(message)s", stream=first)
    logging_setup.reset_logging()

    assert stream_handler_targets(package_logger) == []
    assert package_logger.propagate is True

    logging_setup.configure_logging("INFO", fmt="%(message)s", stream=second)
    logging_setup.get_logger("movement_analytics.test").info("again")

    assert first.getvalue() == ""
    assert second.getvalue() == "again\n"


def test_cli_configuration_does_not_leak_into_later_tests(
    package_logger, tmp_path, capsys
) -> None:
    config_path = tmp_path / "movement_analytics_config.toml"
    config_path.write_text(
        '[database]\npath = "movements.sqlite"\n\n[organization]\nid = "org-1"\n',
        encoding="utf-8",
    )
    main(["--config", str(config_path), "--log-level", "ERROR", "balance"])
    assert len(stream_handler_targets(package_logger)) == 1

    logging_setup.reset_logging()

    assert stream_handler_targets(package_logger) == []
    assert logging_setup._CONFIGURED is False
