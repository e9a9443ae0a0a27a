import re

import pytest

from sirkit.logger import Logger, LogLevel


@pytest.fixture(autouse=True)
def restore_level():
    previous = Logger.level()
    yield
    Logger.set_level(previous)


def test_set_level_round_trip():
    Logger.set_level(LogLevel.WARN)
    assert Logger.level() is LogLevel.WARN
    Logger.set_level(LogLevel.DEBUG)
    assert Logger.level() is LogLevel.DEBUG


def test_error_level_keeps_only_errors(capsys):
    Logger.set_level(LogLevel.ERROR)
    Logger.debug("quiet debug")
    Logger.info("quiet info")
    Logger.warn("quiet warn")
    Logger.error("loud error")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "quiet" not in captured.err
    assert "[ERROR]" in captured.err
    assert "loud error" in captured.err


def test_info_goes_to_stdout(capsys):
    Logger.set_level(LogLevel.DEBUG)
    Logger.info("hello arena")
    captured = capsys.readouterr()
    assert "[INFO] " in captured.out
    assert "hello arena" in captured.out
    assert "test_logger.py" in captured.out
    assert captured.err == ""


def test_debug_goes_to_stdout(capsys):
    Logger.set_level(LogLevel.DEBUG)
    Logger.debug("tracing")
    captured = capsys.readouterr()
    assert "[DEBUG]" in captured.out
    assert "tracing" in captured.out


def test_warn_and_error_go_to_stderr(capsys):
    Logger.set_level(LogLevel.DEBUG)
    Logger.warn("careful")
    Logger.error("broken")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[WARN] " in captured.err
    assert "[ERROR]" in captured.err
    assert captured.err.index("careful") < captured.err.index("broken")


def test_messages_below_level_are_dropped(capsys):
    Logger.set_level(LogLevel.WARN)
    Logger.debug("hidden debug")
    Logger.info("hidden info")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_line_format(capsys):
    Logger.set_level(LogLevel.INFO)
    Logger.info("formatted")
    out = capsys.readouterr().out
    assert out.startswith("\033[32m[INFO]  ")
    assert out.endswith("\033[0m\n")
    assert re.search(r"\d{2}:\d{2}:\d{2} \S+test_logger\.py:\d+ \u2014 formatted", out)