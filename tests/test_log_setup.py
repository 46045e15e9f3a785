import logging

import pytest

from splashsurf.log_setup import (
    LOG_ENV_VAR,
    OFF,
    TRACE,
    ProgressHandler,
    VerbosityLevel,
    get_progress_bar,
    initialize_logging,
    log_error,
    log_program_info,
    resolve_log_level,
    set_progress_bar,
)


class FakeBar:
    def __init__(self, events):
        self.events = events

    def clear(self):
        self.events.append("clear")

    def refresh(self):
        self.events.append("refresh")


class FakeStream:
    def __init__(self, events):
        self.events = events

    def write(self, data):
        self.events.append(("write", data))
        return len(data)

    def flush(self):
        self.events.append("flush")


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def no_bar():
    set_progress_bar(None)
    yield
    set_progress_bar(None)


@pytest.mark.parametrize(
    "count, expected",
    [
        (0, VerbosityLevel.NONE),
        (1, VerbosityLevel.VERBOSE),
        (2, VerbosityLevel.VERY_VERBOSE),
        (3, VerbosityLevel.VERY_VERY_VERBOSE),
        (7, VerbosityLevel.VERY_VERY_VERBOSE),
    ],
)
def test_verbosity_from_count(count, expected):
    assert VerbosityLevel.from_count(count) is expected


def test_verbosity_negative_count_rejected():
    with pytest.raises(ValueError):
        VerbosityLevel.from_count(-1)


def test_verbosity_to_level():
    assert VerbosityLevel.NONE.to_level() is None
    assert VerbosityLevel.VERBOSE.to_level() == logging.INFO
    assert VerbosityLevel.VERY_VERBOSE.to_level() == logging.DEBUG
    assert VerbosityLevel.VERY_VERY_VERBOSE.to_level() == TRACE


def test_quiet_overrides_everything():
    assert resolve_log_level(VerbosityLevel.VERY_VERBOSE, True, "debug") == (OFF, None)


def test_verbosity_overrides_env():
    assert resolve_log_level(VerbosityLevel.VERBOSE, False, "error") == (logging.INFO, None)


@pytest.mark.parametrize(
    "value, level",
    [
        ("off", OFF),
        ("ERROR", logging.ERROR),
        ("warn", logging.WARNING),
        ("Info", logging.INFO),
        ("debug", logging.DEBUG),
        ("trace", TRACE),
    ],
)
def test_env_levels(value, level):
    assert resolve_log_level(VerbosityLevel.NONE, False, value) == (level, None)


def test_default_and_unknown_env():
    assert resolve_log_level(VerbosityLevel.NONE, False, None) == (logging.INFO, None)
    assert resolve_log_level(VerbosityLevel.NONE, False, "LOUD") == (logging.INFO, "loud")


def test_progress_handler_suspends_bar(no_bar):
    events = []
    bar = FakeBar(events)
    set_progress_bar(bar)
    handler = ProgressHandler(FakeStream(events))
    assert handler.write("abc") == 3
    handler.flush()
    assert events == ["clear", ("write", "abc"), "refresh", "clear", "flush", "refresh"]


def test_progress_handler_without_bar(no_bar):
    events = []
    handler = ProgressHandler(FakeStream(events))
    handler.write("x")
    assert events == [("write", "x")]


def test_progress_bar_is_held_weakly(no_bar):
    bar = FakeBar([])
    set_progress_bar(bar)
    assert get_progress_bar() is bar
    del bar
    assert get_progress_bar() is None


def test_log_error_chain(caplog):
    caplog.set_level(logging.DEBUG)
    try:
        try:
            raise ValueError("inner")
        except ValueError as exc:
            raise RuntimeError("outer") from exc
    except RuntimeError as err:
        log_error(err)
    assert caplog.messages == ["Error occurred: outer", "  caused by: inner"]


def test_initialize_logging_plain_format(restore_root, capsys, monkeypatch, no_bar):
    monkeypatch.delenv(LOG_ENV_VAR, raising=False)
    initialize_logging(VerbosityLevel.NONE, False)
    logging.getLogger("splashsurf.test").info("hello there")
    logging.getLogger("splashsurf.test").debug("hidden")
    out = capsys.readouterr().out
    assert "][INFO] hello there" in out
    assert "hidden" not in out


def test_initialize_logging_detailed_format(restore_root, capsys, no_bar):
    initialize_logging(VerbosityLevel.VERY_VERBOSE, False)
    logging.getLogger("splashsurf.test").debug("details")
    out = capsys.readouterr().out
    assert "[splashsurf.test][DEBUG] details" in out


def test_initialize_logging_quiet(restore_root, capsys, no_bar):
    initialize_logging(VerbosityLevel.VERBOSE, True)
    logging.getLogger("splashsurf.test").error("silenced")
    assert capsys.readouterr().out == ""


def test_initialize_logging_unknown_env(restore_root, capsys, monkeypatch, no_bar):
    monkeypatch.setenv(LOG_ENV_VAR, "Chatty")
    initialize_logging(VerbosityLevel.NONE, False)
    out = capsys.readouterr().out
    assert "Unknown log filter level 'chatty'" in out
    assert logging.getLogger().level == logging.INFO


def test_log_program_info(caplog):
    caplog.set_level(logging.INFO)
    log_program_info(["splashsurf", "reconstruct", "test.vtk"])
    assert caplog.messages[-1] == "Called with command line: splashsurf reconstruct test.vtk"
    assert caplog.messages[0].startswith("splashsurf v")