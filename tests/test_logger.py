import re

import pytest

from fredsys.logger import EventLogger, LogLevel

LINE_RE = re.compile(r"^\d{16}: (.*)$")


def read_messages(path):
    lines = path.read_text().splitlines()
    matches = [LINE_RE.match(line) for line in lines]
    assert all(matches)
    return [m.group(1) for m in matches]


def test_log_writes_timestamped_lines(tmp_path):
    path = tmp_path / "fred.log"
    with EventLogger(path, LogLevel.FULL) as log:
        log.log(LogLevel.SIMPLE, "first")
        log.log(LogLevel.FULL, "second")
    assert read_messages(path) == ["first", "second"]


def test_level_filter(tmp_path):
    path = tmp_path / "fred.log"
    with EventLogger(path, LogLevel.FULL) as log:
        log.log(LogLevel.PEDANTIC, "hidden")
        log.log(LogLevel.SIMPLE, "shown")
    assert read_messages(path) == ["shown"]


def test_not_open_logs_nothing(tmp_path):
    path = tmp_path / "fred.log"
    log = EventLogger(path, LogLevel.PEDANTIC)
    log.log(LogLevel.SIMPLE, "lost")
    assert not path.exists()
    assert log.is_open is False


def test_after_close_logs_nothing(tmp_path):
    path = tmp_path / "fred.log"
    log = EventLogger(path, LogLevel.PEDANTIC)
    log.open()
    log.log(LogLevel.SIMPLE, "kept")
    log.close()
    log.log(LogLevel.SIMPLE, "dropped")
    assert read_messages(path) == ["kept"]


def test_timestamps_are_monotonic(tmp_path):
    path = tmp_path / "fred.log"
    with EventLogger(path, LogLevel.PEDANTIC) as log:
        for i in range(5):
            log.log(LogLevel.PEDANTIC, str(i))
    stamps = [int(line[:16]) for line in path.read_text().splitlines()]
    assert stamps == sorted(stamps)


def test_open_failure(tmp_path):
    log = EventLogger(tmp_path / "no_dir" / "fred.log", LogLevel.FULL)
    with pytest.raises(OSError):
        log.open()