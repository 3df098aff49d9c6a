import logging
from datetime import datetime, timedelta, timezone

import pytest

from neutrino.progress import HeaderProgressLogger

LOGGER_NAME = "tests.neutrino.progress"
START = datetime(2020, 1, 1, tzinfo=timezone.utc)
STAMP = datetime(2019, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def progress(clock, caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    return HeaderProgressLogger(
        "Syncing", "block", logging.getLogger(LOGGER_NAME), clock=clock
    )


def messages(caplog):
    return [r.getMessage() for r in caplog.records if r.name == LOGGER_NAME]


def test_no_log_within_interval(progress, clock, caplog):
    for height in range(5):
        clock.advance(1)
        progress.log_block_height(STAMP, height)
    assert messages(caplog) == []


def test_logs_count_and_duration_after_interval(progress, clock, caplog):
    clock.advance(1)
    progress.log_block_height(STAMP, 5)
    clock.advance(1)
    progress.log_block_height(STAMP, 6)
    clock.advance(10.345)
    progress.log_block_height(STAMP, 7)
    assert messages(caplog) == [
        f"Syncing 3 blocks in the last 12.34s (height 7, {STAMP})"
    ]


def test_counter_resets_and_singular_entity(progress, clock, caplog):
    clock.advance(11)
    progress.log_block_height(STAMP, 1)
    clock.advance(11)
    progress.log_block_height(STAMP, 2)
    logged = messages(caplog)
    assert len(logged) == 2
    assert logged[0].startswith("Syncing 1 block in the last")
    assert logged[1].startswith("Syncing 1 block in the last")


def test_no_second_log_right_after_first(progress, clock, caplog):
    clock.advance(11)
    progress.log_block_height(STAMP, 1)
    clock.advance(2)
    progress.log_block_height(STAMP, 2)
    assert len(messages(caplog)) == 1


def test_set_last_log_time_triggers_log(progress, clock, caplog):
    progress.set_last_log_time(START - timedelta(minutes=5))
    progress.log_block_height(STAMP, 42)
    logged = messages(caplog)
    assert len(logged) == 1
    assert "(height 42," in logged[0]


def test_set_last_log_time_in_future_suppresses_log(progress, clock, caplog):
    progress.set_last_log_time(START + timedelta(minutes=5))
    clock.advance(30)
    progress.log_block_height(STAMP, 3)
    assert messages(caplog) == []