"""
Pytest configuration for streampanel tests.

Provides a manual clock so every time-dependent path is deterministic.
"""

import pytest

START_MS = 1_700_000_000_000


class ManualClock:
    def __init__(self, now_ms=START_MS):
        self.now = now_ms

    def now_ms(self):
        return self.now

    def advance(self, seconds=0.0, ms=0):
        self.now += int(seconds * 1000) + ms


@pytest.fixture
def clock():
    return ManualClock()
