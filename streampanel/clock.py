from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int: ...


class SystemClock:
    """
    Wall-clock epoch milliseconds.

    Every derivation is relative to stored instants, never to a previous read,
    so clock jumps only shift the result and cannot corrupt state.
    """

    def now_ms(self) -> int:
        return int(time.time() * 1000)
