from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Literal

from .clock import Clock
from .errors import InvalidArgument, InvalidState

logger = logging.getLogger(__name__)

Language = Literal["de", "en"]
LANGUAGES: tuple[str, ...] = ("de", "en")

DEFAULT_GRACE_SECONDS = 30
DEFAULT_EXTEND_SECONDS = 5 * 60


@dataclass
class TimerState:
    duration_seconds: int = 0
    started_at_ms: int | None = None  # virtual start after an auto-extend
    is_running: bool = False
    is_paused: bool = False
    paused_remaining_seconds: int = 0  # valid only while paused
    was_skipped: bool = False
    pending_auto_extend_at_ms: int | None = None
    language: Language = "de"


@dataclass(frozen=True)
class TimerSnapshot:
    duration_seconds: int
    remaining_seconds: int
    end_time_ms: int | None
    is_running: bool
    is_paused: bool
    was_skipped: bool
    language: str
    auto_extend_at_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationSeconds": self.duration_seconds,
            "remainingSeconds": self.remaining_seconds,
            "endTimeEpochMs": self.end_time_ms,
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "wasSkipped": self.was_skipped,
            "language": self.language,
            "autoExtendAtEpochMs": self.auto_extend_at_ms,
        }


@dataclass(frozen=True)
class TickResult:
    remaining_seconds: int
    changed: bool = False
    extended: bool = False


def remaining_seconds(state: TimerState, now_ms: int) -> int:
    """On-demand read path. Elapsed time is floored."""
    if not state.is_running:
        return 0
    if state.is_paused:
        return state.paused_remaining_seconds
    if state.started_at_ms is None:
        return 0
    elapsed = (now_ms - state.started_at_ms) // 1000
    return max(0, state.duration_seconds - elapsed)


def end_time_ms(state: TimerState) -> int | None:
    if not state.is_running or state.is_paused or state.started_at_ms is None:
        return None
    return state.started_at_ms + state.duration_seconds * 1000


def countdown_seconds(state: TimerState, now_ms: int) -> int:
    """
    Ticker path: counts down to the precomputed end time and rounds up,
    so 1.2s left displays as 2 and "0" only appears once time is really out.
    """
    end = end_time_ms(state)
    if end is None:
        return 0
    return max(0, math.ceil((end - now_ms) / 1000))


class TimerEngine:
    """
    Server-authoritative countdown.

    Not thread-safe on its own; the owner serializes calls (see AppContext).
    Every transition validates before mutating, so a rejected call leaves the
    state untouched.
    """

    def __init__(
        self,
        clock: Clock,
        *,
        grace_seconds: int = DEFAULT_GRACE_SECONDS,
        extend_seconds: int = DEFAULT_EXTEND_SECONDS,
    ) -> None:
        self.clock = clock
        self.grace_seconds = grace_seconds
        self.extend_seconds = extend_seconds
        self.state = TimerState()

    def snapshot(self, now_ms: int | None = None) -> TimerSnapshot:
        now = self.clock.now_ms() if now_ms is None else now_ms
        s = self.state
        return TimerSnapshot(
            duration_seconds=s.duration_seconds,
            remaining_seconds=remaining_seconds(s, now),
            end_time_ms=end_time_ms(s),
            is_running=s.is_running,
            is_paused=s.is_paused,
            was_skipped=s.was_skipped,
            language=s.language,
            auto_extend_at_ms=s.pending_auto_extend_at_ms,
        )

    def start(self, minutes: Any) -> TimerSnapshot:
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
            raise InvalidArgument("minutes must be a positive integer")
        now = self.clock.now_ms()
        s = self.state
        s.duration_seconds = minutes * 60
        s.started_at_ms = now
        s.is_running = True
        s.is_paused = False
        s.paused_remaining_seconds = 0
        s.pending_auto_extend_at_ms = None
        s.was_skipped = False
        logger.info("timer started: %d min", minutes)
        return self.snapshot(now)

    def pause(self) -> TimerSnapshot:
        s = self.state
        if not s.is_running:
            raise InvalidState("timer not running")
        if s.is_paused:
            raise InvalidState("timer already paused")
        now = self.clock.now_ms()
        s.paused_remaining_seconds = remaining_seconds(s, now)
        s.is_paused = True
        s.pending_auto_extend_at_ms = None
        logger.info("timer paused with %ds left", s.paused_remaining_seconds)
        return self.snapshot(now)

    def resume(self) -> TimerSnapshot:
        s = self.state
        if not s.is_running:
            raise InvalidState("timer not running")
        if not s.is_paused:
            raise InvalidState("timer not paused")
        now = self.clock.now_ms()
        s.duration_seconds = s.paused_remaining_seconds
        s.started_at_ms = now
        s.is_paused = False
        s.paused_remaining_seconds = 0
        logger.info("timer resumed with %ds left", s.duration_seconds)
        return self.snapshot(now)

    def reset(self) -> TimerSnapshot:
        now = self.clock.now_ms()
        s = self.state
        skipped = s.is_running and remaining_seconds(s, now) > 0
        self.state = TimerState(was_skipped=skipped, language=s.language)
        logger.info("timer reset (skipped=%s)", skipped)
        return self.snapshot(now)

    def set_language(self, language: Any) -> str:
        if language not in LANGUAGES:
            raise InvalidArgument("language must be 'de' or 'en'")
        self.state.language = language
        return self.state.language

    def tick(self) -> TickResult:
        """
        One background tick. Schedules the auto-extension once the countdown
        hits zero and applies it after the grace window.
        """
        s = self.state
        if not s.is_running or s.is_paused or end_time_ms(s) is None:
            return TickResult(remaining_seconds=0)

        now = self.clock.now_ms()
        remaining = countdown_seconds(s, now)
        changed = False

        if remaining <= 0 and s.pending_auto_extend_at_ms is None:
            s.pending_auto_extend_at_ms = now + self.grace_seconds * 1000
            changed = True
            logger.info("timer expired, auto-extend in %ds", self.grace_seconds)

        if s.pending_auto_extend_at_ms is not None and now >= s.pending_auto_extend_at_ms:
            s.duration_seconds += self.extend_seconds
            # Shift the virtual start so the derived end time is now + block.
            s.started_at_ms = now + self.extend_seconds * 1000 - s.duration_seconds * 1000
            s.pending_auto_extend_at_ms = None
            logger.info("timer auto-extended by %ds", self.extend_seconds)
            return TickResult(remaining_seconds=self.extend_seconds, changed=True, extended=True)

        return TickResult(remaining_seconds=remaining, changed=changed)
