"""Tests for the countdown engine and its background tick."""

import pytest

from streampanel.errors import InvalidArgument, InvalidState
from streampanel.timer import TimerEngine, TimerState, countdown_seconds, end_time_ms, remaining_seconds


@pytest.fixture
def engine(clock):
    return TimerEngine(clock)


class TestDerivation:
    def test_idle_has_no_remaining_and_no_end(self, clock):
        state = TimerState()
        assert remaining_seconds(state, clock.now_ms()) == 0
        assert end_time_ms(state) is None
        assert countdown_seconds(state, clock.now_ms()) == 0

    def test_on_demand_path_floors_elapsed(self, clock):
        state = TimerState(duration_seconds=10, started_at_ms=clock.now_ms(), is_running=True)
        assert remaining_seconds(state, clock.now_ms() + 1800) == 9

    def test_ticker_path_rounds_up(self, clock):
        state = TimerState(duration_seconds=10, started_at_ms=clock.now_ms(), is_running=True)
        # 8.8s left
        assert countdown_seconds(state, clock.now_ms() + 1200) == 9
        # 0.2s left still shows 1
        assert countdown_seconds(state, clock.now_ms() + 9800) == 1
        assert countdown_seconds(state, clock.now_ms() + 10_000) == 0

    def test_paused_uses_snapshot(self, clock):
        state = TimerState(
            duration_seconds=100,
            started_at_ms=clock.now_ms(),
            is_running=True,
            is_paused=True,
            paused_remaining_seconds=42,
        )
        assert remaining_seconds(state, clock.now_ms() + 999_000) == 42
        assert end_time_ms(state) is None

    def test_remaining_never_negative(self, clock):
        state = TimerState(duration_seconds=5, started_at_ms=clock.now_ms(), is_running=True)
        assert remaining_seconds(state, clock.now_ms() + 60_000) == 0


class TestTransitions:
    @pytest.mark.parametrize("minutes", [1, 5, 90])
    def test_start_reports_full_duration(self, engine, clock, minutes):
        snap = engine.start(minutes)
        assert snap.remaining_seconds == minutes * 60
        assert snap.duration_seconds == minutes * 60
        assert snap.is_running is True
        assert snap.is_paused is False
        assert snap.end_time_ms == clock.now_ms() + minutes * 60_000

    @pytest.mark.parametrize("minutes", [0, -3, None, "5", 2.5, True])
    def test_start_rejects_bad_minutes(self, engine, minutes):
        with pytest.raises(InvalidArgument):
            engine.start(minutes)
        assert engine.state == TimerState()

    def test_pause_requires_running(self, engine):
        with pytest.raises(InvalidState, match="not running"):
            engine.pause()

    def test_pause_twice_fails(self, engine, clock):
        engine.start(5)
        engine.pause()
        with pytest.raises(InvalidState, match="already paused"):
            engine.pause()

    def test_resume_requires_paused(self, engine):
        with pytest.raises(InvalidState, match="not running"):
            engine.resume()
        engine.start(5)
        with pytest.raises(InvalidState, match="not paused"):
            engine.resume()

    def test_pause_freezes_remaining(self, engine, clock):
        engine.start(5)
        clock.advance(seconds=61.5)
        snap = engine.pause()
        assert snap.remaining_seconds == 239
        assert snap.end_time_ms is None
        clock.advance(seconds=600)
        assert engine.snapshot().remaining_seconds == 239

    def test_pause_then_resume_keeps_remaining(self, engine, clock):
        engine.start(3)
        clock.advance(seconds=17.3)
        before = engine.snapshot().remaining_seconds
        engine.pause()
        snap = engine.resume()
        assert abs(snap.remaining_seconds - before) <= 1
        assert snap.duration_seconds == before
        assert snap.end_time_ms == clock.now_ms() + before * 1000

    def test_reset_while_time_remains_marks_skipped(self, engine, clock):
        engine.start(5)
        clock.advance(seconds=10)
        snap = engine.reset()
        assert snap.was_skipped is True
        assert snap.is_running is False
        assert snap.remaining_seconds == 0
        assert snap.end_time_ms is None

    def test_reset_after_expiry_not_skipped(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=61)
        assert engine.reset().was_skipped is False

    def test_reset_is_idempotent(self, engine, clock):
        engine.start(5)
        first = engine.reset()
        second = engine.reset()
        assert first.was_skipped is True
        assert second.was_skipped is False
        assert first.to_dict() | {"wasSkipped": False} == second.to_dict()

    def test_reset_keeps_language(self, engine):
        engine.set_language("en")
        engine.start(2)
        assert engine.reset().language == "en"

    def test_start_clears_was_skipped(self, engine):
        engine.start(5)
        engine.reset()
        assert engine.start(1).was_skipped is False

    def test_set_language(self, engine):
        assert engine.set_language("en") == "en"
        assert engine.snapshot().language == "en"
        with pytest.raises(InvalidArgument):
            engine.set_language("fr")
        assert engine.snapshot().language == "en"

    def test_on_demand_derivation_without_ticker(self, engine, clock):
        engine.start(5)
        clock.advance(seconds=301)
        snap = engine.snapshot()
        assert snap.remaining_seconds == 0
        assert snap.is_running is True


class TestTick:
    def test_idle_tick_is_noop(self, engine):
        result = engine.tick()
        assert result.changed is False
        assert engine.state == TimerState()

    def test_paused_tick_is_noop(self, engine, clock):
        engine.start(1)
        engine.pause()
        clock.advance(seconds=120)
        assert engine.tick().changed is False
        assert engine.state.pending_auto_extend_at_ms is None

    def test_tick_reports_ceiled_countdown(self, engine, clock):
        engine.start(1)
        clock.advance(ms=58_800)
        assert engine.tick().remaining_seconds == 2

    def test_expiry_schedules_extension_after_grace(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=60)
        result = engine.tick()
        assert result.changed is True
        assert result.extended is False
        assert engine.state.pending_auto_extend_at_ms == clock.now_ms() + 30_000

        clock.advance(seconds=29)
        assert engine.tick().extended is False
        assert engine.state.duration_seconds == 60

    def test_extension_applies_after_grace(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=61)
        engine.tick()
        clock.advance(seconds=31)
        result = engine.tick()

        assert result.extended is True
        assert result.remaining_seconds == 300
        snap = engine.snapshot()
        assert snap.duration_seconds == 60 + 300
        assert snap.remaining_seconds == 300
        assert snap.end_time_ms == clock.now_ms() + 300_000
        assert snap.auto_extend_at_ms is None

    def test_pending_not_rescheduled(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=60)
        engine.tick()
        pending = engine.state.pending_auto_extend_at_ms
        clock.advance(seconds=5)
        assert engine.tick().changed is False
        assert engine.state.pending_auto_extend_at_ms == pending

    def test_extended_timer_expires_again(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=60)
        engine.tick()
        clock.advance(seconds=30)
        engine.tick()
        clock.advance(seconds=300)
        engine.tick()
        assert engine.state.pending_auto_extend_at_ms == clock.now_ms() + 30_000

    def test_reset_clears_pending(self, engine, clock):
        engine.start(1)
        clock.advance(seconds=60)
        engine.tick()
        engine.reset()
        assert engine.state.pending_auto_extend_at_ms is None
        clock.advance(seconds=60)
        assert engine.tick().changed is False

    def test_custom_policy(self, clock):
        engine = TimerEngine(clock, grace_seconds=5, extend_seconds=120)
        engine.start(1)
        clock.advance(seconds=60)
        engine.tick()
        clock.advance(seconds=5)
        assert engine.tick().extended is True
        assert engine.snapshot().remaining_seconds == 120
