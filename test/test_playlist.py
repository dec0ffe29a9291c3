"""Tests for the pop-up rotation scheduler."""

import pytest

from streampanel.errors import InvalidArgument
from streampanel.playlist import PlaylistScheduler

VIDEOS = ["intro.mp4", "sponsor.webm", "outro.mp4"]


@pytest.fixture
def playlist(clock):
    return PlaylistScheduler(clock, cooldown_minutes=10)


def test_inactive_has_no_current(playlist):
    playlist.set_state(selected_videos=VIDEOS)
    assert playlist.get_current() is None


def test_active_empty_list_has_no_current(playlist):
    playlist.set_state(is_active=True)
    assert playlist.get_current() is None


def test_activation_starts_at_first_video(playlist):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    assert playlist.get_current() == "intro.mp4"
    # idempotent
    assert playlist.get_current() == "intro.mp4"
    assert playlist.state.current_index == 0


def test_ended_advances_and_waits_for_cooldown(playlist, clock):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    assert playlist.on_video_ended() is True
    assert playlist.state.current_index == 1
    assert playlist.state.is_waiting_cooldown is True
    assert playlist.get_current() is None

    clock.advance(seconds=9 * 60 + 59)
    assert playlist.get_current() is None
    assert playlist.state.is_waiting_cooldown is True

    clock.advance(seconds=1)
    assert playlist.get_current() == "sponsor.webm"
    assert playlist.state.is_waiting_cooldown is False
    assert playlist.state.current_index == 1


@pytest.mark.parametrize("n", [1, 2, 3, 4, 7])
def test_ended_n_times_wraps(playlist, n):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    for _ in range(n):
        playlist.on_video_ended()
    assert playlist.state.current_index == n % len(VIDEOS)


def test_ended_on_empty_list_is_noop(playlist):
    playlist.set_state(is_active=True, selected_videos=[])
    assert playlist.on_video_ended() is False
    assert playlist.state.current_index == 0
    assert playlist.state.last_played_at_ms is None


def test_shrinking_list_reclamps_index(playlist):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    playlist.on_video_ended()
    playlist.on_video_ended()
    assert playlist.state.current_index == 2
    playlist.set_state(selected_videos=["a.mp4", "b.mp4"])
    assert playlist.state.current_index == 0
    playlist.set_state(selected_videos=[])
    assert playlist.state.current_index == 0
    assert playlist.get_current() is None


def test_reactivation_resets_rotation(playlist, clock):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    playlist.on_video_ended()
    playlist.set_state(is_active=False)
    assert playlist.get_current() is None
    assert playlist.snapshot()["currentVideo"] is None

    playlist.set_state(is_active=True)
    assert playlist.state.current_index == 0
    assert playlist.state.last_played_at_ms is None
    assert playlist.get_current() == "intro.mp4"


def test_activate_when_already_active_keeps_position(playlist):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    playlist.on_video_ended()
    playlist.set_state(is_active=True)
    assert playlist.state.current_index == 1


def test_rejects_blank_video_ids(playlist):
    playlist.set_state(selected_videos=VIDEOS)
    with pytest.raises(InvalidArgument):
        playlist.set_state(selected_videos=["ok.mp4", "  "])
    assert playlist.state.selected_videos == VIDEOS


def test_snapshot(playlist, clock):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    playlist.on_video_ended()
    snap = playlist.snapshot()
    assert snap == {
        "isActive": True,
        "selectedVideos": VIDEOS,
        "currentIndex": 1,
        "currentVideo": None,
        "nextVideo": "sponsor.webm",
        "lastPlayedAtEpochMs": clock.now_ms(),
        "isWaitingCooldown": True,
        "cooldownMinutes": 10,
        "cooldownEndsAtEpochMs": clock.now_ms() + 10 * 60_000,
    }


def test_snapshot_current_video_matches_get_current(playlist, clock):
    playlist.set_state(is_active=True, selected_videos=VIDEOS)
    assert playlist.snapshot()["currentVideo"] == playlist.get_current() == "intro.mp4"

    playlist.on_video_ended()
    clock.advance(seconds=5 * 60)
    assert playlist.snapshot()["currentVideo"] is None
    assert playlist.get_current() is None

    clock.advance(seconds=5 * 60)
    # cooldown over, even before get_current() clears the flag
    assert playlist.snapshot()["currentVideo"] == "sponsor.webm"
    assert playlist.state.is_waiting_cooldown is True
    assert playlist.get_current() == "sponsor.webm"


def test_cooldown_must_be_positive(clock):
    with pytest.raises(ValueError):
        PlaylistScheduler(clock, cooldown_minutes=0)
