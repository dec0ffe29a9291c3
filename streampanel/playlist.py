from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .clock import Clock
from .errors import InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MINUTES = 10


@dataclass
class PlaylistState:
    """
    Rotation order is insertion order of selected_videos.
    current_index stays valid for the list length (0 when empty).
    """

    selected_videos: list[str] = field(default_factory=list)
    is_active: bool = False
    current_index: int = 0
    last_played_at_ms: int | None = None
    is_waiting_cooldown: bool = False
    cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES

    def cooldown_ends_at_ms(self) -> int | None:
        if not self.is_waiting_cooldown or self.last_played_at_ms is None:
            return None
        return self.last_played_at_ms + self.cooldown_minutes * 60_000


class PlaylistScheduler:
    def __init__(self, clock: Clock, *, cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES) -> None:
        if cooldown_minutes <= 0:
            raise ValueError("cooldown_minutes must be > 0")
        self.clock = clock
        self.state = PlaylistState(cooldown_minutes=cooldown_minutes)

    def set_state(self, *, is_active: bool | None = None, selected_videos: list[str] | None = None) -> None:
        videos = None if selected_videos is None else [str(v) for v in selected_videos]
        if videos is not None and any(not v.strip() for v in videos):
            raise InvalidArgument("video ids must be non-empty")

        s = self.state
        if videos is not None:
            s.selected_videos = videos
            s.current_index = s.current_index % len(videos) if videos else 0

        if is_active is not None:
            if is_active and not s.is_active:
                s.current_index = 0
                s.last_played_at_ms = None
                s.is_waiting_cooldown = False
                logger.info("popup rotation activated with %d videos", len(s.selected_videos))
            elif not is_active and s.is_active:
                s.is_waiting_cooldown = False
                logger.info("popup rotation deactivated")
            s.is_active = bool(is_active)

    def get_current(self) -> str | None:
        """
        Video that should be showing now, or None.

        Idempotent apart from clearing the cooldown flag once it has elapsed;
        never advances the index.
        """
        s = self.state
        if not s.is_active or not s.selected_videos:
            return None
        if s.is_waiting_cooldown and s.last_played_at_ms is not None:
            elapsed_minutes = (self.clock.now_ms() - s.last_played_at_ms) // 60_000
            if elapsed_minutes < s.cooldown_minutes:
                return None
        s.is_waiting_cooldown = False
        return s.selected_videos[s.current_index % len(s.selected_videos)]

    def on_video_ended(self) -> bool:
        s = self.state
        if not s.selected_videos:
            return False
        s.current_index = (s.current_index + 1) % len(s.selected_videos)
        s.last_played_at_ms = self.clock.now_ms()
        s.is_waiting_cooldown = True
        logger.info("popup ended, next index %d after %d min cooldown", s.current_index, s.cooldown_minutes)
        return True

    def snapshot(self) -> dict[str, Any]:
        """
        Read-only view. currentVideo agrees with get_current() (None during a
        cooldown); nextVideo is the video at the index either way.
        """
        s = self.state
        upcoming = s.selected_videos[s.current_index] if s.is_active and s.selected_videos else None
        ends = s.cooldown_ends_at_ms()
        cooling = ends is not None and (self.clock.now_ms() - s.last_played_at_ms) // 60_000 < s.cooldown_minutes
        return {
            "isActive": s.is_active,
            "selectedVideos": list(s.selected_videos),
            "currentIndex": s.current_index,
            "currentVideo": None if cooling else upcoming,
            "nextVideo": upcoming,
            "lastPlayedAtEpochMs": s.last_played_at_ms,
            "isWaitingCooldown": s.is_waiting_cooldown,
            "cooldownMinutes": s.cooldown_minutes,
            "cooldownEndsAtEpochMs": ends,
        }
