from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from .auth import SessionGate, VerifyResult, avatar_identity
from .clock import Clock, SystemClock
from .config import CONFIG_PATH, AppConfig, load_config, resolve_dir
from .media import list_videos
from .music import MusicClient
from .playlist import PlaylistScheduler
from .timer import TimerEngine, TimerSnapshot
from .ws import WsHub

logger = logging.getLogger(__name__)


class AppContext:
    """
    Single owner of all process state.

    Each state object has one asyncio.Lock; every read-modify-write, from a
    request or a background loop, happens under it.
    """

    def __init__(self, project_root: Path, *, cfg: AppConfig | None = None, clock: Clock | None = None) -> None:
        self.project_root = project_root
        self.config_path = project_root / CONFIG_PATH
        self.cfg: AppConfig = cfg if cfg is not None else load_config(self.config_path)
        self.clock: Clock = clock or SystemClock()

        self.timer = TimerEngine(
            self.clock,
            grace_seconds=self.cfg.timer.auto_extend_grace_seconds,
            extend_seconds=self.cfg.timer.auto_extend_minutes * 60,
        )
        self.playlist = PlaylistScheduler(self.clock, cooldown_minutes=self.cfg.popup.cooldown_minutes)
        self.sessions = SessionGate(
            self.cfg.auth.totp_secret,
            valid_window=self.cfg.auth.valid_window,
            resolve_identity=avatar_identity(self.avatar_dir, self.cfg.auth.operator_name),
        )
        self.music = MusicClient(self.cfg.music)
        self.ws = WsHub()

        self._timer_lock = asyncio.Lock()
        self._popup_lock = asyncio.Lock()
        self._timer_task: asyncio.Task[None] | None = None
        self._popup_task: asyncio.Task[None] | None = None
        self._popup_ready: str | None = None

    @property
    def avatar_dir(self) -> Path:
        return resolve_dir(self.project_root, self.cfg.auth.avatar_dir)

    @property
    def video_dir(self) -> Path:
        return resolve_dir(self.project_root, self.cfg.popup.video_dir)

    async def start_background_tasks(self) -> None:
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.create_task(self._timer_loop())
        if self._popup_task is None or self._popup_task.done():
            self._popup_task = asyncio.create_task(self._popup_loop())
        logger.info("background loops started")

    async def shutdown(self) -> None:
        for task in (self._timer_task, self._popup_task):
            if task and not task.done():
                task.cancel()
        await self.music.close()

    # timer

    async def timer_snapshot(self) -> TimerSnapshot:
        async with self._timer_lock:
            return self.timer.snapshot()

    async def start_timer(self, minutes: Any) -> TimerSnapshot:
        async with self._timer_lock:
            snap = self.timer.start(minutes)
        await self.broadcast_timer(snap)
        return snap

    async def pause_timer(self) -> TimerSnapshot:
        async with self._timer_lock:
            snap = self.timer.pause()
        await self.broadcast_timer(snap)
        return snap

    async def resume_timer(self) -> TimerSnapshot:
        async with self._timer_lock:
            snap = self.timer.resume()
        await self.broadcast_timer(snap)
        return snap

    async def reset_timer(self) -> TimerSnapshot:
        async with self._timer_lock:
            snap = self.timer.reset()
        await self.broadcast_timer(snap)
        return snap

    async def set_language(self, language: Any) -> str:
        async with self._timer_lock:
            lang = self.timer.set_language(language)
            snap = self.timer.snapshot()
        await self.broadcast_timer(snap)
        return lang

    async def tick_timer(self) -> bool:
        """One ticker step. Returns True if the timer state changed."""
        async with self._timer_lock:
            result = self.timer.tick()
            snap = self.timer.snapshot() if result.changed else None
        if snap is not None:
            await self.broadcast_timer(snap)
        return result.changed

    async def broadcast_timer(self, snap: TimerSnapshot) -> None:
        await self.ws.broadcast("timer", snap.to_dict())

    async def _timer_loop(self) -> None:
        interval = self.cfg.timer.tick_interval_seconds
        while True:
            try:
                await asyncio.sleep(interval)
                await self.tick_timer()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("timer tick failed")
                continue

    # popup

    async def popup_snapshot(self) -> dict[str, Any]:
        async with self._popup_lock:
            return self.playlist.snapshot()

    async def set_popup_state(
        self, *, is_active: bool | None = None, selected_videos: list[str] | None = None
    ) -> dict[str, Any]:
        async with self._popup_lock:
            self.playlist.set_state(is_active=is_active, selected_videos=selected_videos)
            self._popup_ready = None
            snap = self.playlist.snapshot()
        await self.ws.broadcast("popup", {"state": snap, "video": None})
        return snap

    async def current_popup(self) -> str | None:
        async with self._popup_lock:
            return self.playlist.get_current()

    async def popup_ended(self) -> bool:
        async with self._popup_lock:
            advanced = self.playlist.on_video_ended()
            self._popup_ready = None
            snap = self.playlist.snapshot()
        if advanced:
            await self.ws.broadcast("popup", {"state": snap, "video": None})
        return advanced

    async def check_popup(self) -> str | None:
        """
        Surface a video that became ready (cooldown over) without waiting for
        the overlay to poll. Returns the video the first time it is seen ready.
        """
        async with self._popup_lock:
            video = self.playlist.get_current()
            fresh = video is not None and video != self._popup_ready
            self._popup_ready = video
            snap = self.playlist.snapshot()
        if fresh:
            logger.info("popup ready: %s", video)
            await self.ws.broadcast("popup", {"state": snap, "video": video})
            return video
        return None

    def available_videos(self) -> list[str]:
        return list_videos(self.video_dir)

    async def _popup_loop(self) -> None:
        interval = self.cfg.popup.check_interval_seconds
        while True:
            try:
                await asyncio.sleep(interval)
                await self.check_popup()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("popup check failed")
                continue

    # auth

    def verify(self, code: str, session_id: str) -> VerifyResult:
        return self.sessions.issue_session(code, session_id)
