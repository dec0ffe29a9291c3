from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from .auth import Identity
from .bootstrap import ensure_first_run_files
from .clock import Clock
from .config import AppConfig
from .context import AppContext
from .errors import PanelError
from .media import resolve_video
from .models import AuthVerifyIn, MusicVolumeIn, PopupStateIn, TimerLanguageIn, TimerStartIn
from .paths import static_dir

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


def build_app(project_root: Path, *, cfg: AppConfig | None = None, clock: Clock | None = None) -> FastAPI:
    if cfg is None:
        ensure_first_run_files(project_root)
    app = FastAPI(title="streampanel")
    ctx = AppContext(project_root, cfg=cfg, clock=clock)
    app.state.ctx = ctx

    pages_dir = static_dir(project_root)

    @app.on_event("startup")
    async def _startup() -> None:
        await ctx.start_background_tasks()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await ctx.shutdown()

    @app.exception_handler(PanelError)
    async def _panel_error(request: Request, exc: PanelError) -> JSONResponse:
        logger.warning(
            "%s %s rejected (%d %s): %s",
            request.method,
            request.url.path,
            exc.status_code,
            type(exc).__name__,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def require_session(x_session_id: str | None = Header(default=None, alias=SESSION_HEADER)) -> Identity:
        return ctx.sessions.authorize(x_session_id)

    def _page(name: str) -> FileResponse:
        p = pages_dir / name
        if not p.exists():
            raise HTTPException(status_code=500, detail=f"missing static file: {name}")
        return FileResponse(p)

    @app.get("/controller", response_class=HTMLResponse)
    async def controller_page() -> Any:
        return _page("controller.html")

    @app.get("/overlay", response_class=HTMLResponse)
    async def overlay_page() -> Any:
        return _page("overlay.html")

    @app.get("/media/videos/{name}")
    async def video_file(name: str) -> FileResponse:
        p = resolve_video(ctx.video_dir, name)
        if p is None:
            raise HTTPException(status_code=404, detail="not found")
        return FileResponse(p)

    # timer

    @app.get("/api/timer")
    async def api_timer(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return (await ctx.timer_snapshot()).to_dict()

    @app.get("/api/timer/public")
    async def api_timer_public() -> dict[str, Any]:
        return (await ctx.timer_snapshot()).to_dict()

    @app.post("/api/timer/start")
    async def api_timer_start(body: TimerStartIn, _: Identity = Depends(require_session)) -> dict[str, Any]:
        return (await ctx.start_timer(body.minutes)).to_dict()

    @app.post("/api/timer/pause")
    async def api_timer_pause(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return (await ctx.pause_timer()).to_dict()

    @app.post("/api/timer/resume")
    async def api_timer_resume(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return (await ctx.resume_timer()).to_dict()

    @app.post("/api/timer/reset")
    async def api_timer_reset(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return (await ctx.reset_timer()).to_dict()

    @app.post("/api/timer/language")
    async def api_timer_language(body: TimerLanguageIn, _: Identity = Depends(require_session)) -> dict[str, Any]:
        return {"language": await ctx.set_language(body.language)}

    # popup

    @app.get("/api/popup/state")
    async def api_popup_state(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return await ctx.popup_snapshot()

    @app.post("/api/popup/state")
    async def api_popup_set_state(body: PopupStateIn, _: Identity = Depends(require_session)) -> dict[str, Any]:
        return await ctx.set_popup_state(is_active=body.is_active, selected_videos=body.selected_videos)

    @app.get("/api/popup/videos")
    async def api_popup_videos(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return {"videos": ctx.available_videos()}

    @app.get("/api/popup/current")
    async def api_popup_current() -> dict[str, Any]:
        return {"video": await ctx.current_popup()}

    @app.post("/api/popup/ended")
    async def api_popup_ended() -> dict[str, Any]:
        await ctx.popup_ended()
        return {"success": True}

    # auth

    @app.post("/api/auth/verify")
    async def api_auth_verify(body: AuthVerifyIn) -> dict[str, Any]:
        return ctx.verify(body.code, body.session_id).to_dict()

    @app.get("/api/auth/status")
    async def api_auth_status(x_session_id: str | None = Header(default=None, alias=SESSION_HEADER)) -> dict[str, Any]:
        user = ctx.sessions.lookup(x_session_id)
        return {
            "authEnabled": ctx.sessions.enabled,
            "authenticated": user is not None,
            "user": user.to_dict() if user else None,
        }

    @app.post("/api/auth/logout")
    async def api_auth_logout(
        x_session_id: str | None = Header(default=None, alias=SESSION_HEADER), _: Identity = Depends(require_session)
    ) -> dict[str, Any]:
        ctx.sessions.revoke(x_session_id)
        return {"success": True}

    # music

    @app.get("/api/music/state")
    async def api_music_state(_: Identity = Depends(require_session)) -> dict[str, Any]:
        return await ctx.music.get_playback_state()

    @app.post("/api/music/play")
    async def api_music_play(_: Identity = Depends(require_session)) -> dict[str, Any]:
        await ctx.music.play()
        return {"success": True}

    @app.post("/api/music/pause")
    async def api_music_pause(_: Identity = Depends(require_session)) -> dict[str, Any]:
        await ctx.music.pause()
        return {"success": True}

    @app.post("/api/music/skip")
    async def api_music_skip(_: Identity = Depends(require_session)) -> dict[str, Any]:
        await ctx.music.skip()
        return {"success": True}

    @app.post("/api/music/volume")
    async def api_music_volume(body: MusicVolumeIn, _: Identity = Depends(require_session)) -> dict[str, Any]:
        return {"success": True, "volume": await ctx.music.set_volume(body.volume)}

    @app.websocket("/ws")
    async def ws_endpoint(ws: WebSocket) -> None:
        await ws.accept()
        await ctx.ws.add(ws)
        timer = await ctx.timer_snapshot()
        popup = await ctx.popup_snapshot()
        await ws.send_text(json.dumps({"type": "timer", **timer.to_dict()}, ensure_ascii=False))
        await ws.send_text(json.dumps({"type": "popup", "state": popup, "video": None}, ensure_ascii=False))
        try:
            while True:
                # Keepalive / ignore client messages.
                _ = await ws.receive_text()
        except asyncio.CancelledError:
            await ctx.ws.remove(ws)
            return
        except WebSocketDisconnect:
            await ctx.ws.remove(ws)
        except Exception:
            await ctx.ws.remove(ws)

    @app.get("/", response_class=HTMLResponse)
    async def root() -> Any:
        return _page("controller.html")

    return app
