from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from .config import MusicConfig
from .errors import InvalidArgument, RemoteServiceError

logger = logging.getLogger(__name__)


class MusicClient:
    """
    Thin proxy to a Spotify-style Web API player.

    Any failure (network, HTTP status, missing config) surfaces as
    RemoteServiceError; callers never see aiohttp exceptions.
    """

    def __init__(self, cfg: MusicConfig, *, session: aiohttp.ClientSession | None = None) -> None:
        self.cfg = cfg
        self._session = session
        self._own_session = session is None
        self._access_token: str | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.cfg.client_id and self.cfg.client_secret and self.cfg.refresh_token)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.cfg.timeout_seconds))
            self._own_session = True
        return self._session

    async def close(self) -> None:
        if self._own_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def refresh_token(self) -> str:
        if not self.configured:
            raise RemoteServiceError("music service is not configured")
        async with self._refresh_lock:
            try:
                async with self._get_session().post(
                    self.cfg.token_url,
                    data={"grant_type": "refresh_token", "refresh_token": self.cfg.refresh_token},
                    auth=aiohttp.BasicAuth(self.cfg.client_id, self.cfg.client_secret),
                ) as resp:
                    if resp.status != 200:
                        raise RemoteServiceError(f"token refresh failed, HTTP {resp.status}")
                    data = await resp.json()
            except aiohttp.ClientError as e:
                raise RemoteServiceError(f"token refresh failed: {e}") from e
            except asyncio.TimeoutError as e:
                raise RemoteServiceError("token refresh timed out") from e
            except ValueError as e:
                raise RemoteServiceError("token refresh returned invalid JSON") from e

            if not isinstance(data, dict):
                raise RemoteServiceError("token refresh returned an unexpected payload")
            token = data.get("access_token")
            if not token or not isinstance(token, str):
                raise RemoteServiceError("token refresh returned no access_token")
            self._access_token = token
            logger.info("music access token refreshed")
            return token

    async def _send(self, method: str, path: str, params: dict[str, Any] | None) -> tuple[int, Any]:
        """Returns (status, decoded JSON body or None)."""
        try:
            async with self._get_session().request(
                method,
                f"{self.cfg.api_base.rstrip('/')}{path}",
                params=params,
                headers={"Authorization": f"Bearer {self._access_token}"},
            ) as resp:
                if 200 <= resp.status < 300 and resp.status != 204 and resp.content_type == "application/json":
                    return resp.status, await resp.json()
                return resp.status, None
        except aiohttp.ClientError as e:
            raise RemoteServiceError(f"{method} {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise RemoteServiceError(f"{method} {path} timed out") from e
        except ValueError as e:
            raise RemoteServiceError(f"{method} {path} returned invalid JSON") from e

    async def _request(self, method: str, path: str, *, params: dict[str, Any] | None = None) -> Any:
        if self._access_token is None:
            await self.refresh_token()

        status, data = await self._send(method, path, params)
        if status == 401:
            logger.info("music access token rejected, refreshing")
            await self.refresh_token()
            status, data = await self._send(method, path, params)
        if not 200 <= status < 300:
            raise RemoteServiceError(f"{method} {path} failed, HTTP {status}")
        return data

    async def get_playback_state(self) -> dict[str, Any]:
        data = await self._request("GET", "/me/player")
        if data is None:
            return {"isPlaying": False, "track": None, "volume": None}
        if not isinstance(data, dict):
            raise RemoteServiceError("GET /me/player returned an unexpected payload")
        item = data.get("item") if isinstance(data.get("item"), dict) else {}
        device = data.get("device") if isinstance(data.get("device"), dict) else {}
        track = None
        if item:
            album = item.get("album") if isinstance(item.get("album"), dict) else {}
            images = [i for i in album.get("images") or [] if isinstance(i, dict)]
            track = {
                "name": item.get("name"),
                "artists": [a.get("name") for a in item.get("artists") or [] if isinstance(a, dict)],
                "durationMs": item.get("duration_ms"),
                "progressMs": data.get("progress_ms"),
                "image": images[0].get("url") if images else None,
            }
        return {
            "isPlaying": bool(data.get("is_playing")),
            "track": track,
            "volume": device.get("volume_percent"),
        }

    async def play(self) -> None:
        await self._request("PUT", "/me/player/play")

    async def pause(self) -> None:
        await self._request("PUT", "/me/player/pause")

    async def skip(self) -> None:
        await self._request("POST", "/me/player/next")

    async def set_volume(self, percent: int) -> int:
        if isinstance(percent, bool) or not isinstance(percent, int) or not 0 <= percent <= 100:
            raise InvalidArgument("volume must be an integer between 0 and 100")
        await self._request("PUT", "/me/player/volume", params={"volume_percent": percent})
        return percent
