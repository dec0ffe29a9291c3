from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH = "config.yaml"


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass(frozen=True)
class AuthConfig:
    totp_secret: str = ""  # empty = auth disabled, everyone is a guest
    valid_window: int = 2  # accepted time steps either side of now
    avatar_dir: str = "./avatars"
    operator_name: str = "Operator"


@dataclass(frozen=True)
class TimerConfig:
    tick_interval_seconds: float = 1.0
    auto_extend_grace_seconds: int = 30
    auto_extend_minutes: int = 5


@dataclass(frozen=True)
class PopupConfig:
    video_dir: str = "./videos"
    cooldown_minutes: int = 10
    check_interval_seconds: float = 60.0


@dataclass(frozen=True)
class MusicConfig:
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    api_base: str = "https://api.spotify.com/v1"
    token_url: str = "https://accounts.spotify.com/api/token"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig = ServerConfig()
    auth: AuthConfig = AuthConfig()
    timer: TimerConfig = TimerConfig()
    popup: PopupConfig = PopupConfig()
    music: MusicConfig = MusicConfig()


DEFAULT_CONFIG = AppConfig()


def load_config(path: Path) -> AppConfig:
    data = {}
    if path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return _parse_config_dict(data)


def save_config(cfg: AppConfig, path: Path) -> None:
    path.write_text(
        yaml.safe_dump(_to_dict(cfg), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def resolve_dir(project_root: Path, raw: str) -> Path:
    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = project_root / p
    return p


def _positive(value: Any, default: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def _parse_config_dict(d: dict[str, Any]) -> AppConfig:
    server = d.get("server") or {}
    auth = d.get("auth") or {}
    timer = d.get("timer") or {}
    popup = d.get("popup") or {}
    music = d.get("music") or {}

    dflt = DEFAULT_CONFIG
    return AppConfig(
        server=ServerConfig(
            host=str(server.get("host", dflt.server.host)),
            port=int(server.get("port", dflt.server.port)),
        ),
        auth=AuthConfig(
            totp_secret=str(auth.get("totp_secret") or ""),
            valid_window=max(0, int(auth.get("valid_window", dflt.auth.valid_window))),
            avatar_dir=str(auth.get("avatar_dir", dflt.auth.avatar_dir)),
            operator_name=str(auth.get("operator_name", dflt.auth.operator_name)),
        ),
        timer=TimerConfig(
            tick_interval_seconds=_positive(timer.get("tick_interval_seconds"), dflt.timer.tick_interval_seconds),
            auto_extend_grace_seconds=int(
                _positive(timer.get("auto_extend_grace_seconds"), dflt.timer.auto_extend_grace_seconds)
            ),
            auto_extend_minutes=int(_positive(timer.get("auto_extend_minutes"), dflt.timer.auto_extend_minutes)),
        ),
        popup=PopupConfig(
            video_dir=str(popup.get("video_dir", dflt.popup.video_dir)),
            cooldown_minutes=int(_positive(popup.get("cooldown_minutes"), dflt.popup.cooldown_minutes)),
            check_interval_seconds=_positive(popup.get("check_interval_seconds"), dflt.popup.check_interval_seconds),
        ),
        music=MusicConfig(
            client_id=str(music.get("client_id") or ""),
            client_secret=str(music.get("client_secret") or ""),
            refresh_token=str(music.get("refresh_token") or ""),
            api_base=str(music.get("api_base", dflt.music.api_base)),
            token_url=str(music.get("token_url", dflt.music.token_url)),
            timeout_seconds=_positive(music.get("timeout_seconds"), dflt.music.timeout_seconds),
        ),
    )


def _to_dict(cfg: AppConfig) -> dict[str, Any]:
    return {
        "server": {"host": cfg.server.host, "port": cfg.server.port},
        "auth": {
            "totp_secret": cfg.auth.totp_secret,
            "valid_window": cfg.auth.valid_window,
            "avatar_dir": cfg.auth.avatar_dir,
            "operator_name": cfg.auth.operator_name,
        },
        "timer": {
            "tick_interval_seconds": cfg.timer.tick_interval_seconds,
            "auto_extend_grace_seconds": cfg.timer.auto_extend_grace_seconds,
            "auto_extend_minutes": cfg.timer.auto_extend_minutes,
        },
        "popup": {
            "video_dir": cfg.popup.video_dir,
            "cooldown_minutes": cfg.popup.cooldown_minutes,
            "check_interval_seconds": cfg.popup.check_interval_seconds,
        },
        "music": {
            "client_id": cfg.music.client_id,
            "client_secret": cfg.music.client_secret,
            "refresh_token": cfg.music.refresh_token,
            "api_base": cfg.music.api_base,
            "token_url": cfg.music.token_url,
            "timeout_seconds": cfg.music.timeout_seconds,
        },
    }
