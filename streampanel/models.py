from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class TimerStartIn(BaseModel):
    # Range is checked by TimerEngine so bad values map to InvalidArgument.
    minutes: Any = None


class TimerLanguageIn(BaseModel):
    language: Any = None


class PopupStateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool | None = Field(default=None, alias="isActive")
    selected_videos: list[str] | None = Field(default=None, alias="selectedVideos")


class AuthVerifyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = ""
    session_id: str = Field(min_length=1, alias="sessionId")


class MusicVolumeIn(BaseModel):
    volume: StrictInt = Field(ge=0, le=100)
