from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pyotp

from .errors import InvalidArgument, Unauthorized
from .media import find_avatar

logger = logging.getLogger(__name__)

GUEST_NAME = "Guest"


@dataclass(frozen=True)
class Identity:
    name: str
    avatar: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "avatar": self.avatar}


GUEST = Identity(name=GUEST_NAME)


@dataclass(frozen=True)
class VerifyResult:
    success: bool
    user: Identity | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.user is not None:
            out["user"] = self.user.to_dict()
        return out


def avatar_identity(avatar_dir: Path, fallback_name: str) -> Callable[[], Identity]:
    """
    Identity resolver backed by the avatar directory: the first image names the
    operator (file stem) and is their avatar.
    """

    def _resolve() -> Identity:
        p = find_avatar(avatar_dir)
        if p is None:
            return Identity(name=fallback_name)
        return Identity(name=p.stem, avatar=p.name)

    return _resolve


class SessionGate:
    """
    Maps opaque session tokens to identities. A single shared TOTP secret
    grants sessions; an empty secret disables auth and everyone is a guest.
    Sessions never expire; they live as long as the process.
    """

    def __init__(
        self,
        totp_secret: str,
        *,
        valid_window: int = 2,
        resolve_identity: Callable[[], Identity] | None = None,
    ) -> None:
        secret = (totp_secret or "").strip()
        self._totp = pyotp.TOTP(secret) if secret else None
        self.valid_window = valid_window
        self._resolve_identity = resolve_identity or (lambda: Identity(name="Operator"))
        self._sessions: dict[str, Identity] = {}

    @property
    def enabled(self) -> bool:
        return self._totp is not None

    def issue_session(self, code: str, token: str) -> VerifyResult:
        token = (token or "").strip()
        if not token:
            raise InvalidArgument("sessionId is required")

        if self._totp is None:
            self._sessions[token] = GUEST
            return VerifyResult(success=True, user=GUEST)

        code = (code or "").strip().replace(" ", "")
        if not code or not self._totp.verify(code, valid_window=self.valid_window):
            logger.warning("rejected one-time code for session %s...", token[:6])
            return VerifyResult(success=False)

        identity = self._resolve_identity()
        self._sessions[token] = identity
        logger.info("session issued for %s", identity.name)
        return VerifyResult(success=True, user=identity)

    def authorize(self, token: str | None) -> Identity:
        if self._totp is None:
            return GUEST
        identity = self._sessions.get(token or "")
        if identity is None:
            raise Unauthorized("missing or invalid session")
        return identity

    def lookup(self, token: str | None) -> Identity | None:
        try:
            return self.authorize(token)
        except Unauthorized:
            return None

    def revoke(self, token: str | None) -> bool:
        return self._sessions.pop(token or "", None) is not None
