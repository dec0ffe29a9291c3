from __future__ import annotations


class PanelError(Exception):
    """Base class for per-request failures. Never fatal to the process."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": type(self).__name__, "detail": self.message}


class InvalidArgument(PanelError):
    status_code = 400


class InvalidState(PanelError):
    status_code = 400


class Unauthorized(PanelError):
    status_code = 401


class RemoteServiceError(PanelError):
    status_code = 502
