from __future__ import annotations

from pathlib import Path

VIDEO_SUFFIXES = (".mp4", ".webm", ".mov", ".mkv")
AVATAR_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp")


def _scan(directory: Path, suffixes: tuple[str, ...]) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in suffixes),
        key=lambda p: p.name.lower(),
    )


def list_videos(directory: Path) -> list[str]:
    return [p.name for p in _scan(directory, VIDEO_SUFFIXES)]


def find_avatar(directory: Path) -> Path | None:
    """First image in the avatar directory, by name."""
    files = _scan(directory, AVATAR_SUFFIXES)
    return files[0] if files else None


def resolve_video(directory: Path, name: str) -> Path | None:
    """
    Map a client-supplied video name to a file inside `directory`.
    Anything that is not a plain file name in that directory yields None.
    """
    if not name or name != Path(name).name or name.startswith("."):
        return None
    p = directory / name
    if not p.is_file() or p.suffix.lower() not in VIDEO_SUFFIXES:
        return None
    return p
