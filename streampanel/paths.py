from __future__ import annotations

from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent


def static_dir(project_root_path: Path) -> Path:
    """
    Return the directory that holds controller.html / overlay.html.

    A `static/` next to config.yaml wins so pages can be customised in place;
    otherwise the pages shipped inside the package are used.
    """
    p = project_root_path / "static"
    if p.is_dir():
        return p
    return PACKAGE_DIR / "static"
