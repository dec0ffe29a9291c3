from __future__ import annotations

from pathlib import Path

from .config import CONFIG_PATH, DEFAULT_CONFIG, load_config, resolve_dir, save_config


def ensure_first_run_files(project_root: Path) -> None:
    """
    Ensure ./config.yaml and the media directories exist.
    - config.yaml is generated with defaults (auth disabled, music unconfigured)
    - avatar and video directories are created empty
    """
    config_path = project_root / CONFIG_PATH
    if not config_path.exists():
        save_config(DEFAULT_CONFIG, config_path)

    cfg = load_config(config_path)
    for raw in (cfg.auth.avatar_dir, cfg.popup.video_dir):
        resolve_dir(project_root, raw).mkdir(parents=True, exist_ok=True)
