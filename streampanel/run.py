from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path

import uvicorn

from .bootstrap import ensure_first_run_files
from .config import CONFIG_PATH, load_config
from .server import build_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

logger = logging.getLogger(__name__)


def _pid_is_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


def _acquire_single_instance_lock(project_root: Path) -> None:
    """
    State is process-local, so a second instance would silently run its own
    timer. Refuse to start instead.
    """
    pidfile = project_root / ".streampanel.pid"
    if pidfile.exists():
        try:
            old_pid = int(pidfile.read_text(encoding="utf-8").strip() or "0")
        except (OSError, ValueError):
            old_pid = 0
        if _pid_is_alive(old_pid) and old_pid != os.getpid():
            raise SystemExit(
                f"Another streampanel instance is already running (pid={old_pid}). "
                f"Stop it first, or delete {pidfile} if it's stale."
            )
    pidfile.write_text(str(os.getpid()), encoding="utf-8")

    def _cleanup() -> None:
        try:
            # Only delete if it's still ours.
            if pidfile.exists() and pidfile.read_text(encoding="utf-8").strip() == str(os.getpid()):
                pidfile.unlink()
        except OSError:
            pass

    atexit.register(_cleanup)


def main() -> None:
    project_root = Path.cwd()
    ensure_first_run_files(project_root)
    _acquire_single_instance_lock(project_root)

    cfg = load_config(project_root / CONFIG_PATH)
    if not cfg.auth.totp_secret:
        logger.warning("auth.totp_secret is empty: every client is treated as an authenticated guest")
    app = build_app(project_root, cfg=cfg)

    logger.info("controller at http://%s:%d/controller", cfg.server.host, cfg.server.port)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level="info")


if __name__ == "__main__":
    main()
