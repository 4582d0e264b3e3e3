"""Per-user locations for fleece settings and logs (via platformdirs)."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "fleece"
SETTINGS_FILE_NAME = "settings.json"
ENV_FILE_NAME = ".env"
SERVER_LOG_NAME = "server.log"


def _dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    return ensure_dir(Path(_dirs().user_config_path))


def log_dir() -> Path:
    return ensure_dir(Path(_dirs().user_log_path))


def settings_file() -> Path:
    """JSON settings file holding a top-level ``"fleece"`` section."""
    return config_dir() / SETTINGS_FILE_NAME


def env_file() -> Path:
    return config_dir() / ENV_FILE_NAME


def server_log_file() -> Path:
    """Where the console host writes the inference server's output."""
    return log_dir() / SERVER_LOG_NAME
