"""Settings lookup and the baseline generation request.

Settings come from ``FLEECE_<NAME>`` environment variables (``.env`` files are
loaded first, without overriding the real environment) and then from the
``"fleece"`` section of ``settings.json`` in the user config directory.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fleece.constants import (
    DEFAULT_CONNECT_WINDOW,
    DEFAULT_MARKER_STRIP_WIDTH,
    DEFAULT_MODEL,
    DEFAULT_START_COMMAND,
    DEFAULT_STARTUP_DELAY,
    DEFAULT_TERMINAL_NAME,
    DEFAULT_URL,
)
from fleece.paths import env_file, settings_file

logger = logging.getLogger(__name__)

SETTINGS_SECTION = "fleece"
ENV_PREFIX = "FLEECE_"


def _read_settings_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    section = data.get(SETTINGS_SECTION) if isinstance(data, dict) else None
    return section if isinstance(section, dict) else {}


class SettingsSource:
    """``get_setting(name)`` over environment and the settings file."""

    def __init__(self, path: Optional[Path] = None, *, load_env: bool = True) -> None:
        if load_env:
            load_dotenv(env_file(), override=False)
            load_dotenv(override=False)
        self._values = _read_settings_file(path or settings_file())

    def get_setting(self, name: str) -> Any:
        """Return the configured value, or ``False`` when unset."""
        env_value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if env_value:
            return env_value
        value = self._values.get(name)
        if value is None or value == "":
            return False
        return value


class GenerationConfig(BaseModel):
    """Baseline sampling parameters sent with every request."""

    model_config = ConfigDict(protected_namespaces=())

    n_predict: int = 50
    top_k: int = 20
    top_p: float = 0.9
    repeat_last_n: int = 5
    repeat_penalty: float = 1.5
    temp: float = 0.5
    # Machine dependent; override per host.
    model: str = DEFAULT_MODEL
    threads: int = 4


class FleeceSettings(BaseModel):
    url: str = DEFAULT_URL
    model: str = DEFAULT_MODEL
    start_command: str = DEFAULT_START_COMMAND
    terminal_name: str = DEFAULT_TERMINAL_NAME
    startup_delay: float = Field(default=DEFAULT_STARTUP_DELAY, ge=0)
    marker_strip_width: int = Field(default=DEFAULT_MARKER_STRIP_WIDTH, ge=0)
    connect_window: float = Field(default=DEFAULT_CONNECT_WINDOW, ge=0)

    model_config = ConfigDict(protected_namespaces=())

    def generation_config(self) -> GenerationConfig:
        return GenerationConfig(model=self.model)


def load_settings(source: Optional[SettingsSource] = None) -> FleeceSettings:
    """Resolve every known setting; an invalid value falls back to its own default."""
    source = source or SettingsSource()
    raw = {
        name: value
        for name in FleeceSettings.model_fields
        if (value := source.get_setting(name)) is not False
    }
    try:
        return FleeceSettings.model_validate(raw)
    except ValidationError as exc:
        invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        logger.warning("Invalid fleece settings %s, using their defaults: %s", ", ".join(invalid), exc)
        return FleeceSettings.model_validate({k: v for k, v in raw.items() if k not in invalid})
