"""User settings stored as JSON in the application data directory."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .core.models import ARCHIVE_NAME

logger = logging.getLogger(__name__)

APP_NAME = "sitepacker"


def app_data_dir() -> Path:
    """Return the platform-specific application data directory."""
    override = os.getenv("SITEPACKER_HOME")
    if override:
        target = Path(override)
    else:
        if os.name == "nt":
            base = Path(os.getenv("LOCALAPPDATA", Path.home()))
        else:
            base = Path.home() / ".local" / "share"
        target = base / APP_NAME
    target.mkdir(parents=True, exist_ok=True)
    return target


def settings_path() -> Path:
    return app_data_dir() / "settings.json"


@dataclass
class Settings:
    model: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    timeout: float = 60.0
    retries: int = 1
    max_workers: int = 4
    archive_name: str = ARCHIVE_NAME

    @property
    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {f.name for f in fields(cls)}
        defaults = cls()
        values = {}
        for key in known:
            if key not in data:
                continue
            expected = type(getattr(defaults, key))
            try:
                values[key] = expected(data[key])
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid setting %s=%r", key, data[key])
        return cls(**values)


class SettingsManager:
    """Very small settings helper storing JSON data."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else settings_path()
        self.settings = Settings()
        self.load()

    def load(self) -> None:
        data: dict = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Could not read settings from %s: %s", self.path, exc)
                data = {}
            if not isinstance(data, dict):
                data = {}
        self.settings = Settings.from_dict(data)

        if set(self.settings.to_dict()) - set(data):
            try:
                self.save()
            except OSError as exc:
                logger.debug("Could not write default settings: %s", exc)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.settings.to_dict(), indent=2), encoding="utf-8")

    def get(self, key: str, default=None):
        return getattr(self.settings, key, default)

    def set(self, key: str, value) -> None:
        if not hasattr(self.settings, key):
            raise KeyError(key)
        data = self.settings.to_dict()
        data[key] = value
        self.settings = Settings.from_dict(data)
        self.save()
