"""Configuration loading helpers for the batch scraper."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .models import ScraperSettings

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
SETTINGS_FILENAME = "settings.yaml"
HOME_ENV_VAR = "BATCH_SCRAPER_HOME"


def _read_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project home."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def settings_path(self) -> Path:
        return self.data_dir / SETTINGS_FILENAME


class ConfigRepository:
    """Repository encapsulating settings IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._settings_cache: ScraperSettings | None = None

    def load_settings(self) -> ScraperSettings:
        if self._settings_cache is not None:
            return self._settings_cache
        path = self.locator.settings_path()
        if path.exists():
            payload = _read_file(path) or {}
            if not isinstance(payload, dict):
                raise ValueError(f"Configuration file must contain a mapping: {path}")
            settings = ScraperSettings.model_validate(payload)
        else:
            settings = ScraperSettings()
            self.save_settings(settings)
        self._settings_cache = settings
        return settings

    def save_settings(self, settings: ScraperSettings) -> None:
        path = self.locator.settings_path()
        _write_file(path, settings.model_dump(mode="json"))
        self._settings_cache = settings

    def store_path(self, settings: ScraperSettings | None = None) -> Path:
        settings = settings or self.load_settings()
        return settings.store.resolved_path(self.locator.project_root)

    @staticmethod
    def load_request_file(path: Path) -> dict[str, Any]:
        """Read a batch request (``urls``/``label``/``config``) from YAML or JSON.

        A bare list is accepted as the ``urls`` field.
        """

        if path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported request file type: {path.suffix}")
        payload = _read_file(path)
        if isinstance(payload, list):
            return {"urls": payload}
        if not isinstance(payload, dict):
            raise ValueError(f"Request file must contain a mapping or a list: {path}")
        return payload

    @staticmethod
    def load_mapping_file(path: Path) -> dict[str, Any]:
        if path.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported config file type: {path.suffix}")
        payload = _read_file(path) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"Configuration file must contain a mapping: {path}")
        return payload


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR"]
