"""Configuration loading helpers for balatro-wiki."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import WikiConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "config.yaml"
HOME_ENV_VAR = "BALATRO_WIKI_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve the data home and the files kept inside it."""

    home: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if self.home is not None:
            root = Path(self.home).expanduser()
        elif env_root:
            root = Path(env_root).expanduser()
        else:
            root = Path("~/.cache/balatro-wiki").expanduser()
        self.home = root.resolve()
        self.logs_dir = (self.home / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.home, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None, path: Path | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self.path = path or self.locator.config_path()
        self._cache: WikiConfig | None = None

    def load(self) -> WikiConfig:
        if self._cache is not None:
            return self._cache
        if self.path.exists():
            if self.path.suffix not in CONFIG_EXTENSIONS:
                raise ValueError(f"Unsupported configuration format: {self.path}")
            try:
                config = WikiConfig.model_validate(_read_file(self.path))
            except ValidationError as exc:
                raise ValueError(f"Invalid configuration in {self.path}: {exc}") from exc
        else:
            config = WikiConfig()
            self.save(config)
        self._cache = config
        return config

    def save(self, config: WikiConfig) -> Path:
        _write_file(self.path, config.model_dump(mode="json"))
        self._cache = config
        return self.path

    def cache_path(self) -> Path:
        return self.load().resolved_cache_path(self.locator.home)


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR"]
