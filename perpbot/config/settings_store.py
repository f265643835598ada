"""Persisted key-value settings.

The headless runner reads bot overrides from the `volume_bot` section. The
file path comes from `Settings.settings_file` and otherwise defaults to
`PB_SETTINGS_FILE` (`config.yaml`). A missing file loads as an empty mapping;
`save()` replaces the whole file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol

import yaml


class SettingsStore(Protocol):
    def load(self) -> Dict[str, Any]: ...

    def save(self, data: Mapping[str, Any]) -> bool: ...


class YamlSettingsStore:
    def __init__(self, path: str | None = None) -> None:
        if path is None:
            path = os.getenv("PB_SETTINGS_FILE", "config.yaml")
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a mapping")
        return data

    def save(self, data: Mapping[str, Any]) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(dict(data), fh, sort_keys=True, allow_unicode=True)
        os.replace(tmp, self.path)
        return True
