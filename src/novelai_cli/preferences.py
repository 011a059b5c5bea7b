from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .gen.storage import app_data_dir
from .io import read_yaml, write_yaml

logger = logging.getLogger(__name__)

PREFERENCES_FILENAME = "preferences.yaml"
SAVE_PATH_KEY = "save_path"


class PreferenceStore:
    """Small YAML-backed key/value store that survives between sessions."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path if path is not None else app_data_dir() / PREFERENCES_FILENAME

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return read_yaml(self.path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, e)
            return {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        write_yaml(self.path, data)

    def get_save_path(self) -> Optional[str]:
        value = self.get(SAVE_PATH_KEY)
        return str(value) if value else None

    def set_save_path(self, path: str | Path | None) -> None:
        self.set(SAVE_PATH_KEY, str(Path(path).expanduser()) if path else None)
