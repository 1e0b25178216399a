"""JSON file storage for moderation settings."""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Settings could not be written."""


class SettingsFile:
    """Reads and writes the persisted policy as a JSON document."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        """Load saved settings.

        A missing, unreadable or malformed file yields an empty mapping so the
        caller falls back to defaults.
        """
        if not self.path.exists():
            logger.info(f"No settings file at {self.path}, using defaults")
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.path}: expected an object")
            return {}

        logger.info(f"Loaded {len(data)} settings from {self.path}")
        return data

    def save(self, data: dict[str, Any]) -> None:
        """Write settings atomically (temp file, then replace)."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to save settings to {self.path}: {e}") from e
        logger.debug(f"Saved settings to {self.path}")
