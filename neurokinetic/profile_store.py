from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from .cognitive_core import ComplexityLevel
from . import config

log = logging.getLogger(__name__)

STORAGE_KEY = "neurokinetic_stream_data"


class ProfileStore:
    """Persists the single resume level of the continuous protocol.

    Reads never raise: a missing, unreadable or malformed file yields
    BASELINE. Writes are best effort.
    """

    _version = 1

    def __init__(self, path: Path) -> None:
        self._path = path

    @classmethod
    def default_path(cls) -> Path:
        return config.profile_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ComplexityLevel:
        try:
            if not self._path.exists():
                return ComplexityLevel.BASELINE
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except Exception:
            log.warning("unreadable profile at %s, using baseline", self._path)
            return ComplexityLevel.BASELINE

        entry = payload.get(STORAGE_KEY) if isinstance(payload, dict) else None
        raw = entry.get("complexity") if isinstance(entry, dict) else None
        if isinstance(raw, bool) or not isinstance(raw, int):
            log.warning("malformed profile at %s, using baseline", self._path)
            return ComplexityLevel.BASELINE
        try:
            return ComplexityLevel(raw)
        except ValueError:
            log.warning("profile level %r out of range, using baseline", raw)
            return ComplexityLevel.BASELINE

    def save(self, level: ComplexityLevel) -> None:
        payload: dict[str, object] = {}
        try:
            existing = json.loads(self._path.read_text(encoding="utf-8")) if self._path.exists() else None
        except Exception:
            existing = None
        if isinstance(existing, dict):
            payload = existing
        payload["version"] = self._version
        payload[STORAGE_KEY] = {"complexity": int(level), "last_played": int(time.time() * 1000)}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except Exception:
            log.warning("could not write profile to %s", self._path, exc_info=True)


class MemoryProfileStore:
    """In-process store for tests and sessions that should not persist."""

    def __init__(self, level: ComplexityLevel = ComplexityLevel.BASELINE) -> None:
        self.level = ComplexityLevel(level)
        self.saves: list[ComplexityLevel] = []

    def load(self) -> ComplexityLevel:
        return self.level

    def save(self, level: ComplexityLevel) -> None:
        self.level = ComplexityLevel(level)
        self.saves.append(self.level)
