"""In-memory target directory, optionally seeded from a JSON inventory file."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from fleetcmd.models.target import Target
from fleetcmd.utils.logging import get_logger

log = get_logger(__name__)

_TARGET_LIST = TypeAdapter(list[Target])


class TargetDirectory:
    def __init__(self) -> None:
        self._targets: dict[str, Target] = {}
        self._lock = threading.Lock()

    def add(self, target: Target) -> Target:
        with self._lock:
            self._targets[target.id] = target
        return target

    def get(self, target_id: str) -> Optional[Target]:
        with self._lock:
            return self._targets.get(target_id)

    def list(self) -> list[Target]:
        with self._lock:
            return list(self._targets.values())

    def load_file(self, path: str | Path) -> int:
        """Load ``[{"id": ..., "host": ..., "user": ...}, ...]``; returns count."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        targets = _TARGET_LIST.validate_python(raw)
        for target in targets:
            self.add(target)
        log.info("targets.loaded", path=str(path), count=len(targets))
        return len(targets)


# Singleton
target_directory = TargetDirectory()
