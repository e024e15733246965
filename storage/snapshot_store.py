from __future__ import annotations

import json
import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from settings import get_settings

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Keyed JSON snapshots, each key fully replaced on every write.

    With a ``root_path`` each key lives in ``<root>/<key>.json`` and is written
    through a temporary file and ``os.replace`` so a reader sees either the old
    or the new document. Without one the store is memory-only.
    """

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self._snapshots: Dict[str, str] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def put(self, key: str, payload: Any) -> bool:
        """Replace the snapshot stored under ``key``; report success."""
        try:
            text = json.dumps(payload, indent=2, sort_keys=True, default=str)
        except (TypeError, ValueError) as exc:
            logger.warning("Snapshot not serializable", extra={"state_key": key, "reason": str(exc)})
            return False

        with self._lock:
            if self.root_path:
                try:
                    self._atomic_write(self._path_for(key), text)
                except OSError as exc:
                    logger.warning("Snapshot write failed", extra={"state_key": key, "reason": str(exc)})
                    return False
            self._snapshots[key] = text
        return True

    def get(self, key: str) -> Optional[Any]:
        """Return the decoded snapshot, or ``None`` when absent or unreadable."""
        with self._lock:
            text = self._snapshots.get(key)

        if text is None and self.root_path:
            path = self._path_for(key)
            if not path.exists():
                return None
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Snapshot read failed", extra={"state_key": key, "reason": str(exc)})
                return None
            with self._lock:
                self._snapshots[key] = text

        if text is None:
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Snapshot is malformed", extra={"state_key": key, "reason": str(exc)})
            return None

    def _path_for(self, key: str) -> Path:
        assert self.root_path is not None
        return self.root_path / f"{key}.json"

    @staticmethod
    def _atomic_write(path: Path, text: str) -> None:
        fd, tmp = tempfile.mkstemp(prefix=f".{path.stem}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp, path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> SnapshotStore:
    settings = get_settings()
    state_root = settings.state_root_path if root_path is None else root_path
    path = Path(state_root) if state_root else None
    return SnapshotStore(root_path=path)
