"""File-based checkpoint/resume support for batch runs."""

from __future__ import annotations

from pathlib import Path

import orjson


class Checkpoint:
    """Tracks which (variant, feature) units have finished so a run can resume.

    A checkpoint is bound to a run *fingerprint*. Progress recorded under a
    different fingerprint is not loaded and ``stale`` is set instead.
    """

    def __init__(self, path: Path, fingerprint: str | None = None) -> None:
        self._path = path
        self.fingerprint = fingerprint
        self.stale = False
        self._done: set[str] = set()
        if self._path.exists():
            data = orjson.loads(self._path.read_bytes())
            if data.get("fingerprint") == fingerprint:
                self._done = set(data.get("done", []))
            else:
                self.stale = True

    @staticmethod
    def unit_key(variant: str, feature_id: str) -> str:
        return f"{variant}\t{feature_id}"

    def is_done(self, key: str) -> bool:
        return key in self._done

    def mark_done(self, key: str) -> None:
        self._done.add(key)
        self._save()

    def __len__(self) -> int:
        return len(self._done)

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(
            orjson.dumps({"fingerprint": self.fingerprint, "done": sorted(self._done)})
        )
        tmp.replace(self._path)

    def reset(self) -> None:
        self._done.clear()
        self.stale = False
        if self._path.exists():
            self._path.unlink()
