from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from schemas.resume import HistoryEntry, ResumeData

logger = logging.getLogger(__name__)

FILE_PREFIX = "resume_"


class HistoryStore:
    """Tailored resume snapshots kept as ``resume_<epoch-millis>.json`` files."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def persist(self, data: ResumeData) -> HistoryEntry:
        self.directory.mkdir(parents=True, exist_ok=True)
        millis = time.time_ns() // 1_000_000
        path = self._path_for(millis)
        while path.exists():
            millis += 1
            path = self._path_for(millis)
        path.write_text(data.to_json(), encoding="utf-8")
        logger.info("Saved resume snapshot to %s", path)
        return HistoryEntry(resume_data=data, created_at=_from_millis(millis), path=path)

    def list(self) -> List[HistoryEntry]:
        """Return stored snapshots, newest first. Unreadable files are skipped."""
        if not self.directory.exists():
            return []
        entries = []
        for path in self.directory.glob(f"{FILE_PREFIX}*.json"):
            entry = self._read(path)
            if entry is not None:
                entries.append(entry)
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def load(self, entry: HistoryEntry) -> ResumeData:
        if entry.path is None:
            return entry.resume_data
        return ResumeData.model_validate_json(entry.path.read_text(encoding="utf-8"))

    def delete(self, entry: HistoryEntry) -> None:
        if entry.path is not None and entry.path.exists():
            entry.path.unlink()
            logger.info("Deleted resume snapshot %s", entry.path)

    def _path_for(self, millis: int) -> Path:
        return self.directory / f"{FILE_PREFIX}{millis}.json"

    def _read(self, path: Path) -> Optional[HistoryEntry]:
        try:
            millis = int(path.stem[len(FILE_PREFIX):])
            data = ResumeData.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValueError, OSError, ValidationError) as exc:
            logger.warning("Skipping unreadable history file %s: %s", path, exc)
            return None
        return HistoryEntry(resume_data=data, created_at=_from_millis(millis), path=path)


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
