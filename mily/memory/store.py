"""Append-only conversation log backed by a local NDJSON file.

Each line is one ``MessageRecord``. Lines are only ever appended; recall
reads the file back and keeps the most recent well-formed records. A line
that fails to parse (for example a write cut short by a crash) is skipped
rather than treated as corruption.

Access is serialized with a process-local lock. Two processes writing the
same file are not protected from interleaving.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from mily.errors import StorageError
from mily.memory.models import MessageRecord

if TYPE_CHECKING:
    from pathlib import Path

    from mily.config import Settings

logger = logging.getLogger(__name__)


class MemoryStore:
    """Durable recency-windowed conversation memory.

    Pass an explicit *path* for test isolation (e.g. ``tmp_path / "memory.ndjson"``).
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create memory directory {self._path.parent}: {exc}"
            raise StorageError(msg) from exc
        logger.info("Memory store: %s", self._path)

    @classmethod
    def from_settings(cls, settings: Settings) -> MemoryStore:
        return cls(settings.memory_path)

    @property
    def path(self) -> Path:
        return self._path

    # -- Write ---------------------------------------------------------------

    def append_interaction(self, user_text: str, assistant_text: str) -> None:
        """Append one user record followed by one assistant record."""
        user = MessageRecord(when=datetime.now(UTC), role="user", text=user_text)
        assistant = MessageRecord(when=datetime.now(UTC), role="assistant", text=assistant_text)

        with self._lock:
            try:
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(user.model_dump_json() + "\n")
                    f.write(assistant.model_dump_json() + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as exc:
                msg = f"Failed to append to {self._path}: {exc}"
                raise StorageError(msg) from exc

        logger.debug("Appended interaction (%d/%d chars)", len(user_text), len(assistant_text))

    # -- Read ----------------------------------------------------------------

    def recent_records(self, limit_pairs: int) -> list[MessageRecord]:
        """Return up to ``limit_pairs * 2`` most recent records, oldest first."""
        limit = max(limit_pairs, 0) * 2
        if limit == 0:
            return []

        with self._lock:
            try:
                content = self._path.read_text(encoding="utf-8", errors="replace")
            except FileNotFoundError:
                return []
            except OSError as exc:
                msg = f"Failed to read {self._path}: {exc}"
                raise StorageError(msg) from exc

        rows: list[MessageRecord] = []
        for line in reversed(content.split("\n")):
            if not line.strip():
                continue
            try:
                rows.append(MessageRecord.model_validate_json(line))
            except ValidationError:
                logger.debug("Skipping malformed memory line: %.80s", line)
                continue
            if len(rows) >= limit:
                break

        rows.reverse()
        return rows

    def recall_recent(self, limit_pairs: int) -> str:
        """Render the most recent records as newline-joined context lines.

        Returns an empty string when the log does not exist yet.
        """
        return "\n".join(r.render() for r in self.recent_records(limit_pairs))
