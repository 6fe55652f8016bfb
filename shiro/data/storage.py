"""SQLite storage for notes and their content blocks."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import TypeAdapter

from .models import ContentBlock, Note
from .repository import NoteRepository

_CONTENT_ADAPTER: TypeAdapter[List[ContentBlock]] = TypeAdapter(List[ContentBlock])


class SQLiteNoteRepository(NoteRepository):
    """Persistent note repository built on SQLite.

    Content blocks are kept as a JSON array in a single column; the block
    discriminator (``type``) survives the round trip so notes come back with
    the same block kinds they were saved with.
    """

    def __init__(self, path: Path, clock: Optional[Callable[[], datetime]] = None) -> None:
        super().__init__(clock)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                    id TEXT PRIMARY KEY,
                    updated_at TEXT NOT NULL,
                    content TEXT NOT NULL
                )
                """
            )
            conn.commit()

    @staticmethod
    def _row_to_note(row) -> Note:
        return Note(
            id=row[0],
            updated_at=datetime.fromisoformat(row[1]),
            content=_CONTENT_ADAPTER.validate_json(row[2]),
        )

    def _load_all(self) -> List[Note]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id, updated_at, content FROM notes").fetchall()
        return [self._row_to_note(row) for row in rows]

    def _load(self, note_id: str) -> Optional[Note]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, updated_at, content FROM notes WHERE id = ?",
                (note_id,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_note(row)

    def _store(self, note: Note, *, is_new: bool = False) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO notes (id, updated_at, content) VALUES (?, ?, ?)",
                (
                    note.id,
                    note.updated_at.isoformat(),
                    _CONTENT_ADAPTER.dump_json(note.content).decode("utf-8"),
                ),
            )
            conn.commit()

    def _remove(self, note_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            conn.commit()
        return cursor.rowcount > 0


__all__ = ["SQLiteNoteRepository"]
