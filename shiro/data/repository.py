"""Note repository abstraction and the in-memory implementation."""

from __future__ import annotations

import abc
import uuid
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..logging import get_logger
from .models import (
    ContentBlock,
    CreateNoteInput,
    Note,
    NoteStats,
    ServiceResult,
    TextBlock,
    UpdateNoteInput,
    count_blocks,
)

LOGGER = get_logger(__name__)

NOTE_NOT_FOUND = "Note not found"
INVALID_BLOCK_INDEX = "Invalid block index"


def _newest_first(notes: Iterable[Note]) -> List[Note]:
    return sorted(notes, key=lambda note: note.updated_at, reverse=True)


def _matches(note: Note, query: str) -> bool:
    return any(isinstance(block, TextBlock) and query in block.value.lower() for block in note.content)


class NoteRepository(abc.ABC):
    """CRUD access to notes and their content blocks.

    Implementations never raise for missing notes or bad block indexes; those
    come back as failed :class:`ServiceResult` values.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or datetime.now

    def _new_id(self) -> str:
        return uuid.uuid4().hex

    @abc.abstractmethod
    def _load_all(self) -> List[Note]:
        """Return every stored note (order irrelevant)."""

    @abc.abstractmethod
    def _load(self, note_id: str) -> Optional[Note]:
        """Return a private copy of the note or ``None``."""

    @abc.abstractmethod
    def _store(self, note: Note, *, is_new: bool = False) -> None:
        """Insert or replace the note."""

    @abc.abstractmethod
    def _remove(self, note_id: str) -> bool:
        """Delete the note, returning whether it existed."""

    def list_notes(self) -> ServiceResult[List[Note]]:
        return ServiceResult.ok(_newest_first(self._load_all()))

    def get_note(self, note_id: str) -> ServiceResult[Note]:
        return ServiceResult.ok(self._load(note_id))

    def create_note(self, data: Optional[CreateNoteInput] = None) -> ServiceResult[Note]:
        content = data.content if data is not None and data.content is not None else [TextBlock(value="")]
        note = Note(id=self._new_id(), updated_at=self._clock(), content=list(content))
        self._store(note, is_new=True)
        LOGGER.debug("Created note %s", note.id)
        return ServiceResult.ok(note.model_copy(deep=True), message="Note created successfully")

    def update_note(self, note_id: str, patch: UpdateNoteInput) -> ServiceResult[Note]:
        note = self._load(note_id)
        if note is None:
            return ServiceResult.fail(NOTE_NOT_FOUND)
        if patch.content is not None:
            note.content = list(patch.content)
        return self._touch(note, "Note updated successfully")

    def delete_note(self, note_id: str) -> ServiceResult[None]:
        if not self._remove(note_id):
            return ServiceResult.fail(NOTE_NOT_FOUND)
        LOGGER.debug("Deleted note %s", note_id)
        return ServiceResult.ok(message="Note deleted successfully")

    def append_block(self, note_id: str, block: ContentBlock) -> ServiceResult[Note]:
        note = self._load(note_id)
        if note is None:
            return ServiceResult.fail(NOTE_NOT_FOUND)
        note.content.append(block)
        return self._touch(note, "Content block added successfully")

    def replace_block_at(self, note_id: str, index: int, block: ContentBlock) -> ServiceResult[Note]:
        note = self._load(note_id)
        if note is None:
            return ServiceResult.fail(NOTE_NOT_FOUND)
        if not 0 <= index < len(note.content):
            return ServiceResult.fail(INVALID_BLOCK_INDEX)
        note.content[index] = block
        return self._touch(note, "Content block updated successfully")

    def remove_block_at(self, note_id: str, index: int) -> ServiceResult[Note]:
        note = self._load(note_id)
        if note is None:
            return ServiceResult.fail(NOTE_NOT_FOUND)
        if not 0 <= index < len(note.content):
            return ServiceResult.fail(INVALID_BLOCK_INDEX)
        del note.content[index]
        return self._touch(note, "Content block removed successfully")

    def search_notes(self, query: str) -> ServiceResult[List[Note]]:
        needle = query.strip().lower()
        if not needle:
            return self.list_notes()
        found = _newest_first(note for note in self._load_all() if _matches(note, needle))
        return ServiceResult.ok(found, message=f'Found {len(found)} notes matching "{query}"')

    def get_stats(self) -> ServiceResult[NoteStats]:
        return ServiceResult.ok(count_blocks(self._load_all()))

    def _touch(self, note: Note, message: str) -> ServiceResult[Note]:
        note.updated_at = self._clock()
        self._store(note)
        return ServiceResult.ok(note.model_copy(deep=True), message=message)


class InMemoryNoteRepository(NoteRepository):
    """Volatile repository; the composing application owns its lifetime."""

    def __init__(
        self,
        notes: Optional[Iterable[Note]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(clock)
        self._notes: List[Note] = [note.model_copy(deep=True) for note in notes or []]

    def _index(self, note_id: str) -> int:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return -1

    def _load_all(self) -> List[Note]:
        return [note.model_copy(deep=True) for note in self._notes]

    def _load(self, note_id: str) -> Optional[Note]:
        index = self._index(note_id)
        return self._notes[index].model_copy(deep=True) if index >= 0 else None

    def _store(self, note: Note, *, is_new: bool = False) -> None:
        stored = note.model_copy(deep=True)
        index = self._index(note.id)
        if index >= 0:
            self._notes[index] = stored
        else:
            self._notes.insert(0, stored)

    def _remove(self, note_id: str) -> bool:
        index = self._index(note_id)
        if index < 0:
            return False
        del self._notes[index]
        return True


__all__ = [
    "INVALID_BLOCK_INDEX",
    "InMemoryNoteRepository",
    "NOTE_NOT_FOUND",
    "NoteRepository",
]
