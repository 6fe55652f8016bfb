"""Data models used by Shiro."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Author(str, enum.Enum):
    USER = "user"
    AGENT = "agent"


class Message(BaseModel):
    """One immutable entry of a chat conversation."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    author: Author
    timestamp: float


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    value: str = ""


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    url: str


class AudioBlock(BaseModel):
    type: Literal["audio"] = "audio"
    url: str
    duration: str
    transcript: Optional[str] = None
    uploading: bool = False


ContentBlock = Annotated[Union[TextBlock, ImageBlock, AudioBlock], Field(discriminator="type")]


class Note(BaseModel):
    id: str
    updated_at: datetime
    content: List[ContentBlock] = Field(default_factory=list)


class CreateNoteInput(BaseModel):
    content: Optional[List[ContentBlock]] = None


class UpdateNoteInput(BaseModel):
    content: Optional[List[ContentBlock]] = None


class NoteStats(BaseModel):
    total_notes: int = 0
    total_text_blocks: int = 0
    total_image_blocks: int = 0
    total_audio_blocks: int = 0


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a repository call; failures are values, not exceptions."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None, message: Optional[str] = None) -> "ServiceResult[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> "ServiceResult[T]":
        return cls(success=False, error=error)


def block_text(block: ContentBlock) -> str:
    """Return the searchable/printable text of a content block."""

    if isinstance(block, TextBlock):
        return block.value
    if isinstance(block, ImageBlock):
        return f"[image] {block.url}"
    if isinstance(block, AudioBlock):
        suffix = f" {block.transcript}" if block.transcript else ""
        return f"[audio {block.duration}]{suffix}"
    raise TypeError(f"Unknown content block: {block!r}")


def count_blocks(notes: List[Note]) -> NoteStats:
    stats = NoteStats(total_notes=len(notes))
    for note in notes:
        for block in note.content:
            if isinstance(block, TextBlock):
                stats.total_text_blocks += 1
            elif isinstance(block, ImageBlock):
                stats.total_image_blocks += 1
            elif isinstance(block, AudioBlock):
                stats.total_audio_blocks += 1
            else:
                raise TypeError(f"Unknown content block: {block!r}")
    return stats


__all__ = [
    "AudioBlock",
    "Author",
    "ContentBlock",
    "CreateNoteInput",
    "ImageBlock",
    "Message",
    "Note",
    "NoteStats",
    "ServiceResult",
    "TextBlock",
    "UpdateNoteInput",
    "block_text",
    "count_blocks",
]
