"""Domain models for the chat application."""

import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TITLE = "New Chat"
TITLE_LIMIT = 40
ATTACHMENTS_PLACEHOLDER = "Sent attachments"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def derive_title(content: str) -> str:
    """Build a conversation title from the first user message."""
    if len(content) > TITLE_LIMIT:
        return content[:TITLE_LIMIT] + "..."
    return content


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Attachment(BaseModel):
    """Attachment descriptor stored on a user message."""

    name: str
    type: str = ""
    size: int = 0
    url: str = ""


class Message(BaseModel):
    """Message model."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    attachments: Optional[List[Attachment]] = None


class Conversation(BaseModel):
    """Conversation model."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = DEFAULT_TITLE
    messages: List[Message] = []
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    is_starred: bool = Field(default=False, alias="isStarred")

    def touch(self) -> None:
        self.updated_at = utcnow()


class FileUpload(BaseModel):
    """A file staged for submission.

    ``data`` holds the raw payload. It is ``None`` when only the name is
    known, e.g. when a submission is restored without its bytes.
    """

    name: str
    content_type: str = "application/octet-stream"
    size: int = 0
    data: Optional[bytes] = None
    url: Optional[str] = None

    @classmethod
    def from_path(cls, path) -> "FileUpload":
        path = Path(path)
        data = path.read_bytes()
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            size=len(data),
            data=data,
            url=path.resolve().as_uri(),
        )

    def to_attachment(self) -> Attachment:
        return Attachment(
            name=self.name,
            type=self.content_type,
            size=self.size if self.size else len(self.data or b""),
            url=self.url or f"attachment:{uuid4()}/{self.name}",
        )


class FileRef(BaseModel):
    name: str


class ChatReply(BaseModel):
    """Body returned by the ingestion endpoint.

    ``response`` is None when the model answered without any text.
    """

    response: Optional[str] = None
    files: List[FileRef] = []


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1048576:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1048576:.1f} MB"


def file_icon(content_type: str) -> str:
    """Pick a display icon for an attachment by MIME type."""
    if content_type.startswith("image/"):
        return "🖼️"
    if content_type.startswith("video/"):
        return "🎬"
    if content_type.startswith("audio/"):
        return "🔊"
    if "pdf" in content_type:
        return "📄"
    if "spreadsheet" in content_type or "excel" in content_type:
        return "📊"
    if "document" in content_type or "word" in content_type:
        return "📝"
    return "📁"
