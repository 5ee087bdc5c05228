"""Ingestion path for chat submissions.

A submission arrives either as JSON (message text plus optional attachment
name hints, no bytes) or as multipart form data (message text plus the file
payloads). Only attachment filenames ever reach the completion API; payload
bytes are optionally kept in a scratch directory.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..domain.models import ChatReply, FileRef, FileUpload
from ..errors import BadRequest
from .completion import CompletionGateway

logger = structlog.get_logger()


class ChatRequest(BaseModel):
    """JSON body accepted by the ingestion endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = ""
    has_attachments: bool = Field(default=False, alias="hasAttachments")
    file_count: Optional[int] = Field(default=None, alias="fileCount")
    file_names: Optional[List[str]] = Field(default=None, alias="fileNames")


class UploadStore:
    """Writes uploaded payloads under unique names in a scratch directory."""

    def __init__(self, root) -> None:
        self.root = Path(root)

    async def save(self, filename: str, data: bytes) -> Path:
        path = self.root / f"{uuid4()}-{Path(filename).name}"
        await asyncio.to_thread(self._write, path, data)
        logger.info("upload_saved", filename=filename, size=len(data), path=str(path))
        return path

    def _write(self, path: Path, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class IngestionService:
    """Validates a submission and forwards it to the completion gateway."""

    def __init__(self, gateway: CompletionGateway, uploads: Optional[UploadStore] = None) -> None:
        self.gateway = gateway
        self.uploads = uploads

    def parse_json(self, body: bytes) -> Tuple[str, List[str]]:
        try:
            data = json.loads(body or b"null")
            request = ChatRequest.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("ingestion_invalid_json", error=str(e))
            raise BadRequest("Invalid JSON in request") from e

        file_names: List[str] = []
        if request.has_attachments:
            logger.info("ingestion_attachments_not_uploaded", file_count=request.file_count)
            file_names = list(request.file_names or [])
        return request.message or "", file_names

    async def parse_form(self, form: Any) -> Tuple[str, List[str]]:
        """Read the ``message`` field and every ``files`` part of a form."""
        message = form.get("message") or ""
        if not isinstance(message, str):
            raise BadRequest("Error processing uploaded files")

        file_names: List[str] = []
        for part in form.getlist("files"):
            if isinstance(part, str):
                continue
            name = part.filename or f"file-{uuid4()}"
            data = await part.read()
            await self.store_payload(name, data)
            file_names.append(name)
        return message, file_names

    async def store_payloads(self, files: Sequence[FileUpload]) -> List[str]:
        names = []
        for upload in files:
            if upload.data is not None:
                await self.store_payload(upload.name, upload.data)
            names.append(upload.name)
        return names

    async def store_payload(self, name: str, data: bytes) -> None:
        if self.uploads is not None:
            await self.uploads.save(name, data)

    async def ingest(self, message: str, file_names: Sequence[str]) -> ChatReply:
        if not message and not file_names:
            raise BadRequest("Message or files are required")

        result = await self.gateway.complete(message, file_names)
        return ChatReply(
            response=result.text,
            files=[FileRef(name=name) for name in result.files],
        )
