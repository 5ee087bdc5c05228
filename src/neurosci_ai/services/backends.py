"""Backends the chat controller uses to reach the ingestion endpoint."""

from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Union

import httpx
import structlog

from ..domain.models import FileUpload
from ..errors import TransportError, UpstreamError
from .ingestion import IngestionService

logger = structlog.get_logger()


class ChatBackend(Protocol):
    async def send(
        self,
        message: str,
        files: Sequence[FileUpload] = (),
        file_names: Sequence[str] = (),
    ) -> Dict[str, Any]:
        """Submit one message and return the ingestion response body."""
        ...


class ChatApiClient:
    """Talks to a running ingestion endpoint over HTTP.

    Payload bytes go out as multipart form data. When any attachment is
    known by name only, the whole request is plain JSON carrying every
    attachment name, so no file is left out.
    """

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def send(
        self,
        message: str,
        files: Sequence[FileUpload] = (),
        file_names: Sequence[str] = (),
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/api/chat"
        if files and all(f.data is not None for f in files):
            kwargs: Dict[str, Any] = {
                "data": {"message": message},
                "files": [("files", (f.name, f.data, f.content_type)) for f in files],
            }
        else:
            names: List[str] = [f.name for f in files] or list(file_names)
            body: Dict[str, Any] = {"message": message}
            if names:
                body.update(hasAttachments=True, fileCount=len(names), fileNames=names)
            kwargs = {"json": body}

        try:
            if self._client is not None:
                response = await self._client.post(url, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("chat_endpoint_unreachable", url=url, error=str(e))
            raise TransportError(f"Could not reach chat endpoint: {e}") from e

        if response.is_error:
            try:
                detail = response.json().get("error")
            except (ValueError, AttributeError):
                detail = None
            logger.error("chat_endpoint_error", status=response.status_code, error=detail)
            raise UpstreamError(response.status_code, detail or "Failed to get response")

        return response.json()


class LocalChatBackend:
    """Runs the ingestion path in-process.

    ``ingestion`` is either a service or a zero-argument factory. A factory
    is called on every send, so each submission picks up the current
    settings.
    """

    def __init__(self, ingestion: Union[IngestionService, Callable[[], IngestionService]]) -> None:
        self.ingestion = ingestion

    def resolve(self) -> IngestionService:
        if isinstance(self.ingestion, IngestionService):
            return self.ingestion
        return self.ingestion()

    async def send(
        self,
        message: str,
        files: Sequence[FileUpload] = (),
        file_names: Sequence[str] = (),
    ) -> Dict[str, Any]:
        ingestion = self.resolve()
        if files:
            names = await ingestion.store_payloads(files)
        else:
            names = list(file_names)
        reply = await ingestion.ingest(message, names)
        return reply.model_dump()
