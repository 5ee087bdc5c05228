"""In-memory repository implementation."""

from typing import Optional

import structlog

from .base import ConversationRepository

logger = structlog.get_logger()


class InMemoryRepository(ConversationRepository):
    """Keeps the serialized slot in process memory.

    The value is stored as text, exactly as a durable backend would hold
    it, so loads go through the same decoding path.
    """

    def __init__(self, raw: Optional[str] = None) -> None:
        self.raw = raw
        logger.info("repository_initialized", backend="memory")

    def _read(self) -> Optional[str]:
        return self.raw

    def _write(self, raw: str) -> None:
        self.raw = raw
