"""Base repository interface."""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from ..domain.models import Conversation

logger = structlog.get_logger()

DATE_FIELDS = frozenset({"createdAt", "updatedAt", "timestamp"})


def _revive_dates(obj: Dict[str, Any]) -> Dict[str, Any]:
    for key in DATE_FIELDS.intersection(obj):
        value = obj[key]
        if isinstance(value, str):
            obj[key] = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return obj


def serialize(conversations: List[Conversation]) -> str:
    return json.dumps(
        [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in conversations]
    )


def deserialize(raw: str) -> List[Conversation]:
    data = json.loads(raw, object_hook=_revive_dates)
    if not isinstance(data, list):
        raise ValueError("Stored conversations must be a list")
    return [Conversation.model_validate(item) for item in data]


class ConversationRepository(ABC):
    """Durable slot holding the ordered conversation collection.

    Subclasses only move the serialized text in and out of their backing
    store; encoding and the fail-closed load live here.
    """

    @abstractmethod
    def _read(self) -> Optional[str]:
        """Return the stored text, or None when the slot is empty."""
        pass

    @abstractmethod
    def _write(self, raw: str) -> None:
        """Replace the stored text."""
        pass

    def load(self) -> List[Conversation]:
        """Load all conversations; an empty or unreadable slot yields []."""
        try:
            raw = self._read()
        except OSError as e:
            logger.warning("conversation_store_unreadable", error=str(e))
            return []
        if not raw:
            return []
        try:
            return deserialize(raw)
        except (ValueError, ValidationError) as e:
            logger.warning("conversation_store_corrupt", error=str(e))
            return []

    def save(self, conversations: List[Conversation]) -> None:
        """Overwrite the slot with the full collection."""
        self._write(serialize(conversations))
