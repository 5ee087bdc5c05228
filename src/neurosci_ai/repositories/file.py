"""JSON file repository implementation."""

import os
from pathlib import Path
from typing import Optional

import structlog

from .base import ConversationRepository

logger = structlog.get_logger()


class JsonFileRepository(ConversationRepository):
    """Stores the conversation collection in a single JSON file."""

    def __init__(self, path) -> None:
        self.path = Path(path)
        logger.info("repository_initialized", backend="file", path=str(self.path))

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _write(self, raw: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target and swap so readers never see a partial file
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(raw, encoding="utf-8")
        os.replace(tmp_path, self.path)
