"""Application settings loaded from environment variables."""

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_BASE = "https://api.openai.com/v1"


def _flag(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


class Settings:
    """Keep all credentials and paths centralized here.

    Values are read from the environment when the instance is built, so a
    fresh ``Settings()`` always reflects the current process environment.
    """

    def __init__(self) -> None:
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY") or None
        self.openai_api_base: str = os.getenv("OPENAI_API_BASE", DEFAULT_API_BASE).rstrip("/")
        self.storage_path = Path(
            os.getenv("NEUROSCI_STORAGE_PATH", str(Path.home() / ".neurosci_ai" / "chats.json"))
        ).expanduser()
        self.upload_dir = Path(
            os.getenv("NEUROSCI_UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "neurosci-ai-uploads"))
        ).expanduser()
        self.persist_uploads: bool = _flag(os.getenv("NEUROSCI_PERSIST_UPLOADS", "true"))


def get_settings() -> Settings:
    return Settings()
