"""Shared fixtures for the test suite."""

import json
from typing import Any, Dict, List

import httpx
import pytest

from neurosci_ai.services.completion import CompletionGateway


def completion_body(text: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class RecordingTransport(httpx.MockTransport):
    """Mock transport that answers every request with a fixed response."""

    def __init__(self, status_code: int = 200, body: Any = None, raise_error: bool = False) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = status_code
        self.body = completion_body("Hello from the model") if body is None else body
        self.raise_error = raise_error
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)

    def sent_payload(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


class FakeBackend:
    """Chat backend returning canned replies and recording calls."""

    def __init__(self, reply: Any = None, error: Exception = None) -> None:
        self.reply = {"response": "Hi there", "files": []} if reply is None else reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def send(self, message, files=(), file_names=()):
        self.calls.append({"message": message, "files": list(files), "file_names": list(file_names)})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def gateway(transport) -> CompletionGateway:
    return CompletionGateway(api_key="test-key", client=httpx.AsyncClient(transport=transport))

