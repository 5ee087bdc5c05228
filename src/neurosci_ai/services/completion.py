"""Completion gateway for the external chat-completion API."""

from typing import List, Optional, Sequence

import httpx
import structlog

from ..errors import ConfigurationError, GatewayError, TransportError, UpstreamError

logger = structlog.get_logger()

MODEL = "gpt-3.5-turbo"
TEMPERATURE = 0.7
MAX_TOKENS = 1000

SYSTEM_PROMPT = """You are neurosci.ai, a specialized assistant for neuroscience and animal behavioral analysis.

When formatting your responses:
- Use clear paragraph breaks between distinct points or sections
- Add a blank line between paragraphs for better readability
- Use appropriate headings and subheadings when covering multiple topics
- Format lists with proper spacing
- Structure complex explanations with clear visual separation

You have knowledge of neuroscience research up to your training cutoff date.
When you don't know something or when asked about future events, acknowledge your limitations clearly.
When files are uploaded, acknowledge them but explain that you cannot directly analyze their contents."""


def build_prompt(prompt: str, attachment_names: Sequence[str]) -> str:
    """Append the uploaded file listing to the user's prompt."""
    if not attachment_names:
        return prompt
    listing = "\n".join(f"- {name}" for name in attachment_names)
    return (
        f"{prompt}\n\nThe user has uploaded the following files:\n{listing}"
        "\n\nPlease acknowledge these files."
    )


class CompletionResult:
    """Text returned by the model plus the attachment names it was told about."""

    def __init__(self, text: Optional[str], files: List[str]) -> None:
        self.text = text
        self.files = files


class CompletionGateway:
    """Forwards a single prompt to the completion API.

    Each call is stateless: only the system instruction and the current
    prompt are sent, never earlier turns.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, prompt: str, attachment_names: Sequence[str]) -> dict:
        return {
            "model": MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(prompt, attachment_names)},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }

    async def complete(self, prompt: str, attachment_names: Sequence[str] = ()) -> CompletionResult:
        if not self.configured:
            logger.error("completion_api_key_missing")
            raise ConfigurationError("OpenAI API key not configured")

        names = list(attachment_names)
        payload = self.build_payload(prompt, names)
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/chat/completions"

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("completion_transport_error", error=str(e))
            raise TransportError(f"Could not reach completion API: {e}") from e

        logger.info("completion_response", status=response.status_code)

        if response.is_error:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            logger.error("completion_upstream_error", status=response.status_code, body=error_data)
            detail = None
            if isinstance(error_data, dict) and isinstance(error_data.get("error"), dict):
                detail = error_data["error"].get("message")
            raise UpstreamError(response.status_code, f"Error from OpenAI: {detail or 'Unknown error'}")

        try:
            text = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("completion_malformed_response", error=str(e))
            raise GatewayError("Malformed response from completion API") from e

        return CompletionResult(text=text, files=names)
