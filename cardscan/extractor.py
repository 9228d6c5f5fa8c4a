"""
LLM-backed contact extraction for card text.

Each text unit (card name, description, or one comment) is sent as a single
chat-completions request with a fixed system prompt asking for:
  - name
  - location
  - mobile / landline / business numbers in E.164 format

The reply is returned as a result variant rather than raised:
  Structured       - reply parsed to a JSON object
  Unparsable       - reply present but not a JSON object
  ExtractionFailed - transport, HTTP or envelope error (not retried)
"""
import json
import logging
import re
from typing import Any, Optional

import requests

from .schema import ExtractionFailed, ExtractionResult, Structured, Unparsable

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are an assistant that extracts structured information from text, specifically Australian phone numbers.
Identify phone numbers, classify them as Mobile, Landline, or Business, normalize them into the E.164 format,
and output the result in the following JSON format:
{
  "name": "John Doe",
  "location": "Cochrane Rd, Drouin VIC 3818, Australia",
  "mobile": "e164 format",
  "landline": "e164 format",
  "business": "e164 format"
}"""


def build_user_prompt(text: str) -> str:
    """Build the per-unit user prompt."""
    return f"Extract name, location, and phone from the following text:\n{text}."


def parse_extraction_response(content: str) -> ExtractionResult:
    """Parse the model's reply into Structured or Unparsable."""
    body = content.strip()
    if body.startswith("```"):
        body = re.sub(r'^```(?:json)?\s*', '', body)
        body = re.sub(r'\s*```$', '', body)

    try:
        result = json.loads(body)
    except json.JSONDecodeError:
        # Replies sometimes wrap the object in prose
        match = re.search(r'\{[^{}]*\}', body, re.DOTALL)
        if not match:
            return Unparsable(raw=content)
        try:
            result = json.loads(match.group())
        except json.JSONDecodeError:
            return Unparsable(raw=content)

    if not isinstance(result, dict):
        return Unparsable(raw=content)
    return Structured(fields=result)


class ExtractionServiceError(Exception):
    """The chat-completions endpoint returned something other than a completion."""
    pass


class ChatCompletionsClient:
    """Minimal HTTP client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1",
                 model: str = "gpt-4o-mini", max_tokens: int = 100, timeout: float = 30):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = requests.Session()

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one JSON-mode completion request and return the message content.

        Raises requests.RequestException on transport/HTTP errors and
        ExtractionServiceError when the envelope has no message content.
        """
        r = self.session.post(
            f"{self.base_url}/chat/completions",
            json={
                "model": self.model,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "max_tokens": self.max_tokens,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as e:
            raise ExtractionServiceError(f"Response body is not JSON: {r.text[:200]}") from e
        content = _message_content(data)
        if content is None:
            raise ExtractionServiceError(f"No message content in response: {str(data)[:200]}")
        return content


def _message_content(data: Any) -> Optional[str]:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


class ContactExtractor:
    """Runs the fixed extraction prompt over single text units."""

    def __init__(self, client: ChatCompletionsClient):
        self.client = client

    def extract(self, text: str) -> ExtractionResult:
        try:
            content = self.client.complete(EXTRACTION_PROMPT, build_user_prompt(text))
        except (requests.RequestException, ExtractionServiceError) as e:
            return ExtractionFailed(error=str(e))

        result = parse_extraction_response(content)
        if isinstance(result, Unparsable):
            logger.debug(f"Unparsable extraction reply: {content[:200]!r}")
        return result

