"""
Gemini adapter.

The model is an untrusted boundary: whatever comes back is reduced here to a
ModelReply holding either the first text part of the first candidate or
nothing. Raw SDK response objects never travel further than this module.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx
from google import genai
from google.auth import exceptions as auth_exceptions
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel

from zeroclick.core.config import Settings
from zeroclick.core.credentials import load_credentials
from zeroclick.core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class ModelReply(BaseModel):
    """Either Valid(text) or Invalid (text is None)."""

    text: Optional[str] = None
    model_version: str
    prompt_hash: str
    timestamp: datetime

    @property
    def is_valid(self) -> bool:
        return bool(self.text and self.text.strip())


class GenerativeModel(Protocol):
    async def generate(
        self,
        user_text: str,
        *,
        system_instruction: Optional[str] = None,
        json_output: bool = False,
        temperature: float = 0.1,
    ) -> ModelReply: ...


def compute_prompt_hash(*parts: Optional[str]) -> str:
    """Short SHA-256 of the prompt, for correlating log lines."""
    digest = hashlib.sha256()
    for part in parts:
        digest.update((part or "").encode())
    return digest.hexdigest()[:16]


def first_text(response: Any) -> Optional[str]:
    """First text part of the first candidate, or None if the shape is off."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return None

    text = getattr(parts[0], "text", None)
    return text if isinstance(text, str) and text else None


class GeminiModel:
    """Google Gemini, through an API key or Vertex AI."""

    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self.settings = settings
        self.model_name = settings.GEMINI_MODEL
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> genai.Client:
        if self.settings.GEMINI_API_KEY is not None:
            return genai.Client(api_key=self.settings.GEMINI_API_KEY.get_secret_value())

        return genai.Client(
            vertexai=True,
            project=self.settings.GCP_PROJECT_ID,
            location=self.settings.GCP_LOCATION,
            credentials=load_credentials(self.settings),
        )

    @property
    def model_version(self) -> str:
        return f"gemini/{self.model_name}"

    async def generate(
        self,
        user_text: str,
        *,
        system_instruction: Optional[str] = None,
        json_output: bool = False,
        temperature: float = 0.1,
    ) -> ModelReply:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            response_mime_type="application/json" if json_output else None,
        )
        contents = [
            types.Content(role="user", parts=[types.Part.from_text(text=user_text)])
        ]

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )
        # OSError/ValueError: unreadable or malformed service account
        except (
            genai_errors.APIError,
            httpx.HTTPError,
            auth_exceptions.GoogleAuthError,
            OSError,
            ValueError,
        ) as e:
            logger.error(f"Gemini call failed: {e}")
            raise UpstreamServiceError("The language model is unavailable") from e

        reply = ModelReply(
            text=first_text(response),
            model_version=self.model_version,
            prompt_hash=compute_prompt_hash(system_instruction, user_text),
            timestamp=datetime.now(timezone.utc),
        )
        logger.debug(f"Model reply {reply.prompt_hash}: {reply.text!r}")
        return reply
