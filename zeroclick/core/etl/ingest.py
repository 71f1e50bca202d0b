# zeroclick/core/etl/ingest.py
"""
INGEST MODULE - Turn an uploaded audio object into source text

Data Flow:
    gs://bucket/name → long-running recognition → ordered segments
                     → best alternative per segment → "\n".join() → text

The recognition call is awaited to completion. Its timeout is configured
well above realistic memo lengths (TRANSCRIBE_TIMEOUT_SECONDS).
"""

import asyncio
import logging
from typing import List, Optional, Protocol

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech
from pydantic import BaseModel

from zeroclick.core.config import Settings
from zeroclick.core.credentials import load_credentials
from zeroclick.core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

Encoding = speech.RecognitionConfig.AudioEncoding

# WAV carries its own header, so its encoding and rate are left unset
ENCODINGS = {
    "audio/mpeg": Encoding.MP3,
    "audio/mp3": Encoding.MP3,
    "audio/flac": Encoding.FLAC,
    "audio/x-flac": Encoding.FLAC,
    "audio/ogg": Encoding.OGG_OPUS,
    "audio/webm": Encoding.WEBM_OPUS,
}
HEADER_ENCODINGS = {Encoding.FLAC}


# ============================================================================
# STEP 1: SEGMENTS
# ============================================================================


class Alternative(BaseModel):
    transcript: str
    confidence: float = 0.0


class TranscriptSegment(BaseModel):
    alternatives: List[Alternative] = []


def join_transcript(segments: List[TranscriptSegment]) -> str:
    """
    Best alternative of each segment, newline-joined, in order.

    Example:
        [[("hi", .9), ("high", .4)], [("deal is on", .8)]] → "hi\\ndeal is on"
    """
    lines = []
    for segment in segments:
        if not segment.alternatives:
            continue
        best = max(segment.alternatives, key=lambda alt: alt.confidence)
        text = best.transcript.strip()
        if text:
            lines.append(text)
    return "\n".join(lines)


# ============================================================================
# STEP 2: RECOGNITION
# ============================================================================


class Transcriber(Protocol):
    async def transcribe(
        self, uri: str, content_type: Optional[str] = None
    ) -> List[TranscriptSegment]: ...


def build_recognition_config(
    settings: Settings, content_type: Optional[str]
) -> speech.RecognitionConfig:
    config = speech.RecognitionConfig(
        language_code=settings.SPEECH_LANGUAGE_CODE,
        enable_automatic_punctuation=True,
    )

    encoding = ENCODINGS.get((content_type or "").split(";")[0].strip().lower())
    if encoding is not None:
        config.encoding = encoding
        if encoding not in HEADER_ENCODINGS:
            config.sample_rate_hertz = settings.SPEECH_SAMPLE_RATE_HZ
    return config


class SpeechTranscriber:
    """Google Cloud Speech-to-Text, long-running recognition."""

    def __init__(
        self, settings: Settings, client: Optional[speech.SpeechAsyncClient] = None
    ):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> speech.SpeechAsyncClient:
        if self._client is None:
            self._client = speech.SpeechAsyncClient(
                credentials=load_credentials(self.settings)
            )
        return self._client

    async def transcribe(
        self, uri: str, content_type: Optional[str] = None
    ) -> List[TranscriptSegment]:
        config = build_recognition_config(self.settings, content_type)
        audio = speech.RecognitionAudio(uri=uri)

        try:
            operation = await self.client.long_running_recognize(
                config=config, audio=audio
            )
            logger.info(f"Started transcription of {uri}")
            response = await operation.result(
                timeout=self.settings.TRANSCRIBE_TIMEOUT_SECONDS
            )
        except (
            gcp_exceptions.GoogleAPIError,
            auth_exceptions.GoogleAuthError,
            asyncio.TimeoutError,
            OSError,
            ValueError,
        ) as e:
            logger.error(f"Transcription of {uri} failed: {e}")
            raise UpstreamServiceError("Speech-to-text failed for the uploaded audio") from e

        return [
            TranscriptSegment(
                alternatives=[
                    Alternative(transcript=alt.transcript, confidence=alt.confidence)
                    for alt in result.alternatives
                ]
            )
            for result in response.results
        ]
