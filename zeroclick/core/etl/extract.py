# zeroclick/core/etl/extract.py
"""
EXTRACT MODULE - One piece of free text in, one stored CRM record out

Data Flow:
    source text → model (fixed instruction, JSON mode, low temperature)
                → first text part → json.loads() → transform.normalize()
                → + transcript + created_at → RecordStore.insert()

Guarantees:
    - exactly one model call and one insert on success
    - zero inserts on any failure
    - the model's text is parsed strictly, there is no regex fallback
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from zeroclick.ai_feature.model import GenerativeModel, ModelReply
from zeroclick.ai_feature.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_input
from zeroclick.core.config import Settings
from zeroclick.core.errors import ErrorKind, ExtractionError
from zeroclick.core.etl.load import RecordStore
from zeroclick.core.etl.transform import normalize
from zeroclick.core.schemas import CrmRecord, SourceKind

logger = logging.getLogger(__name__)


def parse_model_json(reply: ModelReply) -> Dict[str, Any]:
    """
    Resolve a model reply into a single JSON object or fail.

    Raises:
        ExtractionError(kind=INVALID_MODEL_OUTPUT) on empty output, invalid
        JSON, or JSON that is not an object.
    """
    if not reply.is_valid:
        raise ExtractionError("The language model returned no output")

    try:
        payload = json.loads(reply.text)
    except json.JSONDecodeError as e:
        raise ExtractionError("The language model returned malformed JSON") from e

    if not isinstance(payload, dict):
        raise ExtractionError("The language model did not return a JSON object")

    return payload


def build_transcript(source_text: str, source_kind: SourceKind, settings: Settings) -> str:
    """
    What gets stored in the transcript column.

    Emails keep a tagged snippet, voice keeps the full text unless
    VOICE_TRANSCRIPT_MAX_CHARS is set.
    """
    if source_kind == SourceKind.EMAIL:
        limit = settings.EMAIL_SNIPPET_CHARS
        snippet = source_text[:limit]
        suffix = "..." if len(source_text) > limit else ""
        return f"[EMAIL] {snippet}{suffix}"

    limit = settings.VOICE_TRANSCRIPT_MAX_CHARS
    if limit is not None and len(source_text) > limit:
        return source_text[:limit]
    return source_text


class ExtractionService:
    def __init__(self, model: GenerativeModel, store: RecordStore, settings: Settings):
        self.model = model
        self.store = store
        self.settings = settings

    async def extract(self, source_text: str, source_kind: SourceKind) -> CrmRecord:
        if not source_text or not source_text.strip():
            raise ExtractionError("Source text is empty", kind=ErrorKind.INVALID_INPUT)

        source_text = source_text.strip()
        today = datetime.now(timezone.utc).date().isoformat()

        reply = await self.model.generate(
            build_extraction_input(source_text, source_kind, today),
            system_instruction=EXTRACTION_SYSTEM_PROMPT,
            json_output=True,
            temperature=self.settings.EXTRACTION_TEMPERATURE,
        )
        payload = parse_model_json(reply)
        fields = normalize(payload)

        record = CrmRecord(
            **fields.model_dump(),
            transcript=build_transcript(source_text, source_kind, self.settings),
            created_at=datetime.now(timezone.utc),
        )

        await self.store.insert(record)
        logger.info(
            f"Extracted {source_kind.value} record for "
            f"{record.company_name or 'unknown company'} (prompt {reply.prompt_hash})"
        )
        return record
