from typing import Dict, Any, List, Optional
from datetime import datetime
from enum import Enum
import logging

from zeroclick.core.errors import PipelineError
from zeroclick.core.etl.extract import ExtractionService
from zeroclick.core.etl.ingest import Transcriber, join_transcript
from zeroclick.core.schemas import CrmRecord, SourceKind, StorageObjectEvent


# -----------------------------------------------------------------------------
# PIPELINE MODULE - Audio ingestion orchestration
# Purpose: drive one uploaded audio object through transcription and
# extraction, record every step, end in exactly one terminal state.
# Failures are terminal. Redelivery belongs to whoever sends the event.
# -----------------------------------------------------------------------------


class IngestionState(Enum):
    """Per-object state. INSERTED and FAILED are terminal."""

    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    EXTRACTING = "extracting"
    INSERTED = "inserted"
    FAILED = "failed"


TRANSITIONS = {
    IngestionState.UPLOADED: {IngestionState.TRANSCRIBING, IngestionState.FAILED},
    IngestionState.TRANSCRIBING: {IngestionState.EXTRACTING, IngestionState.FAILED},
    IngestionState.EXTRACTING: {IngestionState.INSERTED, IngestionState.FAILED},
    IngestionState.INSERTED: set(),
    IngestionState.FAILED: set(),
}


logger = logging.getLogger(__name__)


class PipelineLogger:
    """Step log for one ingestion run."""

    def __init__(self, object_uri: str):
        self.object_uri = object_uri
        self.start_time = datetime.now()
        self.logs = []

    def log(self, step: str, message: str, level: str = "info"):
        timestamp = datetime.now().isoformat()
        log_entry = {
            "timestamp": timestamp,
            "step": step,
            "message": message,
            "level": level,
            "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
        }
        self.logs.append(log_entry)

        # Also log to console
        if level == "error":
            logger.error(f"[{self.object_uri}] {step}: {message}")
        elif level == "warning":
            logger.warning(f"[{self.object_uri}] {step}: {message}")
        else:
            logger.info(f"[{self.object_uri}] {step}: {message}")

    def get_logs(self) -> List[Dict[str, Any]]:
        return self.logs


class IngestionRun:
    """Tracks the state machine of one object. Illegal moves raise."""

    def __init__(self, event: StorageObjectEvent):
        self.event = event
        self.state = IngestionState.UPLOADED
        self.record: Optional[CrmRecord] = None
        self.error: Optional[str] = None
        self.pipeline_logger = PipelineLogger(event.uri)

    def advance(self, state: IngestionState, message: str):
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {state.value}")
        self.state = state
        level = "error" if state == IngestionState.FAILED else "info"
        self.pipeline_logger.log(state.value, message, level)

    def fail(self, reason: str):
        self.error = reason
        self.advance(IngestionState.FAILED, reason)

    def summary(self) -> Dict[str, Any]:
        return {
            "object_uri": self.event.uri,
            "state": self.state.value,
            "record": self.record,
            "error": self.error,
            "logs": self.pipeline_logger.get_logs(),
        }


class IngestionPipeline:
    def __init__(self, transcriber: Transcriber, extractor: ExtractionService):
        self.transcriber = transcriber
        self.extractor = extractor

    async def run(self, event: StorageObjectEvent) -> IngestionRun:
        """
        Uploaded → Transcribing → Extracting → Inserted | Failed.

        Never raises for pipeline failures: the returned run carries the
        terminal state and a human-readable reason.

        Example flow:
            1. Transcribe gs://bucket/2024-03-05/abc-memo.mp3
            2. Join the best alternative of every segment
            3. Extract and insert one CRM record
        """
        run = IngestionRun(event)
        run.pipeline_logger.log("uploaded", f"Received {event.uri}")

        try:
            await self._process(run)
        except PipelineError as e:
            run.fail(e.message)
        except Exception as e:
            logger.exception(f"[{event.uri}] unexpected error in {run.state.value}")
            run.fail(f"Unexpected {type(e).__name__} while {run.state.value}")
        return run

    async def _process(self, run: IngestionRun):
        event = run.event

        # STEP 1: TRANSCRIBE
        run.advance(IngestionState.TRANSCRIBING, "Sending to speech-to-text...")
        segments = await self.transcriber.transcribe(event.uri, event.content_type)

        transcript = join_transcript(segments)
        if not transcript:
            run.fail("Empty transcript from speech-to-text")
            return

        # STEP 2: EXTRACT + INSERT
        run.advance(
            IngestionState.EXTRACTING,
            f"Transcript ready ({len(transcript)} chars), extracting...",
        )
        run.record = await self.extractor.extract(transcript, SourceKind.VOICE)

        run.advance(IngestionState.INSERTED, "CRM record inserted")
