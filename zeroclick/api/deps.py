from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from zeroclick.ai_feature.model import GeminiModel, GenerativeModel
from zeroclick.ai_feature.service import SearchService, SqlGuard
from zeroclick.core.config import Settings, get_settings
from zeroclick.core.database import get_db
from zeroclick.core.etl.extract import ExtractionService
from zeroclick.core.etl.ingest import SpeechTranscriber, Transcriber
from zeroclick.core.etl.load import RecordStore
from zeroclick.core.etl.pipeline import IngestionPipeline
from zeroclick.core.storage import UploadBroker

settings_dep = Annotated[Settings, Depends(get_settings)]
db_dep = Annotated[AsyncSession, Depends(get_db)]


# Collaborators (tests override these)
def get_model(settings: settings_dep) -> GenerativeModel:
    return GeminiModel(settings)


def get_transcriber(settings: settings_dep) -> Transcriber:
    return SpeechTranscriber(settings)


def get_upload_broker(settings: settings_dep) -> UploadBroker:
    return UploadBroker(settings)


def get_store(db: db_dep) -> RecordStore:
    return RecordStore(db)


model_dep = Annotated[GenerativeModel, Depends(get_model)]
store_dep = Annotated[RecordStore, Depends(get_store)]


# Services
def get_extraction_service(
    model: model_dep, store: store_dep, settings: settings_dep
) -> ExtractionService:
    return ExtractionService(model, store, settings)


def get_search_service(
    model: model_dep, store: store_dep, settings: settings_dep
) -> SearchService:
    return SearchService(SqlGuard(model, settings), store, settings)


def get_ingestion_pipeline(
    transcriber: Annotated[Transcriber, Depends(get_transcriber)],
    extractor: Annotated[ExtractionService, Depends(get_extraction_service)],
) -> IngestionPipeline:
    return IngestionPipeline(transcriber, extractor)
