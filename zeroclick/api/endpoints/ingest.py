from typing import Annotated

from fastapi import APIRouter, Depends, status

from zeroclick.api.deps import get_ingestion_pipeline, get_upload_broker
from zeroclick.api.errors import to_http_exception
from zeroclick.core import schemas
from zeroclick.core.errors import PipelineError
from zeroclick.core.etl.pipeline import IngestionPipeline
from zeroclick.core.storage import UploadBroker

router = APIRouter(tags=["Audio ingestion"])

broker_dep = Annotated[UploadBroker, Depends(get_upload_broker)]
pipeline_dep = Annotated[IngestionPipeline, Depends(get_ingestion_pipeline)]


@router.post("/uploads/signed-url", response_model=schemas.UploadUrlResponse)
async def create_upload_url(payload: schemas.UploadUrlRequest, broker: broker_dep):
    """
    Issue a short-lived PUT URL for one audio file.
    The client must send the returned headers with the upload.
    """
    try:
        return await broker.signed_upload_url(
            payload.file_name, payload.file_type, payload.file_size
        )
    except PipelineError as error:
        raise to_http_exception(error)


@router.post(
    "/ingest/audio-events",
    response_model=schemas.IngestionResponse,
    status_code=status.HTTP_200_OK,
)
async def handle_audio_event(event: schemas.StorageObjectEvent, pipeline: pipeline_dep):
    """
    Object-creation hook: transcribe, extract, insert.
    Always answers 200 with the terminal state so the sender does not redeliver
    a failure that would fail again.
    """
    run = await pipeline.run(event)
    return run.summary()
