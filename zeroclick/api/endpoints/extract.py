from typing import Annotated

from fastapi import APIRouter, Depends, status

from zeroclick.api.deps import get_extraction_service
from zeroclick.api.errors import to_http_exception
from zeroclick.core import schemas
from zeroclick.core.errors import PipelineError
from zeroclick.core.etl.extract import ExtractionService

router = APIRouter(prefix="/extract", tags=["Extraction"])

extractor_dep = Annotated[ExtractionService, Depends(get_extraction_service)]


async def _extract(
    extractor: ExtractionService, text: str, kind: schemas.SourceKind
) -> schemas.CrmRecord:
    try:
        return await extractor.extract(text, kind)
    except PipelineError as error:
        raise to_http_exception(error)


@router.post(
    "/voice-memo",
    response_model=schemas.CrmRecord,
    status_code=status.HTTP_201_CREATED,
)
async def extract_voice_memo(payload: schemas.VoiceMemoRequest, extractor: extractor_dep):
    """Structure a voice-memo transcript and store it as a CRM record."""
    return await _extract(extractor, payload.transcript, schemas.SourceKind.VOICE)


@router.post(
    "/email",
    response_model=schemas.CrmRecord,
    status_code=status.HTTP_201_CREATED,
)
async def extract_email(payload: schemas.EmailRequest, extractor: extractor_dep):
    """Structure a pasted email body and store it as a CRM record."""
    return await _extract(extractor, payload.email_body, schemas.SourceKind.EMAIL)
