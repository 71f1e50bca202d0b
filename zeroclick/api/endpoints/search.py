from typing import Annotated, List

from fastapi import APIRouter, Depends, Query

from zeroclick.ai_feature.service import SearchService
from zeroclick.api.deps import get_search_service, store_dep
from zeroclick.api.errors import to_http_exception
from zeroclick.core import schemas
from zeroclick.core.errors import PipelineError

router = APIRouter(tags=["Search"])

search_dep = Annotated[SearchService, Depends(get_search_service)]


@router.post("/search", response_model=schemas.SearchResponse)
async def search_records(payload: schemas.QueryRequest, searcher: search_dep):
    """
    Answer a natural-language question with rows from the CRM table.
    Questions that cannot be turned into a safe SELECT return 422, never rows.
    """
    try:
        rows = await searcher.search(payload.query)
    except PipelineError as error:
        raise to_http_exception(error)
    return {"rows": rows, "row_count": len(rows)}


@router.get("/entries", response_model=List[schemas.CrmRecordResponse])
async def get_entries(store: store_dep, limit: int = Query(default=50, ge=1, le=50)):
    """Latest CRM records, newest first."""
    try:
        return await store.recent(limit)
    except PipelineError as error:
        raise to_http_exception(error)
