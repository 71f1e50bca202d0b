from fastapi import APIRouter
from zeroclick.api.endpoints import extract, search, ingest, health

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(extract.router)
api_router.include_router(search.router)
api_router.include_router(ingest.router)
api_router.include_router(health.router)
