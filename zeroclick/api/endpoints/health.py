from fastapi import APIRouter, HTTPException, status

from zeroclick.api.deps import settings_dep
from zeroclick.core.credentials import describe_credentials

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/credentials")
async def credentials_status(settings: settings_dep):
    """Which Google credential source is active. No key material is returned."""
    try:
        return {"ok": True, **describe_credentials(settings)}
    except (OSError, ValueError) as error:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"ok": False, "error": type(error).__name__},
        )
