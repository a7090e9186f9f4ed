from fastapi import APIRouter, Depends

from edpsych_tenancy.dependencies import get_store
from edpsych_tenancy.models.common import HealthResponse, ReadyResponse
from edpsych_tenancy.storage.base import TenantStore

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")


@router.get("/ready", response_model=ReadyResponse)
async def ready(store: TenantStore = Depends(get_store)):
    try:
        if not store.ping():
            return ReadyResponse(status="degraded", store=False, detail="Store did not answer")
        return ReadyResponse(status="ready", store=True)
    except Exception as e:
        return ReadyResponse(status="degraded", store=False, detail=str(e))
