from fastapi import APIRouter, Request

from checkresume.analysis.schema import SCHEMA_VERSION

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check(request: Request):
    providers = getattr(request.app.state, "providers", None) or []
    return {
        "status": "healthy",
        "schema_version": SCHEMA_VERSION,
        "providers": [provider.provider_id for provider in providers],
    }
