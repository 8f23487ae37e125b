from fastapi import APIRouter

from transgate.schemas.health import HealthResponse

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse, summary="Liveness probe")
async def healthz():
    """No authentication and no rate limit."""
    return HealthResponse(ok=True)
