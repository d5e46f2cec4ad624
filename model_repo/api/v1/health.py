# model_repo/api/v1/health.py
from datetime import datetime, timezone

from fastapi import APIRouter

from ...domain.schemas import HealthResult

router = APIRouter()


@router.get("/health", response_model=HealthResult)
def health():
    """Liveness probe. Returns 200 whenever the API process is reachable."""
    return HealthResult(status="OK", timestamp=datetime.now(timezone.utc))
