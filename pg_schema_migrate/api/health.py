"""
Health and status endpoints.
"""

from fastapi import APIRouter
from pg_schema_migrate.api.models import HealthResponse

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
def health():
    """Get API health status"""
    return HealthResponse(status="healthy", version="1.0.0")
