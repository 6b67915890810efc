"""
API module for pg-schema-migrate.
"""

from .models import MigrateRequest, MigrateResponse, HealthResponse
from .api import app

__all__ = [
    "MigrateRequest",
    "MigrateResponse",
    "HealthResponse",
    "app"
]
