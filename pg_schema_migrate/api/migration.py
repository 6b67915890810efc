"""
Schema migration endpoint.
"""

import logging
from pathlib import Path

from fastapi import APIRouter

from pg_schema_migrate.api.models import MigrateRequest, MigrateResponse
from pg_schema_migrate.lib.migrate import migrate
from pg_schema_migrate.lib.models import MigrationMode, MigrationPlan

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/migrate", response_model=MigrateResponse, responses={
    400: {
        "description": "Invalid configuration",
        "content": {
            "application/json": {
                "example": {
                    "error": "Invalid configuration",
                    "stage": "config",
                    "database": None,
                    "detail": "direct mode requires a destination profile"
                }
            }
        }
    },
    500: {
        "description": "Migration failed",
        "content": {
            "application/json": {
                "example": {
                    "error": "Migration failed",
                    "stage": "apply",
                    "database": "shop_staging",
                    "detail": "psql exited with status 3; destination was recreated empty and the schema was not applied"
                }
            }
        }
    }
})
def migrate_schema(request: MigrateRequest):
    """
    Migrate the source schema to the destination, or export it.

    Default is dry-run mode for safety: the schema is exported and the
    destination backed up, but nothing is dropped or applied.
    """
    plan = MigrationPlan.build(
        mode=request.mode,
        output_dir=Path(request.output_dir),
        create_backup=request.create_backup,
        include_roles=request.include_roles,
        dry_run=request.dry_run,
        write_instructions=request.write_instructions
    )
    run = migrate(request.source, request.destination, plan, logger=logger)

    if plan.mode == MigrationMode.EXPORT:
        status, message = "exported", f"Schema exported to {run.schema_file}"
    elif plan.dry_run:
        status, message = "preview", "Dry run completed - no changes applied"
    else:
        status, message = "success", f"Schema applied to {request.destination.database}"

    return MigrateResponse(status=status, message=message, **run.to_dict())
