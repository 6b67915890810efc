"""
Pydantic models for API requests and responses.
"""

from typing import Optional

from pydantic import BaseModel, Field

from pg_schema_migrate.lib.models import ConnectionProfile, MigrationMode


class MigrateRequest(BaseModel):
    """Request model for a schema migration."""
    source: ConnectionProfile = Field(..., description="Database whose schema is exported")
    destination: Optional[ConnectionProfile] = Field(None, description="Database that is replaced (direct mode)")
    mode: MigrationMode = Field(MigrationMode.DIRECT, description="direct or export")
    output_dir: str = Field("./schema_migration", description="Directory for generated files")
    create_backup: bool = Field(True, description="Back up the destination before replacing it")
    include_roles: bool = Field(False, description="Keep privilege statements in the export")
    dry_run: bool = Field(True, description="Report what would be done without touching the destination")
    write_instructions: bool = Field(False, description="Write README.md with manual steps (export mode)")


class MigrateResponse(BaseModel):
    """Outcome of a migration run."""
    status: str = Field(..., examples=["success"])
    state: str = Field(..., examples=["rollback_script_written"])
    timestamp: str
    schema_file: str
    backup_file: Optional[str] = None
    rollback_script: Optional[str] = None
    instructions_file: Optional[str] = None
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., examples=["healthy"])
    version: str = Field(..., examples=["1.0.0"])
