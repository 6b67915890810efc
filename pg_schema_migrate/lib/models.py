from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pg_schema_migrate.lib.errors import ConfigError

ADMIN_DATABASE = "postgres"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class SSLMode(str, Enum):
    """SSL modes accepted by libpq, passed through as PGSSLMODE."""
    DISABLE = "disable"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


class MigrationMode(str, Enum):
    """How the exported schema reaches the destination."""
    DIRECT = "direct"
    EXPORT = "export"


class MigrationState(Enum):
    """Steps of a migration run, in the order they are reached."""
    INIT = "init"
    SOURCE_VALIDATED = "source_validated"
    DEST_VALIDATED = "dest_validated"
    SCHEMA_EXPORTED = "schema_exported"
    EXPORT_COMPLETE = "export_complete"
    BACKUP_ATTEMPTED = "backup_attempted"
    DRY_RUN_REPORTED = "dry_run_reported"
    DESTINATION_RECREATED = "destination_recreated"
    SCHEMA_APPLIED = "schema_applied"
    ROLLBACK_SCRIPT_WRITTEN = "rollback_script_written"


def _config_error(label: str, exc: ValidationError) -> ConfigError:
    details = []
    for err in exc.errors():
        field_name = ".".join(str(part) for part in err["loc"]) or "value"
        details.append(f"{field_name}: {err['msg']}")
    return ConfigError(f"invalid {label} ({'; '.join(details)})")


class ConnectionProfile(BaseModel):
    """Connection details for one PostgreSQL server and database."""
    model_config = ConfigDict(frozen=True)

    host: str = Field("localhost", min_length=1)
    port: int = Field(5432, ge=1, le=65535)
    username: str = Field("postgres", min_length=1)
    password: str = Field("", repr=False)
    database: str = Field(..., min_length=1)
    ssl_mode: SSLMode = SSLMode.REQUIRE

    @classmethod
    def build(cls, label: str = "connection", **values) -> "ConnectionProfile":
        """
        Construct a profile, reporting invalid input as a ConfigError.

        Args:
            label: Name used in the error message (e.g. "source", "destination")
            **values: Profile fields

        Returns:
            A validated, immutable ConnectionProfile
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise _config_error(f"{label} profile", e) from e

    def admin(self) -> "ConnectionProfile":
        """Same server and credentials, pointed at the administrative database."""
        return self.model_copy(update={"database": ADMIN_DATABASE})

    def describe(self) -> str:
        return f"{self.username}@{self.host}:{self.port}/{self.database}"


class MigrationPlan(BaseModel):
    """What a run should do, fixed once built from user input."""
    model_config = ConfigDict(frozen=True)

    mode: MigrationMode = MigrationMode.DIRECT
    output_dir: Path = Path("./schema_migration")
    create_backup: bool = True
    include_roles: bool = False
    dry_run: bool = False
    write_instructions: bool = False

    @model_validator(mode="after")
    def _check_conflicts(self):
        if self.write_instructions and self.mode != MigrationMode.EXPORT:
            raise ValueError("migration instructions are only written in export mode")
        return self

    @classmethod
    def build(cls, **values) -> "MigrationPlan":
        try:
            return cls(**values)
        except ValidationError as e:
            raise _config_error("migration plan", e) from e

    @property
    def backup_dir(self) -> Path:
        return self.output_dir / "backup"

    @property
    def backs_up(self) -> bool:
        """Backups only apply when a destination is touched."""
        return self.create_backup and self.mode == MigrationMode.DIRECT


@dataclass(frozen=True)
class BackupResult:
    """Outcome of a destination backup attempt."""
    created: bool
    path: Optional[Path] = None


@dataclass
class MigrationRun:
    """
    State of a single orchestrator invocation.

    Attributes:
        timestamp: Namespaces every file generated by this run
        schema_file: Where the source schema is exported
        backup_file: Where the destination backup goes, None when backups do not apply
        state: Last state the run reached
        backup_created: Whether a backup file was actually written
        rollback_script: Path of the generated rollback script, if any
        instructions_file: Path of the export-mode instructions, if any
    """
    timestamp: str
    schema_file: Path
    backup_file: Optional[Path] = None
    state: MigrationState = MigrationState.INIT
    backup_created: bool = False
    rollback_script: Optional[Path] = None
    instructions_file: Optional[Path] = None

    @classmethod
    def start(
        cls,
        source: ConnectionProfile,
        dest: Optional[ConnectionProfile],
        plan: MigrationPlan,
        now: datetime
    ) -> "MigrationRun":
        timestamp = now.strftime(TIMESTAMP_FORMAT)
        schema_file = plan.output_dir / f"schema_{source.database}_{timestamp}.sql"
        backup_file = None
        if plan.backs_up and dest is not None:
            backup_file = plan.backup_dir / f"backup_{dest.database}_{timestamp}.sql"
        return cls(timestamp=timestamp, schema_file=schema_file, backup_file=backup_file)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "state": self.state.value,
            "schema_file": str(self.schema_file),
            "backup_file": str(self.backup_file) if self.backup_created else None,
            "rollback_script": str(self.rollback_script) if self.rollback_script else None,
            "instructions_file": str(self.instructions_file) if self.instructions_file else None,
        }
