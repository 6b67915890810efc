import logging
import os
import shlex
from datetime import datetime
from pathlib import Path
from typing import Optional

from pg_schema_migrate.lib.errors import OutputError
from pg_schema_migrate.lib.models import ADMIN_DATABASE, ConnectionProfile, MigrationPlan

ROLLBACK_SCRIPT_NAME = "rollback.sh"
INSTRUCTIONS_NAME = "README.md"


def quote_ident(name: str) -> str:
    """Quote a SQL identifier, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def comment_text(value) -> str:
    """Flatten a value onto one line so it stays inside a shell comment."""
    return " ".join(str(value).splitlines())


def render_rollback_script(profile: ConnectionProfile, backup_path: Path, created: datetime) -> str:
    """
    Render a bash script that restores the destination from a backup.

    The password is never embedded; the script asks for it when run.
    Nothing but echo and the confirmation prompt runs before the operator
    answers yes.
    """
    host = shlex.quote(profile.host)
    port = shlex.quote(str(profile.port))
    user = shlex.quote(profile.username)
    dbname = shlex.quote(profile.database)
    admin_db = shlex.quote(ADMIN_DATABASE)
    backup = shlex.quote(str(backup_path))
    drop_sql = shlex.quote(f"DROP DATABASE IF EXISTS {quote_ident(profile.database)};")
    create_sql = shlex.quote(f"CREATE DATABASE {quote_ident(profile.database)};")
    password_prompt = shlex.quote(f"Password for {profile.username}@{profile.host}: ")
    server = comment_text(f"{profile.username}@{profile.host}:{profile.port}")

    return f"""#!/bin/bash
# Rollback script generated by pg-schema-migrate
# Created: {created.strftime('%Y-%m-%d %H:%M:%S')}
# Server: {server}
# Database: {comment_text(profile.database)}
# SSL mode: {profile.ssl_mode.value}
# Backup: {comment_text(backup_path)}

set -e

echo "WARNING: This will restore the database to its previous state!"
echo "This will DROP the current database and restore from backup."
read -p "Are you sure you want to continue? (yes/no): " confirm

if [ "$confirm" = "yes" ]; then
    echo "Starting rollback..."

    read -s -p {password_prompt} PGPASSWORD
    echo
    export PGPASSWORD
    export PGSSLMODE={shlex.quote(profile.ssl_mode.value)}

    echo "Dropping current database..."
    psql -h {host} -p {port} -U {user} -d {admin_db} -c {drop_sql}

    echo "Creating database..."
    psql -h {host} -p {port} -U {user} -d {admin_db} -c {create_sql}

    echo "Restoring from backup..."
    psql -h {host} -p {port} -U {user} -d {dbname} -f {backup}

    echo "Rollback completed!"
else
    echo "Rollback cancelled."
fi
"""


def generate_rollback_script(
    profile: ConnectionProfile,
    backup_path: Optional[Path],
    plan: MigrationPlan,
    *,
    logger: Optional[logging.Logger] = None,
    now: Optional[datetime] = None
) -> Optional[Path]:
    """
    Write <output_dir>/rollback.sh restoring the destination from its backup.

    Args:
        profile: Destination the script restores
        backup_path: Backup produced by this run, or None if there is none
        plan: Migration plan; nothing is written when backups are disabled
        logger: Logger to report progress to
        now: Generation time recorded in the script

    Returns:
        Path of the script, or None if nothing was written

    Raises:
        OutputError: If the script cannot be written
    """
    log = logger or logging.getLogger(__name__)

    if not plan.create_backup or backup_path is None:
        return None

    script_path = plan.output_dir / ROLLBACK_SCRIPT_NAME
    log.info(f"Generating rollback script: {script_path}")

    content = render_rollback_script(profile, backup_path, now or datetime.now())
    try:
        script_path.write_text(content)
        os.chmod(script_path, 0o755)
    except OSError as e:
        raise OutputError(f"could not write rollback script {script_path}: {e}", database=profile.database) from e

    log.info(f"Rollback script created: {script_path}")
    return script_path


def generate_migration_instructions(
    output_dir: Path,
    schema_file: Path,
    *,
    logger: Optional[logging.Logger] = None,
    now: Optional[datetime] = None
) -> Path:
    """Write README.md describing how to review and apply an exported schema."""
    log = logger or logging.getLogger(__name__)
    instructions_path = output_dir / INSTRUCTIONS_NAME
    created = (now or datetime.now()).strftime('%Y-%m-%d %H:%M:%S')

    content = f"""# Schema Migration Instructions

Generated: {created}

## Files Created

- **{schema_file.name}** - Complete schema export
- **{INSTRUCTIONS_NAME}** - This instruction file

## Manual Migration Steps

### 1. Review Schema File

```bash
less {schema_file}
```

### 2. Apply to Destination Database

```bash
export PGPASSWORD="your_dest_password"
export PGSSLMODE="require"  # or appropriate SSL mode

# Optional: back up the destination first
pg_dump -h dest_host -p 5432 -U postgres -d dest_database -f backup_$(date +%Y%m%d_%H%M%S).sql

psql -h dest_host -p 5432 -U postgres -d dest_database -v ON_ERROR_STOP=1 -f {schema_file}
```

### 3. Verification

```bash
psql -h dest_host -p 5432 -U postgres -d dest_database -c "\\dt"
psql -h dest_host -p 5432 -U postgres -d dest_database -c "\\df"
psql -h dest_host -p 5432 -U postgres -d dest_database -c "\\dv"
```

## Important Notes

- This is a schema-only migration; no data is included
- Review the schema file before applying it to production
- Apply to an empty destination database
"""
    try:
        instructions_path.write_text(content)
    except OSError as e:
        raise OutputError(f"could not write migration instructions {instructions_path}: {e}") from e

    log.info(f"Migration instructions created: {instructions_path}")
    return instructions_path
