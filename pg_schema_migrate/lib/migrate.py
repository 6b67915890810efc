"""
Migration orchestration.

A run moves through MigrationState in order:

    INIT -> SOURCE_VALIDATED -> [DEST_VALIDATED] -> SCHEMA_EXPORTED
         -> EXPORT_COMPLETE                                  (export mode)
         -> BACKUP_ATTEMPTED -> DRY_RUN_REPORTED             (dry run)
         -> BACKUP_ATTEMPTED -> DESTINATION_RECREATED -> SCHEMA_APPLIED
            -> ROLLBACK_SCRIPT_WRITTEN

Fatal errors propagate as MigrationError subclasses and stop the run where
it is. Backup and rollback-script failures are logged and the run goes on.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from pg_schema_migrate.lib import admin, connection, pgdump, rollback
from pg_schema_migrate.lib.errors import BackupError, ConfigError, OutputError
from pg_schema_migrate.lib.models import (
    ConnectionProfile,
    MigrationMode,
    MigrationPlan,
    MigrationRun,
    MigrationState,
)


class SchemaMigrator:
    """
    Runs one schema migration from a source to a destination.

    Attributes:
        source: Profile of the database whose schema is exported
        dest: Profile of the database that is replaced (direct mode only)
        plan: What the run should do
        logger: Receives all progress, warning and dry-run output
        now: Clock used to timestamp generated files
        connect: Connection factory handed to validation and admin operations
        runner: Subprocess runner handed to pg_dump/psql wrappers
    """

    def __init__(
        self,
        source: ConnectionProfile,
        dest: Optional[ConnectionProfile],
        plan: MigrationPlan,
        *,
        logger: Optional[logging.Logger] = None,
        now: Callable[[], datetime] = datetime.now,
        connect: Optional[Callable] = None,
        runner: Optional[Callable] = None
    ):
        if plan.mode == MigrationMode.DIRECT and dest is None:
            raise ConfigError("direct mode requires a destination profile")
        self.source = source
        self.dest = dest if plan.mode == MigrationMode.DIRECT else None
        self.plan = plan
        self.logger = logger or logging.getLogger(__name__)
        self.now = now
        self.connect = connect
        self.runner = runner

    def run(self) -> MigrationRun:
        """
        Execute the migration.

        Returns:
            The MigrationRun describing the files produced and the final state

        Raises:
            MigrationError: On any fatal failure
        """
        log = self.logger
        run = MigrationRun.start(self.source, self.dest, self.plan, self.now())

        connection.validate(self.source, label="source", logger=log, connect=self.connect)
        run.state = MigrationState.SOURCE_VALIDATED

        if self.dest is not None:
            connection.validate_server(self.dest, label="destination", logger=log, connect=self.connect)
            run.state = MigrationState.DEST_VALIDATED

        self._create_directories()

        pgdump.export_schema(
            self.source, run.schema_file, self.plan.include_roles,
            logger=log, runner=self.runner
        )
        run.state = MigrationState.SCHEMA_EXPORTED

        if self.plan.mode == MigrationMode.EXPORT:
            log.info(f"Schema exported to: {run.schema_file}")
            if self.plan.write_instructions:
                run.instructions_file = rollback.generate_migration_instructions(
                    self.plan.output_dir, run.schema_file, logger=log
                )
            run.state = MigrationState.EXPORT_COMPLETE
            return run

        if run.backup_file is not None:
            self._backup(run)
        run.state = MigrationState.BACKUP_ATTEMPTED

        if self.plan.dry_run:
            self._report_dry_run(run)
            run.rollback_script = rollback.generate_rollback_script(
                self.dest, self._rollback_source(run), self.plan, logger=log
            )
            run.state = MigrationState.DRY_RUN_REPORTED
            return run

        admin.recreate_database(self.dest, logger=log, connect=self.connect)
        run.state = MigrationState.DESTINATION_RECREATED

        pgdump.apply_schema(self.dest, run.schema_file, logger=log, runner=self.runner)
        run.state = MigrationState.SCHEMA_APPLIED

        try:
            run.rollback_script = rollback.generate_rollback_script(
                self.dest, self._rollback_source(run), self.plan, logger=log
            )
        except OutputError as e:
            log.warning(f"Failed to generate rollback script: {e}")
        run.state = MigrationState.ROLLBACK_SCRIPT_WRITTEN
        return run

    def _create_directories(self):
        dirs = [self.plan.output_dir]
        if self.plan.backs_up:
            dirs.append(self.plan.backup_dir)
        for directory in dirs:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OutputError(f"could not create directory {directory}: {e}") from e

    def _backup(self, run: MigrationRun):
        try:
            result = pgdump.backup_database(
                self.dest, run.backup_file,
                logger=self.logger, runner=self.runner, connect=self.connect
            )
        except BackupError as e:
            self.logger.warning(
                f"Backup creation failed (continuing without a rollback point): {e}"
            )
            return
        run.backup_created = result.created

    def _rollback_source(self, run: MigrationRun):
        # Only a backup that was written can be restored, so a dry run
        # against an absent destination gets no rollback.sh.
        return run.backup_file if run.backup_created else None

    def _report_dry_run(self, run: MigrationRun):
        log = self.logger
        log.info("DRY RUN MODE - showing what would be done:")
        log.info(f"1. Drop and recreate database: {self.dest.describe()}")
        log.info(f"2. Apply schema from: {run.schema_file}")
        if run.backup_created:
            log.info(f"3. Backup created at: {run.backup_file}")
        elif self.plan.create_backup:
            log.info("3. No backup was created")


def migrate(
    source: ConnectionProfile,
    dest: Optional[ConnectionProfile],
    plan: MigrationPlan,
    *,
    logger: Optional[logging.Logger] = None,
    **kwargs
) -> MigrationRun:
    """Run a schema migration. See SchemaMigrator for the keyword arguments."""
    return SchemaMigrator(source, dest, plan, logger=logger, **kwargs).run()
