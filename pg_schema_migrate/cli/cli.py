import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from pg_schema_migrate.cli.prompts import OperatorInput, TerminalInput
from pg_schema_migrate.lib.errors import ConfigError, MigrationError
from pg_schema_migrate.lib.migrate import migrate
from pg_schema_migrate.lib.models import ConnectionProfile, MigrationMode, MigrationPlan

SOURCE_PASSWORD_ENV = "PGSCHEMA_SOURCE_PASSWORD"
DEST_PASSWORD_ENV = "PGSCHEMA_DEST_PASSWORD"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-schema-migrate",
        description="pg-schema-migrate: migrate PostgreSQL schemas (structure only) between hosts"
    )

    source = parser.add_argument_group("source database")
    source.add_argument("-s", "--source-host", default="localhost", help="Source database host")
    source.add_argument("--source-port", default="5432", help="Source database port")
    source.add_argument("-u", "--source-user", default="postgres", help="Source database username")
    source.add_argument("-d", "--source-db", required=True, help="Source database name")
    source.add_argument(
        "--source-ssl",
        default="require",
        help="Source SSL mode (disable, require, verify-ca, verify-full)"
    )

    dest = parser.add_argument_group("destination database")
    dest.add_argument("--dest-host", default="localhost", help="Destination database host")
    dest.add_argument("--dest-port", default="5432", help="Destination database port")
    dest.add_argument("--dest-user", default="postgres", help="Destination database username")
    dest.add_argument("--dest-db", help="Destination database name (leave empty to prompt)")
    dest.add_argument(
        "--dest-ssl",
        default="require",
        help="Destination SSL mode (disable, require, verify-ca, verify-full)"
    )

    parser.add_argument("-m", "--mode", default="direct", help="Migration mode: 'direct' or 'export'")
    parser.add_argument(
        "-o", "--output-dir",
        default="./schema_migration",
        help="Output directory for exported schema, backups and rollback script"
    )
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done without executing")
    parser.add_argument("--include-roles", action="store_true", help="Include database roles and permissions")
    parser.add_argument("--no-backup", action="store_true", help="Skip creating rollback backup")
    parser.add_argument(
        "--with-instructions",
        action="store_true",
        help="In export mode, also write a README.md with manual apply steps"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only report warnings and errors")
    return parser


def build_config(
    args: argparse.Namespace,
    operator: OperatorInput,
    environ: Optional[dict] = None
) -> Tuple[ConnectionProfile, Optional[ConnectionProfile], MigrationPlan]:
    """
    Turn parsed flags and operator answers into validated configuration.

    Everything that can be checked without asking the operator is checked
    before any prompt.

    Returns:
        (source profile, destination profile or None in export mode, plan)

    Raises:
        ConfigError: On invalid SSL mode, mode, port or conflicting options
    """
    environ = os.environ if environ is None else environ

    plan = MigrationPlan.build(
        mode=args.mode,
        output_dir=Path(args.output_dir),
        create_backup=not args.no_backup,
        include_roles=args.include_roles,
        dry_run=args.dry_run,
        write_instructions=args.with_instructions
    )

    source = ConnectionProfile.build(
        "source",
        host=args.source_host,
        port=args.source_port,
        username=args.source_user,
        database=args.source_db,
        ssl_mode=args.source_ssl
    )

    dest = None
    if plan.mode == MigrationMode.DIRECT:
        # validated with a placeholder name so a bad SSL mode fails before any prompt
        dest = ConnectionProfile.build(
            "destination",
            host=args.dest_host,
            port=args.dest_port,
            username=args.dest_user,
            database=args.dest_db or args.source_db,
            ssl_mode=args.dest_ssl
        )

    source_password = environ.get(SOURCE_PASSWORD_ENV)
    if source_password is None:
        source_password = operator.password(
            f"Enter password for source database ({source.username}@{source.host}): "
        )
    source = source.model_copy(update={"password": source_password})

    if dest is not None:
        dest_password = environ.get(DEST_PASSWORD_ENV)
        if dest_password is None:
            dest_password = operator.password(
                f"Enter password for destination database ({dest.username}@{dest.host}): "
            )
        dest_db = args.dest_db or operator.choose_dest_db(source.database)
        dest = ConnectionProfile.build(
            "destination",
            **{**dest.model_dump(), "password": dest_password, "database": dest_db}
        )

    return source, dest, plan


def main(argv=None, operator: Optional[OperatorInput] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set log level based on verbosity flags
    if args.quiet:
        log_level = logging.WARNING
    elif args.verbose >= 1:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    # Configure logging
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    logger = logging.getLogger("pg_schema_migrate")

    logger.info("Starting PostgreSQL schema migration...")
    try:
        source, dest, plan = build_config(args, operator or TerminalInput())
        run = migrate(source, dest, plan, logger=logger)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return e.exit_code
    except MigrationError as e:
        logger.error(f"Schema migration failed: {e}")
        return e.exit_code

    if plan.dry_run and plan.mode == MigrationMode.DIRECT:
        logger.info("Dry run completed - no changes applied")
    else:
        logger.info("Schema migration completed successfully!")
    logger.debug(f"Run summary: {run.to_dict()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
