#!/usr/bin/env python3
"""
Kibela to Kibela Import Tool - Main CLI Entry Point

Recreates the notes, comments and attachments of Kibela export archives in
another Kibela team. Runs as a dry run unless --apply is given.
"""

import argparse
import sys
import logging
from typing import List, Optional

from dotenv import load_dotenv

from config_loader import ConfigLoader, get_nested
from errors import ConfigError, ConnectivityError, LogWriteError
from logger import setup_logging, log_section, log_config
from orchestrator import MigrationOrchestrator, MigrationReport
from readers import ArchiveReader

# Version
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="kibela-import",
        description="Import Kibela export archives into another Kibela team",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run: parse every entry and write nothing
  kibela-import --exported-from acme kibela-acme-1.zip

  # Import for real, using KIBELA_TEAM and KIBELA_TOKEN from the environment or .env
  kibela-import --apply --exported-from acme kibela-acme-1.zip kibela-acme-2.zip

  # Create missing groups as private groups
  kibela-import --apply --private-groups --exported-from acme kibela-acme-1.zip

  # Keep the transaction log in a separate directory and save a JSON report
  kibela-import --apply --exported-from acme --log-dir logs --report report.json kibela-acme-1.zip

  # Verbose logging
  kibela-import -v --exported-from acme kibela-acme-1.zip
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'archives',
        nargs='+',
        metavar='ARCHIVE',
        help='Zip archives exported from Kibela, processed in the given order'
    )

    parser.add_argument(
        '--apply',
        action='store_true',
        help='Create content in the destination team (default: dry run)'
    )

    parser.add_argument(
        '--exported-from',
        type=str,
        metavar='SUBDOMAIN',
        help='Subdomain of the team the archives were exported from (required)'
    )

    parser.add_argument(
        '--private-groups',
        action='store_true',
        help='Create missing groups as private groups (default: public)'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml, optional)'
    )

    parser.add_argument(
        '--log-dir',
        type=str,
        help='Directory for the transaction log (default: current directory)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write a JSON report of the run to this path'
    )

    parser.add_argument(
        '--progress',
        action='store_true',
        help='Show a progress bar per archive'
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Enable debug logging'
    )
    verbosity.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Only log warnings and errors'
    )

    return parser


def validate_archives(archive_paths: List[str]) -> None:
    """
    Check every archive before anything is imported.

    Raises:
        ConfigError: If an archive is missing or not a zip file
    """
    for archive_path in archive_paths:
        try:
            ArchiveReader(archive_path).validate()
        except (FileNotFoundError, ValueError) as e:
            raise ConfigError(str(e)) from e


def run_import(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the import pipeline over all archives."""
    exported_from = get_nested(config, 'migration.exported_from')
    apply = get_nested(config, 'migration.apply', False)
    visibility = "private" if get_nested(config, 'migration.private_groups', False) else "public"

    logger.info(f"The archives come from https://{exported_from}.kibe.la")
    logger.info(f"All the groups will be created as {visibility}.")
    if not apply:
        logger.info("Dry-run mode: nothing will be created. Pass --apply to import.")

    try:
        orchestrator = MigrationOrchestrator(config, logger=logger)
        stats = orchestrator.run(args.archives)
    except ConnectivityError as e:
        logger.error(f"Cannot connect to the destination team: {e}")
        return 1
    except LogWriteError as e:
        logger.error(f"Transaction log failure: {e}")
        return 1
    except KeyboardInterrupt:
        logger.error("Import interrupted by user")
        return 130

    report_generator = MigrationReport(logger)
    report = report_generator.generate_report(stats, exported_from=exported_from)
    print("\n" + report_generator.format_console_report(report))

    report_path = get_nested(config, 'migration.report_path')
    if report_path:
        report_generator.export_json_report(report, report_path)

    if stats['failure'] > 0:
        logger.warning(f"Import completed with {stats['failure']} failed entries")
        return 1

    logger.info("Import completed successfully")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        load_dotenv()

        verbosity = -1 if args.quiet else args.verbose
        setup_logging(verbosity=verbosity)
        logger = logging.getLogger('kibela_importer.migrate')

        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)
        validate_archives(args.archives)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=verbosity,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )

        log_section(f"Kibela Import Tool {__version__}")
        log_config(config)

        return run_import(config, args, logger)

    except ConfigError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nImport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
