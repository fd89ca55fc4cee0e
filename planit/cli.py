"""
Command-line interface for PlanIt.

This module provides the CLI using argparse: CSV imports and exports,
the weekly timesheet view, manager review and store seeding.
"""

import argparse
import sys
from datetime import date
from pathlib import Path

from .config import Config
from .csv_generator import (
    NothingToExportError,
    export_csv,
    mission_export_rows,
    response_export_rows,
    roster_export_rows,
)
from .csv_loader import CSVLoadError, CSVLoader
from .csv_schema import MissingRequiredColumnError
from .defaults import seed_if_empty
from .lifecycle import InvalidTransitionError, filter_missions, reject, validate
from .logging_utils import (
    get_logger,
    log_error,
    log_section,
    log_step,
    log_success,
    log_warning,
    setup_logging,
)
from .models import FormTemplate, TimesheetRecord, normalize_login
from .store import (
    COLL_MISSIONS,
    COLL_RESPONSES,
    COLL_TEMPLATES,
    StoreError,
    list_models,
    load_missions,
    load_people,
    replace_roster,
    save_missions,
)
from .sync import RemoteSync
from .week_utils import (
    WeekRangeParseError,
    bucket_week,
    calculate_week_offset,
    category_stats,
    current_week,
    parse_week_range,
    weekly_total,
)


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--store',
        type=str,
        metavar='PATH',
        help='JSON data file (default: $PLANIT_STORE or planit-data.json)'
    )

    parser.add_argument(
        '--database-url',
        type=str,
        metavar='URL',
        help='SQL database URL, used instead of the JSON file'
    )

    parser.add_argument(
        '--sync-url',
        type=str,
        metavar='URL',
        help='Remote endpoint to push the data to after changes'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        metavar='PATH',
        help='Also write log records to this file'
    )

    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    common = argparse.ArgumentParser(add_help=False)
    _add_common_arguments(common)

    parser = argparse.ArgumentParser(
        prog='planit',
        description='Field-service timesheets: imports, exports and weekly review',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a planning export without saving anything
  python -m planit import-missions --csv planning.csv --dry-run

  # Import missions into a SQLite database
  python -m planit import-missions --csv planning.csv --database-url sqlite:///planit.db

  # Replace the user roster
  python -m planit import-users --csv equipe.csv

  # Show a technician's weeks 46 to 48
  python -m planit week --tech tech01 --week 46-48 --year 2025

  # Reject a mission
  python -m planit review --id m-123 --reject --comment "Heures incorrectes"

  # Export missions of one technician
  python -m planit export-missions --output missions.csv --tech tech01
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Import commands
    for name, help_text in (
        ('import-missions', 'Import missions from a planning CSV export'),
        ('import-users', 'Replace the user roster from a CSV file'),
    ):
        sub = subparsers.add_parser(name, parents=[common], help=help_text)
        sub.add_argument(
            '--csv',
            type=str,
            required=True,
            metavar='PATH',
            help='Path to the CSV file'
        )
        sub.add_argument(
            '--dry-run',
            action='store_true',
            help='Parse the CSV and show the result without saving'
        )

    # Export commands
    export_missions = subparsers.add_parser(
        'export-missions', parents=[common], help='Export missions to CSV'
    )
    export_missions.add_argument('--output', '-o', required=True, metavar='PATH')
    export_missions.add_argument(
        '--tech',
        action='append',
        metavar='LOGIN',
        help='Only this technician (repeatable)'
    )
    export_missions.add_argument(
        '--manager',
        action='append',
        metavar='INITIALS',
        help='Only missions of this manager (repeatable)'
    )
    export_missions.add_argument('--search', default='', help='Job code contains')
    export_missions.add_argument('--from', dest='start', type=date.fromisoformat, metavar='YYYY-MM-DD')
    export_missions.add_argument('--to', dest='end', type=date.fromisoformat, metavar='YYYY-MM-DD')

    export_users = subparsers.add_parser(
        'export-users', parents=[common], help='Export the user roster to CSV'
    )
    export_users.add_argument('--output', '-o', required=True, metavar='PATH')

    export_responses = subparsers.add_parser(
        'export-responses', parents=[common], help='Export form responses of a template to CSV'
    )
    export_responses.add_argument('--template', required=True, metavar='ID')
    export_responses.add_argument('--output', '-o', required=True, metavar='PATH')

    # Weekly view
    week = subparsers.add_parser(
        'week', parents=[common], help="Show a technician's weekly timesheet"
    )
    week.add_argument('--tech', required=True, metavar='LOGIN', help='Technician login')
    week.add_argument(
        '--week',
        type=str,
        metavar='SPEC',
        help='Week(s): "48", "46-48" or "46,48" (default: current week)'
    )
    week.add_argument('--year', type=int, metavar='YEAR', help='ISO year (default: current)')

    # Manager review
    review = subparsers.add_parser(
        'review', parents=[common], help='Validate or reject a mission'
    )
    review.add_argument('--id', required=True, dest='mission_id', metavar='ID')
    decision = review.add_mutually_exclusive_group(required=True)
    decision.add_argument('--validate', action='store_true', help='Validate the mission')
    decision.add_argument('--reject', action='store_true', help='Reject the mission')
    review.add_argument('--comment', default='', help='Rejection reason')

    subparsers.add_parser(
        'seed', parents=[common], help='Create the default accounts and templates in an empty store'
    )

    return parser


def validate_args(args: argparse.Namespace) -> bool:
    """
    Validate command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        True if valid, False otherwise
    """
    logger = get_logger()

    csv_path = getattr(args, 'csv', None)
    if csv_path and not Path(csv_path).exists():
        log_error(f"CSV file not found: {csv_path}", logger)
        return False

    if getattr(args, 'reject', False) and not args.comment.strip():
        log_error("--reject requires a --comment", logger)
        return False

    return True


def build_config(args: argparse.Namespace) -> Config:
    """Build the configuration from the environment and command-line arguments."""
    return Config.from_env(
        store_path=args.store,
        database_url=args.database_url,
        sync_url=args.sync_url,
        dry_run=getattr(args, 'dry_run', False),
        verbose=args.verbose,
        csv_path=getattr(args, 'csv', None),
        weeks=parse_week_range(args.week) if getattr(args, 'week', None) else None,
        year=getattr(args, 'year', None),
    )


def _push(config: Config, store):
    if config.sync_url and not config.dry_run:
        RemoteSync(config.sync_url, config.sync_timeout).push_from(store)


def cmd_import_missions(args, config: Config, store) -> int:
    logger = get_logger()
    log_section("Importing Missions", logger)

    try:
        records, summary = CSVLoader(config.csv_path).load_missions()
    except (CSVLoadError, MissingRequiredColumnError) as e:
        log_error(f"Import failed: {e}", logger)
        return 1

    logger.info(summary.format_summary())

    if not records:
        log_warning("No valid mission found in the file", logger)
        return 1

    for record in records:
        logger.debug(
            f"  {record.date.isoformat()} {record.technician_id:<12} "
            f"{record.job_code:<12} {record.total_hours():g}h"
        )

    if config.dry_run:
        log_section("Dry Run Complete", logger)
        logger.info("Nothing was saved. Run without --dry-run to import.")
        return 0

    count = save_missions(store, records)
    log_success(f"{count} mission(s) imported", logger)
    _push(config, store)
    return 0


def cmd_import_users(args, config: Config, store) -> int:
    logger = get_logger()
    log_section("Importing Users", logger)

    try:
        people, summary = CSVLoader(config.csv_path).load_roster()
    except (CSVLoadError, MissingRequiredColumnError) as e:
        log_error(f"Import failed: {e}", logger)
        return 1

    logger.info(summary.format_summary())

    if not people:
        log_warning("No valid user found in the file", logger)
        return 1

    for person in people:
        logger.debug(f"  {person.id:<12} {person.initials:<4} {person.role.value:<10} {person.display_name}")

    if config.dry_run:
        log_section("Dry Run Complete", logger)
        logger.info("Nothing was saved. Run without --dry-run to replace the roster.")
        return 0

    count = replace_roster(store, people)
    log_success(f"Roster replaced with {count} user(s)", logger)
    _push(config, store)
    return 0


def _write_export(rows, output: str, what: str) -> int:
    logger = get_logger()
    try:
        path = export_csv(rows, output)
    except NothingToExportError:
        log_warning(f"No {what} to export", logger)
        return 1
    log_success(f"Exported {len(rows)} {what} to {path}", logger)
    return 0


def cmd_export_missions(args, config: Config, store) -> int:
    log_section("Exporting Missions")
    records = filter_missions(
        load_missions(store),
        search=args.search,
        technician_ids=args.tech,
        manager_initials=args.manager,
        start=args.start,
        end=args.end,
    )
    return _write_export(mission_export_rows(records), args.output, 'mission(s)')


def cmd_export_users(args, config: Config, store) -> int:
    log_section("Exporting Users")
    return _write_export(roster_export_rows(load_people(store)), args.output, 'user(s)')


def cmd_export_responses(args, config: Config, store) -> int:
    logger = get_logger()
    log_section("Exporting Form Responses", logger)

    doc = store.get(COLL_TEMPLATES, args.template)
    if doc is None:
        log_error(f"Unknown template: {args.template}", logger)
        return 1
    template = FormTemplate.from_dict(doc)

    rows = response_export_rows(
        template,
        list_models(store, COLL_RESPONSES),
        load_people(store),
    )
    return _write_export(rows, args.output, f"'{template.name}' response(s)")


def cmd_week(args, config: Config, store) -> int:
    logger = get_logger()
    this_year, this_week = current_week()
    year = config.year or this_year
    weeks = config.weeks or [this_week]

    tech = normalize_login(args.tech)
    records = load_missions(store)

    for week in weeks:
        offset = calculate_week_offset(this_year, this_week, year, week)
        when = "this week" if offset == 0 else f"{offset:+d} week(s)"
        log_section(f"{tech}: week {week} of {year} ({when})", logger)
        buckets = bucket_week(records, tech, year, week)
        for bucket in buckets:
            logger.info(f"{bucket.weekday.capitalize():<10} {bucket.day.isoformat()}  {bucket.total():g}h")
            for record in bucket.records:
                logger.info(
                    f"    {record.job_code or '-':<12} {record.work_hours:g}h "
                    f"+ {record.travel_hours:g}h trajet + {record.overtime_hours:g}h supp "
                    f"[{record.status.value}]"
                )

        totals = weekly_total(buckets)
        stats = category_stats(r for b in buckets for r in b.records)
        logger.info("")
        logger.info(
            f"Total: {totals.total:g}h (work {totals.work:g}h, "
            f"travel {totals.travel:g}h, overtime {totals.overtime:g}h)"
        )
        logger.info(
            f"Days: {stats.work_days} work, {stats.leave_days} leave, "
            f"{stats.sick_days} sick, {stats.training_days} training"
        )
    return 0


def cmd_review(args, config: Config, store) -> int:
    logger = get_logger()
    log_section("Mission Review", logger)

    doc = store.get(COLL_MISSIONS, args.mission_id)
    if doc is None:
        log_error(f"Unknown mission: {args.mission_id}", logger)
        return 1
    record = TimesheetRecord.from_dict(doc)

    try:
        if args.validate:
            updated = validate(record)
        else:
            updated = reject(record, args.comment)
    except (InvalidTransitionError, ValueError) as e:
        log_error(str(e), logger)
        return 1

    save_missions(store, [updated])
    log_success(f"Mission {updated.id} is now {updated.status.value}", logger)
    _push(config, store)
    return 0


def cmd_seed(args, config: Config, store) -> int:
    log_section("Seeding Store")
    if seed_if_empty(store):
        log_success("Default accounts and templates created")
        _push(config, store)
    else:
        log_step("Store already has users, nothing to do")
    return 0


COMMANDS = {
    'import-missions': cmd_import_missions,
    'import-users': cmd_import_users,
    'export-missions': cmd_export_missions,
    'export-users': cmd_export_users,
    'export-responses': cmd_export_responses,
    'week': cmd_week,
    'review': cmd_review,
    'seed': cmd_seed,
}


def run_command(args: argparse.Namespace) -> int:
    """
    Open the configured store and run one command against it.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    logger = get_logger()

    try:
        config = build_config(args)
        config.validate()
    except (ValueError, WeekRangeParseError) as e:
        log_error(f"Configuration error: {e}", logger)
        return 1

    try:
        store = config.open_store()
    except StoreError as e:
        log_error(f"Cannot open store: {e}", logger)
        return 1

    try:
        return COMMANDS[args.command](args, config, store)

    except KeyboardInterrupt:
        logger.info("")
        logger.warning("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT

    except StoreError as e:
        log_error(f"Store error: {e}", logger)
        return 1

    except Exception as e:
        logger.info("")
        log_error(f"Operation failed: {e}", logger)
        if config.verbose:
            import traceback
            logger.debug(traceback.format_exc())
        return 1

    finally:
        store.close()


def main(argv=None):
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(
        verbose=getattr(args, 'verbose', False),
        log_file=getattr(args, 'log_file', None),
    )

    logger = get_logger()

    logger.info("")
    logger.info("=" * 70)
    logger.info("  PlanIt")
    logger.info("=" * 70)

    if not args.command:
        parser.print_help()
        return 1

    if not validate_args(args):
        return 1

    return run_command(args)


if __name__ == '__main__':
    sys.exit(main())
