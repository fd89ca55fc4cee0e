"""
Conversion of parsed CSV rows into typed records.

Column resolution has already succeeded by the time these functions run,
so a bad row never aborts the batch: it is skipped and counted.
"""

import math
import re
import secrets
import time
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Tuple

from .csv_schema import CSVSchema, ColumnMap
from .logging_utils import get_logger
from .models import (
    DEFAULT_PASSWORD,
    Person,
    Status,
    TimesheetRecord,
    infer_role,
    normalize_login,
)

# Hours assumed when the file has no hours column at all
DEFAULT_WORK_HOURS = 8.0

TRUE_FLAGS = {'OUI', '1', 'TRUE', 'OK', 'IGD', 'X'}

_FRENCH_DATE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$')
_LEADING_NUMBER = re.compile(r'[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?')

IdFactory = Callable[[int], str]


def import_id(ordinal: int) -> str:
    """
    Generate a record id for the row at `ordinal` in an import batch.

    The ordinal keeps ids unique inside a batch even when the clock does
    not move between rows.
    """
    return f"m-imp-{int(time.time() * 1000)}-{ordinal}-{secrets.token_hex(3)}"


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a day from a spreadsheet cell.

    "DD/MM/YYYY" and "DD/MM/YY" (read as 20YY) are recognised; anything
    else is tried as an ISO date or datetime.

    Args:
        value: Raw cell text

    Returns:
        The date, or None when the cell is empty or unparseable
    """
    text = (value or '').strip()
    if not text:
        return None

    match = _FRENCH_DATE.match(text)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = '20' + year
        try:
            return date(int(year), int(month), int(day))
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _leading_number(value: Optional[str]) -> Optional[float]:
    """Read the number a cell starts with, so "7,5 h" gives 7.5."""
    text = (value or '').strip().replace(',', '.', 1)
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def parse_hours(value: Optional[str]) -> float:
    """
    Parse an hours cell; "7,5", "7.5" and "7,5 h" all give 7.5.

    Never raises: empty, non-numeric, negative or non-finite values give 0.
    """
    hours = _leading_number(value)
    if hours is None or hours < 0:
        return 0.0
    return hours


def parse_coordinate(value: Optional[str]) -> Optional[float]:
    return _leading_number(value)


def parse_flag(value: Optional[str]) -> bool:
    return (value or '').strip().upper() in TRUE_FLAGS


def reconcile_mission_row(
    row: Sequence[str],
    columns: ColumnMap,
    ordinal: int,
    id_factory: IdFactory = import_id,
) -> Optional[TimesheetRecord]:
    """
    Convert a single data row into a TimesheetRecord.

    Args:
        row: Parsed fields of one line
        columns: Resolved mission columns
        ordinal: Position of the row in the batch (0 for the first data row)
        id_factory: Generates the record id from the ordinal

    Returns:
        TimesheetRecord, or None if the row has no date or no technician
    """
    day = parse_date(columns.value(row, CSVSchema.DATE))
    if day is None:
        return None

    technician_id = normalize_login(columns.value(row, CSVSchema.TECHNICIAN))
    if not technician_id:
        return None

    if columns.has(CSVSchema.WORK_HOURS):
        work_hours = parse_hours(columns.value(row, CSVSchema.WORK_HOURS))
    else:
        work_hours = DEFAULT_WORK_HOURS

    if columns.has(CSVSchema.MANAGER):
        manager_initials = columns.value(row, CSVSchema.MANAGER)
    else:
        manager_initials = '??'

    # The category is derived from the uppercased job code in __post_init__
    return TimesheetRecord(
        id=id_factory(ordinal),
        date=day,
        job_code=columns.value(row, CSVSchema.JOB).upper(),
        work_hours=work_hours,
        travel_hours=parse_hours(columns.value(row, CSVSchema.TRAVEL_HOURS)),
        overtime_hours=parse_hours(columns.value(row, CSVSchema.OVERTIME_HOURS)),
        technician_id=technician_id,
        status=Status.SUBMITTED,
        manager_initials=manager_initials,
        igd=parse_flag(columns.value(row, CSVSchema.IGD)),
        address=columns.value(row, CSVSchema.ADDRESS).strip(),
        description=columns.value(row, CSVSchema.DESCRIPTION).strip(),
        latitude=parse_coordinate(columns.value(row, CSVSchema.LATITUDE)),
        longitude=parse_coordinate(columns.value(row, CSVSchema.LONGITUDE)),
    )


def reconcile_missions(
    rows: Sequence[Sequence[str]],
    columns: ColumnMap,
    id_factory: IdFactory = import_id,
) -> Tuple[List[TimesheetRecord], int]:
    """
    Convert data rows (header excluded) into timesheet records.

    Args:
        rows: Data rows, without the header row
        columns: Resolved mission columns
        id_factory: Generates record ids from the row ordinal

    Returns:
        Tuple of (records, number of skipped rows)
    """
    logger = get_logger()
    records = []
    skipped = 0
    for ordinal, row in enumerate(rows):
        record = reconcile_mission_row(row, columns, ordinal, id_factory)
        if record is None:
            skipped += 1
            logger.debug(f"Skipping mission row {ordinal + 2}: no date or technician")
            continue
        records.append(record)
    return records, skipped


def reconcile_person_row(row: Sequence[str], columns: ColumnMap) -> Optional[Person]:
    """Convert a single roster row into a Person, or None without an id."""
    login = normalize_login(columns.value(row, CSVSchema.LOGIN))
    if not login:
        return None

    password = columns.value(row, CSVSchema.PASSWORD) if columns.has(CSVSchema.PASSWORD) else ''

    return Person(
        id=login,
        display_name=columns.value(row, CSVSchema.NAME).strip(),
        initials=columns.value(row, CSVSchema.INITIALS).strip().upper()[:3],
        role=infer_role(columns.value(row, CSVSchema.ROLE)),
        credential_secret=password or DEFAULT_PASSWORD,
        email=columns.value(row, CSVSchema.EMAIL).strip(),
        phone=columns.value(row, CSVSchema.PHONE).strip(),
    )


def reconcile_roster(
    rows: Sequence[Sequence[str]],
    columns: ColumnMap,
) -> Tuple[List[Person], int]:
    """
    Convert roster rows (header excluded) into people.

    Returns:
        Tuple of (people, number of skipped rows)
    """
    logger = get_logger()
    people = []
    skipped = 0
    for ordinal, row in enumerate(rows):
        person = reconcile_person_row(row, columns)
        if person is None:
            skipped += 1
            logger.debug(f"Skipping roster row {ordinal + 2}: empty login")
            continue
        people.append(person)
    return people, skipped
