"""
Week utility functions for ISO-8601 weeks and weekly timesheets.

This module maps ISO (year, week) pairs to calendar days, buckets a
technician's records into the seven days of a week, and computes the
daily and weekly hour totals shown on timesheets.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Tuple
import re

from .models import Category, Status, TimesheetRecord, categorize_job_code, normalize_login

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']


class WeekRangeParseError(Exception):
    """Exception raised when week range parsing fails."""
    pass


def week_start(iso_year: int, week: int) -> date:
    """
    Return the Monday that starts an ISO week.

    Week 1 is the week containing 4 January. Week numbers outside 1-53
    are not rejected: week 0 is the last week of the previous ISO year,
    week 54 rolls into the next one.

    Examples:
        >>> week_start(2024, 1)
        datetime.date(2024, 1, 1)
        >>> week_start(2021, 1)
        datetime.date(2021, 1, 4)
    """
    jan4 = date(iso_year, 1, 4)
    week1_monday = jan4 - timedelta(days=jan4.weekday())
    return week1_monday + timedelta(weeks=week - 1)


def week_dates(iso_year: int, week: int) -> List[date]:
    """Return the seven days of an ISO week, Monday first."""
    start = week_start(iso_year, week)
    return [start + timedelta(days=i) for i in range(7)]


def iso_week_of(day: date) -> Tuple[int, int]:
    """
    Return the (ISO year, ISO week) a day belongs to.

    Examples:
        >>> iso_week_of(date(2024, 12, 30))
        (2025, 1)
    """
    iso = day.isocalendar()
    return iso[0], iso[1]


def current_week(today: date = None) -> Tuple[int, int]:
    return iso_week_of(today or date.today())


def weeks_in_year(iso_year: int) -> int:
    """Number of ISO weeks in a year (52 or 53)."""
    return date(iso_year, 12, 28).isocalendar()[1]


@dataclass
class DayBucket:
    """
    Records of one technician on one calendar day.

    Attributes:
        day: The calendar day
        records: Records dated on that day, in input order
    """
    day: date
    records: List[TimesheetRecord] = field(default_factory=list)

    @property
    def weekday(self) -> str:
        return WEEKDAYS[self.day.weekday()]

    def total(self) -> float:
        return daily_total(self)


@dataclass
class HoursTotals:
    work: float = 0.0
    travel: float = 0.0
    overtime: float = 0.0

    @property
    def total(self) -> float:
        return self.work + self.travel + self.overtime


def _records_for(records: Iterable[TimesheetRecord], technician_id: str) -> List[TimesheetRecord]:
    tech = normalize_login(technician_id)
    return [r for r in records if r.technician_id == tech and not r.is_placeholder]


def bucket_week(
    records: Iterable[TimesheetRecord],
    technician_id: str,
    iso_year: int,
    week: int,
) -> List[DayBucket]:
    """
    Bucket a technician's records into the days of an ISO week.

    Placeholder slots are left out. Sunday is a day like any other.

    Args:
        records: Records of any technicians and dates
        technician_id: Technician whose week is wanted
        iso_year: ISO year
        week: ISO week number (out-of-range values roll over)

    Returns:
        Seven DayBuckets, Monday to Sunday
    """
    buckets = [DayBucket(day=d) for d in week_dates(iso_year, week)]
    by_day: Dict[date, DayBucket] = {b.day: b for b in buckets}
    for record in _records_for(records, technician_id):
        bucket = by_day.get(record.date)
        if bucket is not None:
            bucket.records.append(record)
    return buckets


def daily_total(bucket: DayBucket) -> float:
    """Sum work, travel and overtime hours of a day bucket."""
    return sum(r.total_hours() for r in bucket.records if not r.is_placeholder)


def weekly_total(records: Iterable) -> HoursTotals:
    """
    Sum work, travel and overtime hours.

    Args:
        records: TimesheetRecords, or the DayBuckets returned by bucket_week

    Returns:
        HoursTotals for the whole set
    """
    totals = HoursTotals()
    for item in records:
        items = item.records if isinstance(item, DayBucket) else [item]
        for record in items:
            if record.is_placeholder:
                continue
            totals.work += record.work_hours
            totals.travel += record.travel_hours
            totals.overtime += record.overtime_hours
    return totals


def slot_id(technician_id: str, day: date, slot: int) -> str:
    return f"m-{technician_id}-{day.isoformat()}-{slot}"


def week_slots(
    records: Iterable[TimesheetRecord],
    technician_id: str,
    iso_year: int,
    week: int,
    slots_per_day: int = 2,
) -> List[TimesheetRecord]:
    """
    Build the technician's weekly entry grid.

    Each day gets `slots_per_day` slots; existing records fill them in
    order and the remaining slots are PENDING placeholders.
    """
    tech = normalize_login(technician_id)
    grid = []
    for bucket in bucket_week(records, tech, iso_year, week):
        for slot in range(slots_per_day):
            if slot < len(bucket.records):
                grid.append(bucket.records[slot])
            else:
                grid.append(TimesheetRecord(
                    id=slot_id(tech, bucket.day, slot + 1),
                    date=bucket.day,
                    technician_id=tech,
                    status=Status.PENDING,
                ))
    return grid


@dataclass
class CategoryStats:
    total_hours: float = 0.0
    work_days: int = 0
    leave_days: int = 0
    sick_days: int = 0
    training_days: int = 0


def category_stats(records: Iterable[TimesheetRecord]) -> CategoryStats:
    """
    Count records per category and sum their hours.

    A record counts as leave, sick or training when either its category
    or its job code says so; a work record only counts as a work day when
    it carries work or travel hours.
    """
    stats = CategoryStats()
    for record in records:
        if record.is_placeholder:
            continue
        stats.total_hours += record.total_hours()
        from_code = categorize_job_code(record.job_code)
        kinds = {record.category, from_code}
        if Category.LEAVE in kinds:
            stats.leave_days += 1
        elif Category.SICK in kinds:
            stats.sick_days += 1
        elif Category.TRAINING in kinds:
            stats.training_days += 1
        elif record.work_hours > 0 or record.travel_hours > 0:
            stats.work_days += 1
    return stats


def parse_week_range(week_spec: str) -> List[int]:
    """
    Parse a week range specification into a sorted list of unique week numbers.

    Accepted formats:
    - Single weeks: "48" → [48]
    - Comma-separated: "48,49,50" → [48, 49, 50]
    - Ranges: "48-50" → [48, 49, 50]
    - Combined: "48-50,52" → [48, 49, 50, 52]

    Raises:
        WeekRangeParseError: If the format is invalid or week numbers are out of range
    """
    if not week_spec or not week_spec.strip():
        raise WeekRangeParseError("Week specification cannot be empty")

    week_spec = week_spec.strip()
    weeks = set()

    for part in week_spec.split(','):
        part = part.strip()

        if not part:
            raise WeekRangeParseError(f"Invalid week specification: empty part in '{week_spec}'")

        if '-' in part:
            range_match = re.match(r'^(\d+)-(\d+)$', part)
            if not range_match:
                raise WeekRangeParseError(
                    f"Invalid range format: '{part}'. Expected format: 'N-M' where N and M are week numbers"
                )

            start, end = (int(g) for g in range_match.groups())
            if start > end:
                raise WeekRangeParseError(
                    f"Invalid range '{part}': start week ({start}) is greater than end week ({end})"
                )
            for week in (start, end):
                if not (1 <= week <= 53):
                    raise WeekRangeParseError(f"Week number {week} out of range (must be 1-53)")

            weeks.update(range(start, end + 1))

        else:
            if not re.match(r'^\d+$', part):
                raise WeekRangeParseError(f"Invalid week number: '{part}'")

            week = int(part)
            if not (1 <= week <= 53):
                raise WeekRangeParseError(f"Week number {week} out of range (must be 1-53)")

            weeks.add(week)

    return sorted(weeks)


def calculate_week_offset(baseline_year: int, baseline_week: int,
                          target_year: int, target_week: int) -> int:
    """
    Number of weeks from a baseline ISO week to a target ISO week.

    Examples:
        >>> calculate_week_offset(2020, 53, 2021, 1)
        1
        >>> calculate_week_offset(2025, 48, 2025, 46)
        -2
    """
    delta = week_start(target_year, target_week) - week_start(baseline_year, baseline_week)
    return delta.days // 7
