"""
Status lifecycle of timesheet records.

PENDING -> SUBMITTED -> VALIDATED | REJECTED

A technician's edit promotes a PENDING slot to SUBMITTED once it has a job
code and work hours. Validation and rejection are manager decisions. All
functions return new records; the input record is left untouched.
"""

import secrets
import time
from dataclasses import replace
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .models import Status, TimesheetRecord, is_locked, normalize_login

EDITABLE_FIELDS = {
    'job_code', 'work_hours', 'travel_hours', 'overtime_hours', 'category',
    'manager_initials', 'igd', 'address', 'description', 'latitude', 'longitude',
}


class RecordLockedError(Exception):
    """Raised when editing a validated or rejected record."""
    pass


class InvalidTransitionError(Exception):
    """Raised when a status change is not allowed from the current state."""
    pass


def apply_edit(record: TimesheetRecord, **changes) -> TimesheetRecord:
    """
    Apply a technician's edit to a record.

    Args:
        record: Record being edited
        **changes: New field values (see EDITABLE_FIELDS)

    Returns:
        The edited record

    Raises:
        RecordLockedError: If the record is validated or rejected
        ValueError: If a field cannot be edited
    """
    if is_locked(record.status):
        raise RecordLockedError(
            f"Record {record.id} is {record.status.value.lower()} and cannot be edited"
        )

    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    if 'job_code' in changes and 'category' not in changes:
        # Let the record derive the category from the new job code
        changes['category'] = None

    edited = replace(record, **changes)
    if (
        edited.status == Status.PENDING
        and edited.job_code
        and edited.work_hours > 0
    ):
        edited.status = Status.SUBMITTED
    return edited


def validate(record: TimesheetRecord) -> TimesheetRecord:
    """
    Mark a record as validated by a manager.

    Raises:
        InvalidTransitionError: If the record was never submitted
    """
    _check_decidable(record)
    return replace(record, status=Status.VALIDATED, rejection_comment=None)


def reject(record: TimesheetRecord, comment: str) -> TimesheetRecord:
    """
    Mark a record as rejected, with the manager's reason.

    Raises:
        InvalidTransitionError: If the record was never submitted
        ValueError: If the comment is blank
    """
    _check_decidable(record)
    if not comment or not comment.strip():
        raise ValueError("A rejection comment is required")
    return replace(record, status=Status.REJECTED, rejection_comment=comment.strip())


def _check_decidable(record: TimesheetRecord):
    if record.status == Status.PENDING or record.is_placeholder:
        raise InvalidTransitionError(
            f"Record {record.id} has not been submitted yet"
        )


def duplicate(record: TimesheetRecord) -> TimesheetRecord:
    """Copy a record under a new id, back in SUBMITTED state."""
    new_id = f"m-copy-{int(time.time() * 1000)}-{secrets.token_hex(4)}"
    return replace(
        record,
        id=new_id,
        status=Status.SUBMITTED,
        rejection_comment=None,
    )


def filter_missions(
    records: Iterable[TimesheetRecord],
    search: str = '',
    technician_ids: Optional[Sequence[str]] = None,
    manager_initials: Optional[Sequence[str]] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[TimesheetRecord]:
    """
    Select records for the mission list, newest first.

    Placeholder slots are always left out. Empty filters match everything.
    """
    techs = {normalize_login(t) for t in technician_ids or []}
    managers = {m.strip().upper() for m in manager_initials or []}
    needle = search.strip().lower()

    result = []
    for r in records:
        if r.is_placeholder:
            continue
        if needle and needle not in r.job_code.lower():
            continue
        if techs and r.technician_id not in techs:
            continue
        if managers and r.manager_initials not in managers:
            continue
        if start and r.date < start:
            continue
        if end and r.date > end:
            continue
        result.append(r)

    return sorted(result, key=lambda r: r.date, reverse=True)


def update_job_details(
    records: Iterable[TimesheetRecord],
    job_code: str,
    address: str,
    description: str,
) -> List[TimesheetRecord]:
    """
    Set address and description on every record of a job.

    Returns only the records that changed, ready to be upserted.
    """
    job = job_code.strip().upper()
    changed = []
    for r in records:
        if r.job_code != job:
            continue
        if r.address == address and r.description == description:
            continue
        changed.append(replace(r, address=address, description=description))
    return changed
