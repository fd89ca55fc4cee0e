"""
Data models for field-service timesheets.

This module defines the data structures used throughout the application:
timesheet records (missions), people (users), form templates and responses,
application settings, and the summary produced by a CSV import.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Category(str, Enum):
    """Kind of time logged on a record, derived from the job code."""
    WORK = 'WORK'
    LEAVE = 'CONGE'
    SICK = 'MALADIE'
    TRAINING = 'FORMATION'


class Status(str, Enum):
    """Lifecycle state of a timesheet record."""
    PENDING = 'PENDING'
    SUBMITTED = 'SUBMITTED'
    VALIDATED = 'VALIDATED'
    REJECTED = 'REJECTED'


class Role(str, Enum):
    TECHNICIAN = 'TECHNICIAN'
    MANAGER = 'MANAGER'
    ADMIN = 'ADMIN'


class FieldType(str, Enum):
    TEXT = 'text'
    NUMBER = 'number'
    CHECKBOX = 'checkbox'
    DATE = 'date'
    TEXTAREA = 'textarea'
    SIGNATURE = 'signature'
    EMAIL = 'email'
    PHOTO = 'photo'
    SELECT = 'select'
    PHOTO_GALLERY = 'photo_gallery'


# Checked in this order; the first keyword found in the job code wins
CATEGORY_KEYWORDS = [
    ('CONGE', Category.LEAVE),
    ('MALADIE', Category.SICK),
    ('FORMATION', Category.TRAINING),
]

DEFAULT_PASSWORD = '1234'


def categorize_job_code(job_code: Optional[str]) -> Category:
    """
    Infer the record category from a job code.

    The match is an uppercase substring match, so "conge-ete" and
    "CONGE-ETE" both map to LEAVE.

    Args:
        job_code: Free-text job code

    Returns:
        Matching Category, WORK when no keyword is present
    """
    upper = (job_code or '').upper()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in upper:
            return category
    return Category.WORK


def infer_role(raw: Optional[str]) -> Role:
    """Map a free-text role cell (e.g. "Chargé d'affaire") to a Role."""
    upper = (raw or '').upper()
    if 'ADMIN' in upper:
        return Role.ADMIN
    if 'MANAGER' in upper or 'AFFAIRE' in upper:
        return Role.MANAGER
    return Role.TECHNICIAN


def normalize_login(raw: Optional[str]) -> str:
    """Lower-case a login handle and remove every whitespace character."""
    return ''.join((raw or '').split()).lower()


def is_locked(status: Status) -> bool:
    """Return True when a record's fields can no longer be edited."""
    return Status(status) in (Status.VALIDATED, Status.REJECTED)


def _date_from_value(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Stored values may carry a time component ("2024-03-01T00:00:00.000Z")
    return date.fromisoformat(str(value)[:10])


@dataclass
class TimesheetRecord:
    """
    One unit of logged time (a "mission").

    Attributes:
        id: Opaque unique identifier
        date: Calendar day of the work
        job_code: Job/affair identifier, stored uppercased
        work_hours: Hours worked on site
        travel_hours: Hours spent travelling
        overtime_hours: Overtime hours
        technician_id: Login of the technician (lower-case, no spaces)
        status: Lifecycle state
        category: Derived from job_code unless given explicitly
        manager_initials: Initials of the responsible manager
        igd: Opaque pass-through flag
        address: Site address
        description: Free-text note
        latitude: Optional site latitude
        longitude: Optional site longitude
        rejection_comment: Manager comment on a rejected record
    """
    id: str
    date: date
    job_code: str = ''
    work_hours: float = 0.0
    travel_hours: float = 0.0
    overtime_hours: float = 0.0
    technician_id: str = ''
    status: Status = Status.PENDING
    category: Optional[Category] = None
    manager_initials: str = ''
    igd: bool = False
    address: str = ''
    description: str = ''
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rejection_comment: Optional[str] = None

    def __post_init__(self):
        """Normalize identifiers and derive the category."""
        self.date = _date_from_value(self.date)
        self.job_code = (self.job_code or '').strip().upper()
        self.technician_id = normalize_login(self.technician_id)
        self.manager_initials = (self.manager_initials or '').strip().upper()[:3]
        self.status = Status(self.status)
        if self.category is None:
            self.category = categorize_job_code(self.job_code)
        else:
            self.category = Category(self.category)
        for name in ('work_hours', 'travel_hours', 'overtime_hours'):
            value = getattr(self, name)
            setattr(self, name, float(value) if value else 0.0)

    @property
    def is_placeholder(self) -> bool:
        """True for an empty UI slot: no job code and no hours at all."""
        return (
            not self.job_code
            and self.work_hours == 0
            and self.travel_hours == 0
            and self.overtime_hours == 0
        )

    @property
    def is_locked(self) -> bool:
        return is_locked(self.status)

    def total_hours(self) -> float:
        """Calculate work + travel + overtime hours."""
        return self.work_hours + self.travel_hours + self.overtime_hours

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        data['status'] = self.status.value
        data['category'] = self.category.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimesheetRecord':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class Person:
    """
    An actor in the system.

    The credential is stored in plaintext, as the system always has.
    """
    id: str
    display_name: str = ''
    initials: str = ''
    role: Role = Role.TECHNICIAN
    credential_secret: str = DEFAULT_PASSWORD
    email: str = ''
    phone: str = ''
    avatar_url: str = ''

    def __post_init__(self):
        self.id = normalize_login(self.id)
        if not self.id:
            raise ValueError("Person id cannot be empty")
        self.display_name = (self.display_name or '').strip()
        self.initials = (self.initials or '').strip().upper()[:3]
        self.role = Role(self.role)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['role'] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Person':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class FormField:
    id: str
    label: str
    type: FieldType = FieldType.TEXT
    required: bool = False
    options: Optional[List[str]] = None
    read_only: bool = False
    placeholder: Optional[str] = None

    def __post_init__(self):
        self.type = FieldType(self.type)


@dataclass
class FormTemplate:
    """
    Ordered list of form fields.

    Templates are versioned by full replacement only.
    """
    id: str
    name: str
    description: str = ''
    fields: List[FormField] = field(default_factory=list)
    created_at: str = ''

    def __post_init__(self):
        self.fields = [
            f if isinstance(f, FormField) else FormField(**f)
            for f in self.fields
        ]

    def get_field(self, field_id: str) -> Optional[FormField]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for f in data['fields']:
            f['type'] = FieldType(f['type']).value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FormTemplate':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class FormResponse:
    """
    A submitted form.

    `data` maps field ids to values typed by the field: strings, booleans
    for checkboxes, lists of data URIs for photo galleries.
    """
    id: str
    template_id: str
    technician_id: str
    submitted_at: str
    data: Dict[str, Any] = field(default_factory=dict)
    mission_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FormResponse':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class AppSettings:
    id: str = 'app_config'
    app_name: str = 'PLANIT-MOUNIER'
    app_logo_url: str = ''
    report_logo_url: str = ''
    custom_logos: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class ImportSummary:
    """
    Summary of a CSV import.

    Attributes:
        kind: "missions" or "roster"
        source: File name or label of the imported batch
        encoding: Encoding the text was finally decoded with
        delimiter: Field separator detected on the header line
        rows_read: Data rows found below the header
        records_imported: Records produced by reconciliation
        rows_skipped: Rows dropped for failing minimal validity
        columns: Semantic column name -> header text that matched it
    """
    kind: str
    source: str = ''
    encoding: str = ''
    delimiter: str = ''
    rows_read: int = 0
    records_imported: int = 0
    rows_skipped: int = 0
    columns: Dict[str, str] = field(default_factory=dict)

    def format_summary(self) -> str:
        """
        Format the summary as a human-readable string.

        Returns:
            Formatted summary text
        """
        delimiter = {'\t': 'TAB'}.get(self.delimiter, self.delimiter)
        lines = [
            "\n" + "=" * 60,
            f"IMPORT SUMMARY ({self.kind})",
            "=" * 60,
            f"  Source: {self.source}",
            f"  Encoding: {self.encoding}",
            f"  Delimiter: {delimiter!r}",
            f"\nRows:",
            f"  Read: {self.rows_read}",
            f"  Imported: {self.records_imported}",
            f"  Skipped: {self.rows_skipped}",
        ]

        if self.columns:
            lines.append(f"\nColumns:")
            for name, header in self.columns.items():
                lines.append(f"  {name}: {header}")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)
