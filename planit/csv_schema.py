"""
Column resolution for uploaded spreadsheets.

Uploaded files do not follow a fixed header contract, so each semantic
column (date, job code, technician, ...) is declared here with a list of
candidate keywords. A header matches when its normalized form contains one
of the normalized keywords.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .csv_parser import cell

NOT_FOUND = -1

_NON_ALNUM = re.compile(r'[^a-z0-9]')


class MissingRequiredColumnError(Exception):
    """Raised when mandatory columns cannot be matched; the batch is invalid."""

    def __init__(self, kind: str, missing: List[str]):
        self.kind = kind
        self.missing = list(missing)
        super().__init__(
            f"Invalid {kind} import: required column(s) not found: "
            f"{', '.join(self.missing)}"
        )


def normalize(value: Optional[str]) -> str:
    """
    Reduce a string to lowercase ASCII letters and digits.

    Examples:
        >>> normalize('  Durée (h) ')
        'dureeh'
        >>> normalize('N° d\\'Affaire')
        'ndaffaire'
    """
    if not value:
        return ''
    decomposed = unicodedata.normalize('NFD', value.lower().strip())
    stripped = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ALNUM.sub('', stripped)


def resolve_column(headers: Sequence[str], keywords: Sequence[str]) -> int:
    """
    Find the first header containing any of the keywords.

    Both sides are normalized, so the match ignores case, accents and
    punctuation.

    Args:
        headers: Header row of the uploaded file
        keywords: Candidate keywords for one semantic column

    Returns:
        Index of the matching header, or NOT_FOUND (-1)
    """
    wanted = [normalize(k) for k in keywords]
    wanted = [k for k in wanted if k]
    for index, header in enumerate(headers):
        normalized = normalize(header)
        if any(k in normalized for k in wanted):
            return index
    return NOT_FOUND


@dataclass
class ColumnMap:
    """
    Resolved column indices for one uploaded file.

    Attributes:
        headers: Raw header row
        indices: Semantic column name -> index (NOT_FOUND when absent)
    """
    headers: List[str]
    indices: Dict[str, int] = field(default_factory=dict)

    def index(self, name: str) -> int:
        return self.indices.get(name, NOT_FOUND)

    def has(self, name: str) -> bool:
        return self.index(name) != NOT_FOUND

    def value(self, row: Sequence[str], name: str) -> str:
        """Read a semantic column from a row; '' when absent or short."""
        return cell(row, self.index(name))

    def matched_headers(self) -> Dict[str, str]:
        """Semantic column name -> header text, for resolved columns only."""
        return {
            name: self.headers[idx]
            for name, idx in self.indices.items()
            if idx != NOT_FOUND
        }


class CSVSchema:
    """
    Keyword tables for the two kinds of import.

    The order of the keywords does not matter; the order of the headers
    does (the first matching header wins).
    """

    # Mission (timesheet) columns
    DATE = 'date'
    JOB = 'job'
    MANAGER = 'manager'
    TECHNICIAN = 'technician'
    WORK_HOURS = 'work_hours'
    TRAVEL_HOURS = 'travel_hours'
    OVERTIME_HOURS = 'overtime_hours'
    IGD = 'igd'
    ADDRESS = 'address'
    DESCRIPTION = 'description'
    LATITUDE = 'latitude'
    LONGITUDE = 'longitude'

    # Roster columns
    LOGIN = 'id'
    NAME = 'name'
    INITIALS = 'initials'
    ROLE = 'role'
    PASSWORD = 'password'
    EMAIL = 'email'
    PHONE = 'phone'

    # Travel and overtime are resolved before work hours so that a header
    # like "Heures supp" is not claimed by the generic "heure" keyword.
    MISSION_KEYWORDS: Dict[str, List[str]] = {
        DATE: ['date', 'jour'],
        JOB: ['affaire', 'job', 'code'],
        MANAGER: ['ca', 'manager', 'initiale'],
        TECHNICIAN: ['tech', 'login', 'intervenant', 'user', 'id'],
        TRAVEL_HOURS: ['trajet', 'travel', 'route'],
        OVERTIME_HOURS: ['supp', 'overtime', 'extra'],
        WORK_HOURS: ['heure', 'hour', 'duree'],
        IGD: ['igd', 'frais', 'deplacement'],
        ADDRESS: ['adresse', 'lieu', 'address', 'chantier', 'site'],
        DESCRIPTION: ['info', 'description', 'commentaire'],
        LATITUDE: ['lat', 'latitude'],
        LONGITUDE: ['lon', 'long', 'longitude'],
    }
    MISSION_REQUIRED = [DATE, JOB, TECHNICIAN]

    ROSTER_KEYWORDS: Dict[str, List[str]] = {
        LOGIN: ['login', 'identifiant', 'id', 'user'],
        NAME: ['nom', 'name', 'complet'],
        INITIALS: ['initial', 'code', 'trigramme'],
        ROLE: ['role', 'fonction', 'type'],
        PASSWORD: ['pass', 'motdepasse', 'pwd'],
        EMAIL: ['mail', 'courriel'],
        PHONE: ['tel', 'phone', 'portable'],
    }
    ROSTER_REQUIRED = [LOGIN, NAME, INITIALS]

    @classmethod
    def resolve_columns(
        cls,
        headers: Sequence[str],
        keywords: Dict[str, List[str]],
        required: Sequence[str],
        kind: str,
    ) -> ColumnMap:
        """
        Resolve every semantic column of a keyword table.

        A header already claimed by one semantic column is not offered to
        the following ones, so "Heures supp" cannot count as both overtime
        and work hours.

        Args:
            headers: Header row of the uploaded file
            keywords: Keyword table (semantic name -> keywords)
            required: Semantic names that must resolve
            kind: Label of the batch, used in the error message

        Returns:
            ColumnMap of resolved indices

        Raises:
            MissingRequiredColumnError: If a required column is unresolved
        """
        headers = list(headers)
        indices: Dict[str, int] = {}
        claimed = set()
        for name, words in keywords.items():
            available = [h if i not in claimed else '' for i, h in enumerate(headers)]
            index = resolve_column(available, words)
            indices[name] = index
            if index != NOT_FOUND:
                claimed.add(index)

        missing = [name for name in required if indices.get(name, NOT_FOUND) == NOT_FOUND]
        if missing:
            raise MissingRequiredColumnError(kind, missing)

        return ColumnMap(headers=headers, indices=indices)

    @classmethod
    def resolve_mission_columns(cls, headers: Sequence[str]) -> ColumnMap:
        return cls.resolve_columns(
            headers, cls.MISSION_KEYWORDS, cls.MISSION_REQUIRED, 'missions'
        )

    @classmethod
    def resolve_roster_columns(cls, headers: Sequence[str]) -> ColumnMap:
        return cls.resolve_columns(
            headers, cls.ROSTER_KEYWORDS, cls.ROSTER_REQUIRED, 'roster'
        )
