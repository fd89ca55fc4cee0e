"""
CSV generator for mission, roster and form response exports.

Exports are written the way spreadsheet tools read them back best: a
UTF-8 byte-order mark, ';' separators, and every field quoted. The parser
in csv_parser reads this format back.
"""

import csv
import io
import re
import unicodedata
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import (
    DEFAULT_PASSWORD,
    FieldType,
    FormResponse,
    FormTemplate,
    Person,
    TimesheetRecord,
)

BOM = '\ufeff'
DELIMITER = ';'
LINE_TERMINATOR = '\n'

# Checkbox field whose answer reads as an acceptance decision
ACCEPTANCE_FIELD_ID = 'acceptance_type'


class NothingToExportError(Exception):
    """Raised when an export would produce no data rows."""
    pass


def serialize_rows(rows: Sequence[Dict[str, Any]]) -> str:
    """
    Flatten key-value rows into delimited text.

    The header is taken from the keys of the first row and written bare.
    Values are written in each row's own key order, every one quoted.

    Args:
        rows: Flat dictionaries, one per line

    Returns:
        BOM-prefixed CSV text, or '' when there are no rows
    """
    if not rows:
        return ''

    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        delimiter=DELIMITER,
        quoting=csv.QUOTE_ALL,
        lineterminator=LINE_TERMINATOR,
    )
    for row in rows:
        writer.writerow(row.values())

    header = DELIMITER.join(rows[0].keys())
    body = buffer.getvalue()[:-len(LINE_TERMINATOR)]
    return BOM + header + LINE_TERMINATOR + body


def mission_export_rows(records: Iterable[TimesheetRecord]) -> List[Dict[str, Any]]:
    """
    Build export rows for timesheet records, leaving out placeholder slots.
    """
    return [
        {
            'DATE': r.date.isoformat(),
            'AFFAIRE': r.job_code,
            'TECHNICIEN': r.technician_id,
            'HEURES': _hours(r.work_hours),
            'TRAJET': _hours(r.travel_hours),
            'HEURES_SUPP': _hours(r.overtime_hours),
            'IGD': 'OUI' if r.igd else 'NON',
            'INFO': r.description or '',
            'ADRESSE': r.address or '',
        }
        for r in records
        if not r.is_placeholder
    ]


def roster_export_rows(people: Iterable[Person]) -> List[Dict[str, Any]]:
    return [
        {
            'LOGIN': p.id,
            'NOM_COMPLET': p.display_name,
            'INITIALES': p.initials,
            'ROLE': p.role.value,
            'MOT_DE_PASSE': p.credential_secret or DEFAULT_PASSWORD,
        }
        for p in people
    ]


def _hours(value: float) -> str:
    # 8.0 -> "8", 7.5 -> "7.5"
    return f"{value:g}"


def label_to_header(label: str) -> str:
    """
    Turn a field label into an ASCII column header.

    Examples:
        >>> label_to_header("Date d'effet")
        'Datedeffet'
    """
    decomposed = unicodedata.normalize('NFD', label)
    stripped = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r'[^a-zA-Z0-9_]', '', stripped)


def format_field_value(field_type: FieldType, field_id: str, value: Any) -> Any:
    """Render one form answer for a spreadsheet cell."""
    if field_type == FieldType.CHECKBOX:
        if field_id == ACCEPTANCE_FIELD_ID:
            return 'SANS RESERVE' if value else 'AVEC RESERVE(S)'
        return 'OUI' if value else 'NON'
    if field_type == FieldType.SIGNATURE:
        return '[SIGNATURE FOURNIE]' if value else '[NON SIGNE]'
    if field_type == FieldType.PHOTO:
        return '[PHOTO FOURNIE]' if value else ''
    if field_type == FieldType.PHOTO_GALLERY:
        return f"{len(value)} photo(s)" if value else ''
    return '' if value is None else value


def response_export_rows(
    template: FormTemplate,
    responses: Iterable[FormResponse],
    people: Optional[Iterable[Person]] = None,
) -> List[Dict[str, Any]]:
    """
    Build export rows for the responses to one template.

    Responses to other templates are ignored. Technician names are looked
    up in `people`; unknown ids get an empty name.
    """
    names = {p.id: p.display_name for p in (people or [])}
    rows = []
    for response in responses:
        if response.template_id != template.id:
            continue
        row: Dict[str, Any] = {
            'ID_Rapport': response.id,
            'Date_Soumission': response.submitted_at[:16].replace('T', ' '),
            'Technicien_ID': response.technician_id,
            'Nom_Technicien': names.get(response.technician_id, ''),
        }
        for f in template.fields:
            row[label_to_header(f.label)] = format_field_value(
                f.type, f.id, response.data.get(f.id)
            )
        rows.append(row)
    return rows


def export_csv(rows: Sequence[Dict[str, Any]], output_path: str) -> Path:
    """
    Write export rows to a file.

    Args:
        rows: Rows built by one of the *_export_rows functions
        output_path: Destination file

    Returns:
        Absolute path of the written file

    Raises:
        NothingToExportError: If there are no rows
    """
    if not rows:
        raise NothingToExportError("Nothing to export")

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # newline='' keeps the '\n' separators as written
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(serialize_rows(rows))
    return path.absolute()
