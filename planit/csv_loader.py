"""
CSV loader for mission and roster imports.

This module reads an uploaded file, decodes it (UTF-8 first, then
ISO-8859-1 for files saved by legacy tools), resolves its columns and
reconciles the rows into typed records.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from .csv_parser import parse_csv, sniff_delimiter
from .csv_schema import CSVSchema
from .logging_utils import get_logger
from .models import ImportSummary, Person, TimesheetRecord
from .reconciler import IdFactory, import_id, reconcile_missions, reconcile_roster

ENCODINGS = ('utf-8', 'iso-8859-1')


class CSVLoadError(Exception):
    """Raised when CSV loading fails."""
    pass


class UnreadableFileError(CSVLoadError):
    """Raised when no encoding yields a usable header row."""
    pass


def looks_malformed(rows: List[List[str]]) -> bool:
    """A parse with fewer than 2 rows or a header under 2 columns is suspect."""
    return len(rows) < 2 or len(rows[0]) < 2


class CSVLoader:
    """
    Loads rows from an uploaded CSV file.

    Expected input is any delimited export with a header row, for example:
        DATE;AFFAIRE;TECH;HEURES
        01/03/2024;AB-001;jdupont;7,5
    """

    def __init__(self, file_path: str):
        """
        Initialize the CSV loader.

        Args:
            file_path: Path to the CSV file

        Raises:
            CSVLoadError: If file doesn't exist
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise CSVLoadError(f"CSV file not found: {file_path}")
        self.encoding: Optional[str] = None
        self.delimiter: Optional[str] = None

    def read_text(self, encoding: str) -> str:
        try:
            return self.file_path.read_text(encoding=encoding)
        except UnicodeDecodeError as e:
            get_logger().debug(f"Could not decode {self.file_path.name} as {encoding}: {e}")
            return ''
        except OSError as e:
            raise CSVLoadError(f"Failed to read CSV: {e}") from e

    def read_rows(self) -> List[List[str]]:
        """
        Read and tokenize the file.

        The file is decoded as UTF-8 first; when the result does not look
        like a table it is decoded again as ISO-8859-1.

        Returns:
            Parsed rows, header first

        Raises:
            UnreadableFileError: If neither encoding gives a usable table
        """
        logger = get_logger()
        rows: List[List[str]] = []
        for encoding in ENCODINGS:
            text = self.read_text(encoding)
            rows = parse_csv(text)
            if not looks_malformed(rows):
                self.encoding = encoding
                self.delimiter = sniff_delimiter(text)
                logger.debug(f"Decoded {self.file_path.name} as {encoding}")
                return rows
            logger.debug(f"{self.file_path.name} looks malformed as {encoding}, retrying")

        raise UnreadableFileError(
            f"Unreadable file: {self.file_path.name} has no usable header row "
            f"(tried {', '.join(ENCODINGS)})"
        )

    def load_missions(self, id_factory: IdFactory = import_id) -> Tuple[List[TimesheetRecord], ImportSummary]:
        """
        Load timesheet records from the file.

        Returns:
            Tuple of (records, summary)

        Raises:
            UnreadableFileError: If the file cannot be decoded into a table
            MissingRequiredColumnError: If date, job or technician is missing
        """
        rows = self.read_rows()
        columns = CSVSchema.resolve_mission_columns(rows[0])
        records, skipped = reconcile_missions(rows[1:], columns, id_factory)
        summary = self._summary('missions', rows, len(records), skipped, columns.matched_headers())
        return records, summary

    def load_roster(self) -> Tuple[List[Person], ImportSummary]:
        """
        Load people from the file.

        Raises:
            UnreadableFileError: If the file cannot be decoded into a table
            MissingRequiredColumnError: If login, name or initials is missing
        """
        rows = self.read_rows()
        columns = CSVSchema.resolve_roster_columns(rows[0])
        people, skipped = reconcile_roster(rows[1:], columns)
        summary = self._summary('roster', rows, len(people), skipped, columns.matched_headers())
        return people, summary

    def _summary(self, kind, rows, imported, skipped, columns) -> ImportSummary:
        return ImportSummary(
            kind=kind,
            source=self.file_path.name,
            encoding=self.encoding or '',
            delimiter=self.delimiter or '',
            rows_read=len(rows) - 1,
            records_imported=imported,
            rows_skipped=skipped,
            columns=columns,
        )


def load_missions(file_path: str) -> Tuple[List[TimesheetRecord], ImportSummary]:
    """
    Convenience function to load missions from a CSV file.

    Raises:
        CSVLoadError: If loading fails
        MissingRequiredColumnError: If mandatory columns are missing
    """
    return CSVLoader(file_path).load_missions()


def load_roster(file_path: str) -> Tuple[List[Person], ImportSummary]:
    """Convenience function to load a roster from a CSV file."""
    return CSVLoader(file_path).load_roster()


def missions_from_text(text: str, id_factory: IdFactory = import_id) -> List[TimesheetRecord]:
    """
    Reconcile missions from already-decoded CSV text.

    Raises:
        MissingRequiredColumnError: If mandatory columns are missing
    """
    rows = parse_csv(text)
    if not rows:
        return []
    columns = CSVSchema.resolve_mission_columns(rows[0])
    records, _ = reconcile_missions(rows[1:], columns, id_factory)
    return records


def roster_from_text(text: str) -> List[Person]:
    """Reconcile people from already-decoded CSV text."""
    rows = parse_csv(text)
    if not rows:
        return []
    columns = CSVSchema.resolve_roster_columns(rows[0])
    people, _ = reconcile_roster(rows[1:], columns)
    return people
