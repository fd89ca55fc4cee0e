"""
Delimiter-sensitive CSV parser for spreadsheet exports.

Spreadsheets arrive from Excel (often with French-locale defaults), from
legacy tools and from our own exporter, so the parser accepts a byte-order
mark, detects the field separator from the header line and understands
Excel-style quoting.
"""

import re
from typing import List, Sequence

BOM = '\ufeff'
MISDECODED_BOM = '\u00ef\u00bb\u00bf'

# Tie-break priority: the first entry wins on equal field counts
CANDIDATE_DELIMITERS = [';', ',', '\t']

_LINE_SPLIT = re.compile(r'\r?\n')


def strip_bom(text: str) -> str:
    """Remove a leading byte-order mark, including its Latin-1 mis-decoding."""
    if text.startswith(BOM):
        text = text[len(BOM):]
    if text.startswith(MISDECODED_BOM):
        text = text[len(MISDECODED_BOM):]
    return text


def detect_delimiter(first_line: str) -> str:
    """
    Pick the separator that splits the header line into the most fields.

    Args:
        first_line: First non-blank line of the file

    Returns:
        One of ';', ',' or a tab character

    Examples:
        >>> detect_delimiter('DATE;AFFAIRE;TECH;HEURES')
        ';'
        >>> detect_delimiter('date,job,tech;name,hours')
        ','
    """
    best = CANDIDATE_DELIMITERS[0]
    best_count = len(first_line.split(best))
    for delimiter in CANDIDATE_DELIMITERS[1:]:
        count = len(first_line.split(delimiter))
        if count > best_count:
            best, best_count = delimiter, count
    return best


def _unquote(value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value.strip()


def split_line(line: str, delimiter: str) -> List[str]:
    """
    Split one line into fields.

    A double quote toggles quoting, except that two consecutive quotes
    inside a quoted section produce one literal quote. The delimiter only
    separates fields outside quotes.

    Args:
        line: Raw line without its line terminator
        delimiter: Field separator

    Returns:
        List of trimmed field values
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append(''.join(current).strip())
    return [_unquote(value) for value in fields]


def _content_lines(raw_text: str) -> List[str]:
    if not raw_text or not raw_text.strip():
        return []
    text = strip_bom(raw_text).strip()
    return [line for line in _LINE_SPLIT.split(text) if line.strip()]


def sniff_delimiter(raw_text: str) -> str:
    """Return the separator parse_csv would use for this text."""
    lines = _content_lines(raw_text)
    return detect_delimiter(lines[0]) if lines else CANDIDATE_DELIMITERS[0]


def parse_csv(raw_text: str) -> List[List[str]]:
    """
    Tokenize raw CSV text into rows of fields.

    Blank lines are dropped and ragged rows are returned as they are; use
    `cell()` to read a column that may be missing from a short row.

    Args:
        raw_text: Complete file contents

    Returns:
        List of rows, the header row first. Empty for blank input.
    """
    lines = _content_lines(raw_text)
    if not lines:
        return []

    delimiter = detect_delimiter(lines[0])
    return [split_line(line, delimiter) for line in lines]


def cell(row: Sequence[str], index: int) -> str:
    """Return the value at `index`, or '' when the column is absent."""
    if index < 0 or index >= len(row):
        return ''
    return row[index] or ''
