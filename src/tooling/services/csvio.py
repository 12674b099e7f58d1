"""Reading and writing delimited tables for import and export."""

import csv
import io
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import ParseError

EMPTY_FILE = "File is empty or could not be read"
NO_HEADERS = "Invalid file structure: No headers found"


class ImportDialect(csv.Dialect):
    """Comma separated, double-quote escaped, strict about stray quotes."""

    delimiter = ","
    quotechar = '"'
    doublequote = True
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_MINIMAL
    strict = True


@dataclass
class Table:
    """Header names plus one dict per non-blank data row.

    Row ``i`` of ``rows`` is row ``i + 2`` of the file as a person counts
    it: the header is row 1.
    """

    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)

    def numbered(self):
        for index, row in enumerate(self.rows):
            yield index + 2, row


def _build_table(records) -> Table:
    records = iter(records)
    header = next(records, None)
    if header is None:
        raise ParseError(EMPTY_FILE)
    headers = [cell.strip() for cell in header]
    if not any(headers):
        raise ParseError(NO_HEADERS)
    named = [name for name in headers if name]
    duplicates = sorted({name for name in named if named.count(name) > 1})
    if duplicates:
        raise ParseError(
            f"Invalid file structure: duplicate columns {', '.join(duplicates)}"
        )

    rows = []
    for record in records:
        values = [cell.strip() for cell in record]
        if not any(values):
            continue
        values += [""] * (len(headers) - len(values))
        rows.append(
            {name: value for name, value in zip(headers, values) if name}
        )
    return Table(headers=named, rows=rows)


def parse_table(content) -> Table:
    """Parse CSV text (or UTF-8 bytes) into a ``Table``.

    Raises ParseError for empty input, a blank header row or malformed
    quoting.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(f"File is not valid UTF-8 text: {exc.reason}")
    if content.startswith("\ufeff"):
        content = content[1:]
    if not content.strip():
        raise ParseError(EMPTY_FILE)

    reader = csv.reader(io.StringIO(content, newline=""), dialect=ImportDialect)
    try:
        records = list(reader)
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {exc}")
    return _build_table(records)


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def read_workbook(source) -> Table:
    """Read the first sheet of an .xlsx workbook into a ``Table``.

    ``source`` is a path, a binary file object, or the raw bytes.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        wb = openpyxl.load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ParseError(f"Could not read workbook: {exc}")
    try:
        ws = wb.worksheets[0]
        records = [
            [_cell_text(value) for value in row]
            for row in ws.iter_rows(values_only=True)
        ]
    finally:
        wb.close()
    if not records:
        raise ParseError(EMPTY_FILE)
    return _build_table(records)


def write_table(headers, rows, stream=None) -> str:
    """Write ``headers`` then ``rows`` as CSV.

    Values containing commas, quotes or newlines are quoted with inner
    quotes doubled, so the output parses back through ``parse_table``.
    Returns the text when no stream is given.
    """
    target = stream if stream is not None else io.StringIO()
    writer = csv.writer(target, dialect=ImportDialect)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    if stream is None:
        return target.getvalue()
    return ""
