"""Import pipeline: validate a table, then apply accepted rows.

Validation is read-only and deterministic: it parses the file, classifies
it, checks the columns and checks each row, returning an ``ImportResult``.
Applying a result is a separate step that goes through ``Inventory`` so
the same permission, audit and assignment rules hold for imported data.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import PurePath

from django.conf import settings
from django.db import transaction as db_transaction

from ..errors import (
    InvalidStateError,
    NotFoundError,
    ParseError,
    RowValidationError,
    StructureError,
    ToolingError,
)
from ..models import Family, Rob
from . import csvio
from .records import (
    FAMILIES,
    HOLDERS,
    ROBS,
    UNKNOWN,
    KnownKeys,
    classify,
    make_row,
    missing_columns,
    validate_row,
)

logger = logging.getLogger(__name__)

NO_DATA_ROWS = "No data rows found in file"
UNRECOGNISED_FILE = "Unrecognised file type; rows were not validated"

SUPPORTED_EXTENSIONS = {".csv", ".txt", ".xlsx"}


@dataclass
class AcceptedRow:
    number: int
    values: dict


@dataclass
class RejectedRow:
    number: int
    raw: dict
    messages: list[str]


@dataclass
class ImportResult:
    """Outcome of validating one import file.

    ``failure`` holds the ParseError or StructureError that stopped
    validation before any row was checked. A ``cancelled`` result is
    incomplete and must be discarded.
    """

    file_type: str = UNKNOWN
    total_rows: int = 0
    accepted: list[AcceptedRow] = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failure: ToolingError | None = None
    cancelled: bool = False

    @property
    def successful_rows(self) -> int:
        return len(self.accepted)

    @property
    def error_rows(self) -> int:
        return len(self.rejected)

    @property
    def is_applicable(self) -> bool:
        return (
            self.failure is None
            and not self.cancelled
            and self.file_type != UNKNOWN
        )

    def to_dict(self) -> dict:
        return {
            "file_type": self.file_type,
            "total_rows": self.total_rows,
            "successful_rows": self.successful_rows,
            "error_rows": self.error_rows,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "failure": str(self.failure) if self.failure else None,
            "cancelled": self.cancelled,
            "accepted": [asdict(row) for row in self.accepted],
            "rejected": [asdict(row) for row in self.rejected],
        }


@dataclass
class ApplyReport:
    created: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def error_count(self) -> int:
        return len(self.errors)


def load_table(content, filename: str | None = None) -> csvio.Table:
    """Read uploaded content into a Table, choosing the reader by extension.

    Raises ParseError for oversized, unsupported or unreadable files.
    """
    size = len(content.encode("utf-8") if isinstance(content, str) else content)
    limit = settings.TOOLING_IMPORT_MAX_BYTES
    if size > limit:
        raise ParseError(f"File is {size} bytes; the limit is {limit} bytes")

    suffix = PurePath(filename).suffix.lower() if filename else ".csv"
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ParseError(
            f"Unsupported file type '{suffix}'. Use a .csv or .xlsx file."
        )
    if suffix == ".xlsx":
        if isinstance(content, str):
            raise ParseError("Workbook content must be bytes")
        return csvio.read_workbook(content)
    return csvio.parse_table(content)


def validate_import(
    content,
    *,
    filename: str | None = None,
    known: KnownKeys | None = None,
    cancel_check=None,
    error_limit: int | None = None,
) -> ImportResult:
    """Validate an import file without writing anything.

    ``content`` is CSV text, raw file bytes, or an already parsed
    ``csvio.Table``. ``cancel_check`` is called before each row; when it
    returns true the partial result comes back with ``cancelled`` set.
    """
    if error_limit is None:
        error_limit = settings.TOOLING_IMPORT_ERROR_LIMIT

    try:
        if isinstance(content, csvio.Table):
            table = content
        else:
            table = load_table(content, filename)
    except ParseError as exc:
        logger.warning("Import rejected: %s", exc)
        return ImportResult(failure=exc, errors=[str(exc)])

    file_type = classify(table.headers)
    result = ImportResult(file_type=file_type, total_rows=len(table.rows))

    if file_type == UNKNOWN:
        result.warnings.append(UNRECOGNISED_FILE)
    else:
        missing = missing_columns(file_type, table.headers)
        if missing:
            result.failure = StructureError(missing)
            result.errors = [str(result.failure)]
            logger.warning("Import rejected: %s", result.failure)
            return result
    if not table.rows:
        result.warnings.append(NO_DATA_ROWS)

    if known is None:
        known = KnownKeys() if file_type == UNKNOWN else KnownKeys.from_database()

    messages = []
    seen = {}
    for number, raw in table.numbered():
        if cancel_check is not None and cancel_check():
            result.cancelled = True
            logger.info("Import validation cancelled before row %d", number)
            break
        row = make_row(file_type, number, raw)
        try:
            values = validate_row(row, known, seen)
        except RowValidationError as exc:
            result.rejected.append(RejectedRow(number, dict(raw), exc.messages))
            messages.extend(exc.messages)
        else:
            result.accepted.append(AcceptedRow(number, values))

    result.errors = messages[:error_limit]
    logger.info(
        "Validated %s import: %d rows, %d accepted, %d rejected",
        file_type,
        result.total_rows,
        result.successful_rows,
        result.error_rows,
    )
    return result


def _apply_family(values, inventory):
    family = inventory.create_family(values).unwrap()
    return family.code


def _apply_holder(values, inventory):
    family = None
    if values["family_code"]:
        family = Family.objects.filter(code=values["family_code"]).first()
        if family is None:
            raise NotFoundError("Family", values["family_code"])

    status = values["status"]
    holder = inventory.create_holder(
        {
            "code": values["code"],
            "name": values["name"],
            "family": family,
            "status": "available" if status == "assigned" else status,
        }
    ).unwrap()

    if values["rob_code"]:
        rob = Rob.objects.filter(code=values["rob_code"]).first()
        if rob is None:
            raise NotFoundError("ROB", values["rob_code"])
        inventory.assign(holder.pk, rob.pk).unwrap()
    return holder.code


def _apply_rob(values, inventory):
    rob = inventory.create_rob(values).unwrap()
    return rob.code


APPLIERS = {
    FAMILIES: _apply_family,
    HOLDERS: _apply_holder,
    ROBS: _apply_rob,
}


def apply_import(result: ImportResult, inventory) -> ApplyReport:
    """Create the accepted rows of ``result`` through ``inventory``.

    Each row runs in its own transaction. A failing row is rolled back and
    reported as ``Row <n>: <error>``; later rows still run.

    Raises InvalidStateError when ``result`` failed, was cancelled or is
    of an unrecognised file type; callers are expected to check
    ``result.is_applicable`` first.
    """
    if not result.is_applicable:
        raise InvalidStateError(
            "Only a complete import of a recognised file type can be applied."
        )

    applier = APPLIERS[result.file_type]
    report = ApplyReport()
    for row in result.accepted:
        try:
            with db_transaction.atomic():
                code = applier(row.values, inventory)
        except ToolingError as exc:
            report.errors.append(f"Row {row.number}: {exc}")
        else:
            report.created.append(code)

    logger.info(
        "Applied %s import: %d created, %d failed",
        result.file_type,
        report.created_count,
        report.error_count,
    )
    return report
