"""Import row model: file classification, typed rows and per-type rules.

Each data row of an import becomes one of ``FamilyRow``, ``HolderRow``,
``RobRow`` or ``UnknownRow`` depending on the detected file type, and
``validate_row`` dispatches on that type. Rules only read a ``KnownKeys``
snapshot; nothing here touches the database after the snapshot is taken.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import singledispatch

from ..errors import RowValidationError
from ..models import Family, Holder, Rob

FAMILIES = "families"
HOLDERS = "holders"
ROBS = "robs"
UNKNOWN = "unknown"

# Checked in order. Holder files also carry "Family Code", so the family
# signature has to come last.
SIGNATURES = [
    (HOLDERS, ("Holder ID", "Holder Name")),
    (ROBS, ("ROB ID", "ROB Name")),
    (FAMILIES, ("Family Name", "Family Code")),
]

REQUIRED_COLUMNS = {
    FAMILIES: ["Family Name", "Family Code", "Type", "Status"],
    HOLDERS: ["Holder ID", "Holder Name", "Family Code", "Status"],
    ROBS: ["ROB ID", "ROB Name", "Type", "Capacity", "Status"],
}

# Family file column -> model field
FAMILY_NUMERIC_COLUMNS = {
    "KITs": "kits",
    "Led": "led",
    "Goullet": "goullet",
    "BCC Optosoft": "bcc_optosoft",
    "BCC Main": "bcc_main",
    "Rob Main": "rob_main",
    "Rob Suite": "rob_suite",
    "Torque": "torque",
    "Rack 30": "rack_30",
    "Machine Visio": "machine_visio",
    "Total Holders": "total_holders",
}

FAMILY_STATUSES = [value for value, _ in Family.STATUS_CHOICES]
HOLDER_STATUSES = [value for value, _ in Holder.STATUS_CHOICES]
ROB_STATUSES = [value for value, _ in Rob.STATUS_CHOICES]
ROB_TYPES = [value for value, _ in Rob.TYPE_CHOICES]

# Largest value every database backend stores in a PositiveIntegerField
MAX_WHOLE_NUMBER = 2147483647


def classify(headers) -> str:
    """Return the file type whose signature columns appear in ``headers``."""
    present = set(headers)
    for file_type, signature in SIGNATURES:
        if present.intersection(signature):
            return file_type
    return UNKNOWN


def missing_columns(file_type: str, headers) -> list[str]:
    present = set(headers)
    return [
        name for name in REQUIRED_COLUMNS.get(file_type, []) if name not in present
    ]


@dataclass(frozen=True)
class KnownKeys:
    """Business keys already in the store when validation started."""

    family_codes: frozenset = frozenset()
    holder_codes: frozenset = frozenset()
    rob_codes: frozenset = frozenset()

    @classmethod
    def from_database(cls):
        return cls(
            family_codes=frozenset(Family.objects.values_list("code", flat=True)),
            holder_codes=frozenset(Holder.objects.values_list("code", flat=True)),
            rob_codes=frozenset(Rob.objects.values_list("code", flat=True)),
        )


@dataclass(frozen=True)
class ImportRow:
    number: int
    raw: dict = field(default_factory=dict)

    def value(self, column: str) -> str:
        return (self.raw.get(column) or "").strip()


class FamilyRow(ImportRow):
    @property
    def name(self):
        return self.value("Family Name")

    @property
    def code(self):
        return self.value("Family Code")


class HolderRow(ImportRow):
    @property
    def code(self):
        return self.value("Holder ID")

    @property
    def name(self):
        return self.value("Holder Name")

    @property
    def family_code(self):
        return self.value("Family Code")

    @property
    def rob_code(self):
        return self.value("ROB Assignment")


class RobRow(ImportRow):
    @property
    def code(self):
        return self.value("ROB ID")

    @property
    def name(self):
        return self.value("ROB Name")


class UnknownRow(ImportRow):
    pass


ROW_TYPES = {
    FAMILIES: FamilyRow,
    HOLDERS: HolderRow,
    ROBS: RobRow,
    UNKNOWN: UnknownRow,
}


def make_row(file_type: str, number: int, raw: dict) -> ImportRow:
    return ROW_TYPES[file_type](number=number, raw=dict(raw))


class _Messages(list):
    """Collects ``Row <n>: ...`` messages for one row."""

    def __init__(self, number):
        super().__init__()
        self.number = number

    def add(self, text):
        self.append(f"Row {self.number}: {text}")

    def raise_if_any(self):
        if self:
            raise RowValidationError(self.number, list(self))


def _to_decimal(text):
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _check_status(messages, raw_status, vocabulary, default):
    if not raw_status:
        return default
    status = raw_status.lower()
    if status not in vocabulary:
        messages.add(
            f"Invalid status '{raw_status}'. Must be one of: "
            f"{', '.join(vocabulary)}"
        )
    return status


def _check_key(messages, column, code, existing, seen, number):
    """Required, unique against the store and against earlier rows."""
    if not code:
        messages.add(f"{column} is required")
        return
    if code in existing:
        messages.add(f"{column} '{code}' already exists")
    elif code in seen:
        messages.add(f"{column} '{code}' duplicates row {seen[code]}")
    else:
        seen[code] = number


@singledispatch
def validate_row(row: ImportRow, known: KnownKeys, seen: dict) -> dict:
    """Check one row and return its cleaned values.

    ``seen`` maps keys from earlier rows of the same file to their row
    number and is updated in place. Raises RowValidationError with every
    message for the row.
    """
    raise TypeError(f"No rules for {type(row).__name__}")


@validate_row.register
def _(row: UnknownRow, known: KnownKeys, seen: dict) -> dict:
    return dict(row.raw)


@validate_row.register
def _(row: FamilyRow, known: KnownKeys, seen: dict) -> dict:
    messages = _Messages(row.number)
    if not row.name:
        messages.add("Family Name is required")
    _check_key(
        messages, "Family Code", row.code, known.family_codes, seen, row.number
    )
    status = _check_status(
        messages, row.value("Status"), FAMILY_STATUSES, "draft"
    )

    counters = {}
    for column, field_name in FAMILY_NUMERIC_COLUMNS.items():
        text = row.value(column)
        if not text:
            continue
        number = _to_decimal(text)
        if number is None:
            messages.add(f"{column} must be a number")
        elif number < 0 or number != number.to_integral_value():
            messages.add(f"{column} must be a non-negative whole number")
        elif number > MAX_WHOLE_NUMBER:
            messages.add(
                f"{column} must be a non-negative whole number "
                f"no greater than {MAX_WHOLE_NUMBER}"
            )
        else:
            counters[field_name] = int(number)

    messages.raise_if_any()
    return {
        "name": row.name,
        "code": row.code,
        "type": row.value("Type"),
        "status": status,
        "comment": row.value("Comment"),
        **counters,
    }


@validate_row.register
def _(row: HolderRow, known: KnownKeys, seen: dict) -> dict:
    messages = _Messages(row.number)
    _check_key(messages, "Holder ID", row.code, known.holder_codes, seen, row.number)
    if not row.name:
        messages.add("Holder Name is required")
    if row.family_code and row.family_code not in known.family_codes:
        messages.add(f"Family Code '{row.family_code}' does not exist")

    default = "assigned" if row.rob_code else "available"
    status = _check_status(messages, row.value("Status"), HOLDER_STATUSES, default)
    if row.rob_code:
        if row.rob_code not in known.rob_codes:
            messages.add(f"ROB Assignment '{row.rob_code}' does not exist")
        if status in HOLDER_STATUSES and status != "assigned":
            messages.add("ROB Assignment requires status 'assigned'")
    elif status == "assigned":
        messages.add("Status 'assigned' requires a ROB Assignment")

    messages.raise_if_any()
    return {
        "code": row.code,
        "name": row.name,
        "family_code": row.family_code or None,
        "status": status,
        "rob_code": row.rob_code or None,
    }


@validate_row.register
def _(row: RobRow, known: KnownKeys, seen: dict) -> dict:
    messages = _Messages(row.number)
    _check_key(messages, "ROB ID", row.code, known.rob_codes, seen, row.number)
    if not row.name:
        messages.add("ROB Name is required")

    raw_type = row.value("Type")
    rob_type = raw_type.upper()
    if rob_type not in ROB_TYPES:
        messages.add(
            f"Invalid type '{raw_type}'. Must be one of: {', '.join(ROB_TYPES)}"
        )

    capacity = _to_decimal(row.value("Capacity"))
    if (
        capacity is None
        or capacity <= 0
        or capacity != capacity.to_integral_value()
    ):
        messages.add("Capacity must be a positive number")
    elif capacity > MAX_WHOLE_NUMBER:
        messages.add(
            f"Capacity must be a positive number no greater than "
            f"{MAX_WHOLE_NUMBER}"
        )

    load = row.value("Current Load")
    if load and _to_decimal(load) is None:
        messages.add("Current Load must be a number")

    status = _check_status(messages, row.value("Status"), ROB_STATUSES, "active")

    messages.raise_if_any()
    return {
        "code": row.code,
        "name": row.name,
        "type": rob_type,
        "capacity": int(capacity),
        "status": status,
    }
