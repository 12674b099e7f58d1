"""Typed failures for tooling operations and the import pipeline.

Every expected failure inherits from ``ToolingError``. Service operations
catch these and hand them back inside an ``Outcome``; only
``InvariantViolation`` is allowed to escape as a fatal error.
"""

from typing import Any


class ToolingError(Exception):
    """Base class for recoverable tooling failures."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def __str__(self):
        return self.message


class NotFoundError(ToolingError):
    """A referenced family, holder or ROB does not exist."""

    def __init__(self, entity: str, key):
        super().__init__(
            f"{entity} '{key}' does not exist.",
            {"entity": entity, "key": key},
        )
        self.entity = entity
        self.key = key


class CapacityExceededError(ToolingError):
    """Assignment attempted against a ROB with no free capacity."""

    def __init__(self, rob_code: str, capacity: int):
        super().__init__(
            f"ROB '{rob_code}' is at full capacity ({capacity}).",
            {"rob": rob_code, "capacity": capacity},
        )
        self.rob_code = rob_code
        self.capacity = capacity


class InvalidStateError(ToolingError):
    """Operation not allowed for the current state of a record."""


class ImmutableFieldError(InvalidStateError):
    """Attempt to change a field that is fixed after creation."""

    def __init__(self, field: str, current, requested):
        super().__init__(
            f"Field '{field}' cannot be changed once set "
            f"(current '{current}', requested '{requested}').",
            {"field": field, "current": current, "requested": requested},
        )
        self.field = field


class DuplicateKeyError(ToolingError):
    """A business key (family, holder or ROB code) is already in use."""

    def __init__(self, entity: str, code: str):
        super().__init__(
            f"{entity} code '{code}' already exists.",
            {"entity": entity, "code": code},
        )
        self.entity = entity
        self.code = code


class InvalidValueError(ToolingError):
    """Field-level validation failed on create or update."""

    @classmethod
    def from_validation_error(cls, exc):
        """Build from a Django ``ValidationError``."""
        if hasattr(exc, "message_dict"):
            fields = exc.message_dict
            parts = [
                f"{name}: {' '.join(msgs)}" for name, msgs in fields.items()
            ]
            return cls("; ".join(parts), {"fields": fields})
        return cls(" ".join(exc.messages), {"fields": {}})


class PermissionDeniedError(ToolingError):
    """The acting user lacks the permission an operation requires."""

    def __init__(self, permission: str):
        super().__init__(
            f"Permission '{permission}' is required.",
            {"permission": permission},
        )
        self.permission = permission


class ParseError(ToolingError):
    """Import input is empty or cannot be read as a table."""


class StructureError(ToolingError):
    """Import input lacks columns required by its detected schema."""

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing required fields: {', '.join(missing)}",
            {"missing": list(missing)},
        )
        self.missing = list(missing)


class RowValidationError(ToolingError):
    """One data row failed one or more field rules."""

    def __init__(self, row_number: int, messages: list[str]):
        super().__init__("; ".join(messages), {"row": row_number})
        self.row_number = row_number
        self.messages = list(messages)


class InvariantViolation(Exception):
    """Holder/ROB bookkeeping is inconsistent. Never recoverable."""
