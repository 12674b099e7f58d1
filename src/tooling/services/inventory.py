"""Inventory service: the single mutation point for families, holders and ROBs.

Callers never save these models directly. Each public method runs in one
database transaction, checks the actor's permission, writes audit entries,
and returns an ``Outcome`` instead of raising for expected failures.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db import transaction as db_transaction

from ..errors import (
    DuplicateKeyError,
    ImmutableFieldError,
    InvalidStateError,
    InvalidValueError,
    NotFoundError,
    PermissionDeniedError,
    ToolingError,
)
from ..models import Family, Holder, Rob
from . import audit
from .assignment import attach_holder, lock_holder, lock_rob, release_holder

logger = logging.getLogger(__name__)

FAMILY_FIELDS = {
    "name",
    "code",
    "type",
    "status",
    "description",
    "comment",
    "total_holders",
    "rob_assignments",
    *Family.COUNTER_FIELDS,
}
HOLDER_FIELDS = {"code", "name", "family", "status"}
ROB_FIELDS = {"code", "name", "type", "capacity", "status"}

# Fields only the assignment bookkeeping may write
ASSIGNMENT_FIELDS = {"rob", "rob_id", "assigned_at", "current_load"}


@dataclass
class Outcome:
    """Result of an inventory operation: a value or a typed error."""

    value: Any = None
    error: ToolingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value


def operation(permission: str):
    """Wrap an Inventory method in a permission check and a transaction."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            if not self.has_permission(permission):
                logger.warning(
                    "%s denied for %s: missing %s",
                    func.__name__,
                    self.actor,
                    permission,
                )
                return Outcome(error=PermissionDeniedError(permission))
            try:
                with db_transaction.atomic():
                    value = func(self, *args, **kwargs)
            except ToolingError as exc:
                logger.warning("%s rejected: %s", func.__name__, exc)
                return Outcome(error=exc)
            return Outcome(value=value)

        wrapper.permission = permission
        return wrapper

    return decorator


def _pk(obj):
    return getattr(obj, "pk", obj)


class Inventory:
    """Store-level operations on families, holders and ROBs.

    ``actor`` is the Django user performing the operations and is recorded
    on audit entries. ``has_permission`` overrides the permission check;
    by default it is ``actor.has_perm``, and with no actor (system context)
    every operation is allowed.
    """

    def __init__(self, actor=None, has_permission: Callable[[str], bool] = None):
        self.actor = actor
        if has_permission is not None:
            self._has_permission = has_permission
        elif actor is not None:
            self._has_permission = actor.has_perm
        else:
            self._has_permission = lambda name: True

    def has_permission(self, name: str) -> bool:
        return bool(self._has_permission(name))

    # --- Families ---

    @operation("tooling.add_family")
    def create_family(self, data: dict) -> Family:
        data = self._checked(data, FAMILY_FIELDS, "family")
        code = str(data.get("code", "")).strip()
        if code:
            data["code"] = code
            self._ensure_unique(Family, "Family", code)
        family = Family(**data)
        if self.actor is not None and self.actor.is_authenticated:
            family.created_by = self.actor
        self._save_new(family, "Family")
        audit.record(
            "CREATE", family, after=audit.snapshot(family), user=self.actor
        )
        logger.info("Created family %s", family.code)
        return family

    @operation("tooling.change_family")
    def update_family(self, family_pk, changes: dict) -> Family:
        changes = self._checked(changes, FAMILY_FIELDS, "family")
        family = self._locked(Family, family_pk, "Family")
        before = audit.snapshot(family)
        code = changes.get("code")
        if code is not None and code != family.code:
            self._ensure_unique(Family, "Family", code)
        for field, value in changes.items():
            setattr(family, field, value)
        self._clean(family)
        family.save()
        audit.record(
            "UPDATE",
            family,
            before=before,
            after=audit.snapshot(family),
            user=self.actor,
        )
        return family

    @operation("tooling.delete_family")
    def delete_family(self, family_pk) -> None:
        """Delete a family. Its holders remain, with the family cleared."""
        family = self._locked(Family, family_pk, "Family")
        audit.record(
            "DELETE", family, before=audit.snapshot(family), user=self.actor
        )
        code = family.code
        family.delete()
        logger.info("Deleted family %s", code)

    # --- Holders ---

    @operation("tooling.add_holder")
    def create_holder(self, data: dict) -> Holder:
        data = self._checked(data, HOLDER_FIELDS, "holder")
        if data.get("status") == "assigned":
            raise InvalidStateError(
                "Holders are created unassigned; use assign() to place "
                "them on a ROB."
            )
        if "family" in data:
            data["family"] = self._resolve_family(data["family"])
        code = str(data.get("code", "")).strip()
        if code:
            data["code"] = code
            self._ensure_unique(Holder, "Holder", code)
        holder = Holder(**data)
        self._save_new(holder, "Holder")
        audit.record(
            "CREATE", holder, after=audit.snapshot(holder), user=self.actor
        )
        logger.info("Created holder %s", holder.code)
        return holder

    @operation("tooling.change_holder")
    def update_holder(self, holder_pk, changes: dict) -> Holder:
        """Update name, code, family or status of a holder.

        A status change follows the same rules as ``set_holder_status``.
        """
        changes = self._checked(changes, HOLDER_FIELDS, "holder")
        holder = self._locked(Holder, holder_pk, "Holder")
        before = audit.snapshot(holder)
        new_status = changes.pop("status", None)
        if "family" in changes:
            changes["family"] = self._resolve_family(changes["family"])
        code = changes.get("code")
        if code is not None and code != holder.code:
            self._ensure_unique(Holder, "Holder", code)
        for field, value in changes.items():
            setattr(holder, field, value)
        self._clean(holder)
        holder.save()
        if new_status is not None:
            self._transition(holder, new_status)
        audit.record(
            "UPDATE",
            holder,
            before=before,
            after=audit.snapshot(holder),
            user=self.actor,
        )
        return holder

    @operation("tooling.change_holder")
    def set_holder_status(self, holder_pk, new_status: str) -> Holder:
        """Move a holder through its lifecycle.

        An assigned holder sent to maintenance or out of service is
        unassigned first, so its ROB slot is released.
        """
        holder = self._locked(Holder, holder_pk, "Holder")
        before = audit.snapshot(holder)
        self._transition(holder, new_status)
        audit.record(
            "UPDATE",
            holder,
            before=before,
            after=audit.snapshot(holder),
            user=self.actor,
        )
        return holder

    @operation("tooling.delete_holder")
    def delete_holder(self, holder_pk) -> Rob | None:
        """Delete a holder, releasing its ROB slot first.

        Returns the ROB whose capacity was released, if any.
        """
        holder = self._locked(Holder, holder_pk, "Holder")
        before = audit.snapshot(holder)
        rob = None
        if holder.is_assigned:
            rob = self._release(holder, "available")
        audit.record("DELETE", holder, before=before, user=self.actor)
        code = holder.code
        holder.delete()
        logger.info("Deleted holder %s", code)
        return rob

    # --- ROBs ---

    @operation("tooling.add_rob")
    def create_rob(self, data: dict) -> Rob:
        data = self._checked(data, ROB_FIELDS, "ROB")
        code = str(data.get("code", "")).strip()
        if code:
            data["code"] = code
            self._ensure_unique(Rob, "ROB", code)
        rob = Rob(**data)
        rob.current_load = 0
        self._save_new(rob, "ROB")
        audit.record("CREATE", rob, after=audit.snapshot(rob), user=self.actor)
        logger.info("Created ROB %s (%s)", rob.code, rob.type)
        return rob

    @operation("tooling.change_rob")
    def update_rob(self, rob_pk, changes: dict) -> Rob:
        """Change name, code, capacity or status of a ROB.

        The type is fixed at creation and capacity may never drop below
        the number of holders currently assigned.
        """
        changes = self._checked(changes, ROB_FIELDS, "ROB")
        rob = self._locked(Rob, rob_pk, "ROB")
        before = audit.snapshot(rob)
        if "type" in changes and changes["type"] != rob.type:
            raise ImmutableFieldError("type", rob.type, changes["type"])
        capacity = changes.get("capacity")
        if capacity is not None:
            try:
                capacity = Rob._meta.get_field("capacity").to_python(capacity)
            except ValidationError as exc:
                raise InvalidValueError.from_validation_error(
                    ValidationError({"capacity": exc.messages})
                )
            changes["capacity"] = capacity
        if capacity is not None and capacity < rob.current_load:
            raise InvalidStateError(
                f"Capacity {capacity} is below the {rob.current_load} "
                f"holder(s) assigned to ROB '{rob.code}'.",
                {"capacity": capacity, "current_load": rob.current_load},
            )
        code = changes.get("code")
        if code is not None and code != rob.code:
            self._ensure_unique(Rob, "ROB", code)
        for field, value in changes.items():
            setattr(rob, field, value)
        self._clean(rob)
        rob.save()
        audit.record(
            "UPDATE", rob, before=before, after=audit.snapshot(rob), user=self.actor
        )
        return rob

    # --- Assignment ---

    @operation("tooling.assign_holder")
    def assign(self, holder_pk, rob_pk) -> Holder:
        """Place an available holder on an active ROB with free capacity."""
        holder = self._locked(Holder, holder_pk, "Holder")
        rob = self._locked(Rob, rob_pk, "ROB")
        self._attach(holder, rob, audit.snapshot(holder))
        return holder

    @operation("tooling.assign_holder")
    def reassign(self, holder_pk, rob_pk) -> Holder:
        """Move a holder onto another ROB in one transaction.

        An assigned holder is released from its current ROB first; if the
        target cannot take it, the release is rolled back too and the
        holder keeps its original placement. Moving onto the ROB the
        holder already occupies is a no-op.
        """
        holder = self._locked(Holder, holder_pk, "Holder")
        rob = self._locked(Rob, rob_pk, "ROB")
        if holder.rob_id == rob.pk:
            return holder
        holder_before = audit.snapshot(holder)
        if holder.is_assigned:
            self._release(holder, "available")
        self._attach(holder, rob, holder_before)
        logger.info("Moved holder %s to ROB %s", holder.code, rob.code)
        return holder

    @operation("tooling.assign_holder")
    def unassign(self, holder_pk) -> Holder:
        """Take a holder off its ROB. A holder that is not assigned is
        returned unchanged."""
        holder = self._locked(Holder, holder_pk, "Holder")
        if not holder.is_assigned:
            logger.debug("Holder %s is not assigned; nothing to do", holder.code)
            return holder
        before = audit.snapshot(holder)
        self._release(holder, "available")
        audit.record(
            "UPDATE",
            holder,
            before=before,
            after=audit.snapshot(holder),
            user=self.actor,
        )
        return holder

    # --- Internals ---

    def _transition(self, holder: Holder, new_status: str) -> None:
        if new_status == holder.status:
            return
        if new_status not in dict(Holder.STATUS_CHOICES):
            raise InvalidValueError(
                f"'{new_status}' is not a valid holder status."
            )
        if new_status == "assigned":
            raise InvalidStateError(
                "Holders become assigned only through assign()."
            )
        if new_status == "available" and holder.is_assigned:
            self._release(holder, "available")
            return
        if not holder.can_transition_to(new_status):
            allowed = [
                s
                for s in Holder.VALID_TRANSITIONS.get(holder.status, [])
                if s != "assigned"
            ]
            raise InvalidStateError(
                f"Cannot transition holder '{holder.code}' from "
                f"'{holder.status}' to '{new_status}'. Allowed transitions: "
                f"{', '.join(allowed) or 'none'}."
            )
        if holder.is_assigned:
            self._release(holder, new_status)
            return
        holder.status = new_status
        holder.save(update_fields=["status"])

    def _attach(self, holder: Holder, rob: Rob, holder_before: dict) -> Rob:
        rob_before = audit.snapshot(rob)
        rob = attach_holder(holder, rob.pk)
        audit.record(
            "UPDATE",
            holder,
            before=holder_before,
            after=audit.snapshot(holder),
            user=self.actor,
        )
        audit.record(
            "UPDATE", rob, before=rob_before, after=audit.snapshot(rob), user=self.actor
        )
        return rob

    def _release(self, holder: Holder, new_status: str) -> Rob:
        rob_before = audit.snapshot(lock_rob(holder.rob_id))
        rob = release_holder(holder, new_status=new_status)
        audit.record(
            "UPDATE", rob, before=rob_before, after=audit.snapshot(rob), user=self.actor
        )
        return rob

    def _locked(self, model, key, entity: str):
        try:
            if model is Holder:
                return lock_holder(_pk(key))
            if model is Rob:
                return lock_rob(_pk(key))
            return model.objects.select_for_update().get(pk=_pk(key))
        except (model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(entity, _pk(key))

    def _resolve_family(self, value):
        if value is None or isinstance(value, Family):
            return value
        try:
            return Family.objects.get(pk=value)
        except (Family.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Family", value)

    @staticmethod
    def _checked(data: dict, allowed: set, entity: str) -> dict:
        data = dict(data)
        locked = sorted(ASSIGNMENT_FIELDS & set(data))
        if locked:
            raise InvalidStateError(
                f"{', '.join(locked)} can only change through assign() "
                "and unassign().",
                {"fields": locked},
            )
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise InvalidValueError(
                f"Unknown {entity} field(s): {', '.join(unknown)}",
                {"fields": unknown},
            )
        return data

    @staticmethod
    def _ensure_unique(model, entity: str, code: str) -> None:
        if model.objects.filter(code=code).exists():
            raise DuplicateKeyError(entity, code)

    @staticmethod
    def _clean(instance) -> None:
        try:
            instance.full_clean()
        except ValidationError as exc:
            raise InvalidValueError.from_validation_error(exc)

    def _save_new(self, instance, entity: str) -> None:
        self._clean(instance)
        try:
            with db_transaction.atomic():
                instance.save()
        except IntegrityError:
            raise DuplicateKeyError(entity, instance.code)
