"""Holder to ROB assignment bookkeeping.

``attach_holder`` and ``release_holder`` are the only functions that write
``Holder.rob``, ``Holder.assigned_at`` or ``Rob.current_load``. Both must run
inside ``transaction.atomic()``; they lock the ROB row with
``select_for_update`` so two concurrent assignments against the same ROB are
serialised and cannot both consume its last free slot.
"""

import logging

from django.db import transaction as db_transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from ..errors import (
    CapacityExceededError,
    InvalidStateError,
    InvariantViolation,
)
from ..models import Holder, Rob

logger = logging.getLogger(__name__)


def lock_holder(holder_pk) -> Holder:
    return Holder.objects.select_for_update().get(pk=holder_pk)


def lock_rob(rob_pk) -> Rob:
    return Rob.objects.select_for_update().get(pk=rob_pk)


def verify_rob_invariant(rob: Rob) -> None:
    """Raise InvariantViolation if the ROB's load disagrees with its holders."""
    assigned = Holder.objects.filter(rob=rob).count()
    if rob.current_load != assigned or rob.current_load > rob.capacity:
        raise InvariantViolation(
            f"ROB {rob.code}: current_load={rob.current_load}, "
            f"assigned holders={assigned}, capacity={rob.capacity}"
        )


def find_drifted_robs() -> list[str]:
    """Codes of ROBs whose load disagrees with their holders or capacity."""
    robs = Rob.objects.annotate(assigned=Count("holders")).filter(
        ~Q(current_load=F("assigned")) | Q(current_load__gt=F("capacity"))
    )
    return list(robs.order_by("code").values_list("code", flat=True))


def attach_holder(holder: Holder, rob_pk) -> Rob:
    """Link a locked, unassigned holder to the ROB and consume one slot.

    Raises InvalidStateError when the holder cannot be assigned or the ROB
    is not active, and CapacityExceededError when the ROB is full.
    Returns the updated ROB.
    """
    if not db_transaction.get_connection().in_atomic_block:
        raise InvariantViolation("attach_holder requires an atomic block")

    if holder.rob_id is not None:
        raise InvalidStateError(
            f"Holder '{holder.code}' is already assigned to a ROB. "
            "Unassign it first."
        )
    if holder.status != "available":
        raise InvalidStateError(
            f"Holder '{holder.code}' is {holder.get_status_display()} "
            "and cannot be assigned."
        )

    rob = lock_rob(rob_pk)
    if rob.status != "active":
        raise InvalidStateError(
            f"ROB '{rob.code}' is {rob.get_status_display()}; "
            "only active ROBs accept holders."
        )
    if rob.current_load >= rob.capacity:
        raise CapacityExceededError(rob.code, rob.capacity)

    now = timezone.now()
    holder.rob = rob
    holder.status = "assigned"
    holder.assigned_at = now
    holder.save(update_fields=["rob", "status", "assigned_at"])

    rob.current_load += 1
    rob.updated_at = now
    rob.save(update_fields=["current_load", "updated_at"])

    verify_rob_invariant(rob)
    logger.info(
        "Assigned holder %s to ROB %s (%d/%d)",
        holder.code,
        rob.code,
        rob.current_load,
        rob.capacity,
    )
    return rob


def release_holder(holder: Holder, new_status: str = "available") -> Rob | None:
    """Unlink a locked holder from its ROB and free the slot.

    Returns the updated ROB, or None if the holder was not assigned.
    """
    if not db_transaction.get_connection().in_atomic_block:
        raise InvariantViolation("release_holder requires an atomic block")

    if holder.rob_id is None:
        return None

    rob = lock_rob(holder.rob_id)
    holder.rob = None
    holder.status = new_status
    holder.assigned_at = None
    holder.save(update_fields=["rob", "status", "assigned_at"])

    rob.current_load = max(rob.current_load - 1, 0)
    rob.updated_at = timezone.now()
    rob.save(update_fields=["current_load", "updated_at"])

    verify_rob_invariant(rob)
    logger.info(
        "Released holder %s from ROB %s (%d/%d)",
        holder.code,
        rob.code,
        rob.current_load,
        rob.capacity,
    )
    return rob
