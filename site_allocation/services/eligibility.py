"""
Eligibility rule: may an engineer receive new work?

Availability is re-derived from the allocations bound to the engineer; the
stored ``status`` flag alone is never trusted because it can lag behind
allocations written by other sessions.
"""

from typing import Iterable, Optional

from site_allocation.schemas.allocation import Allocation
from site_allocation.schemas.engineer import Engineer, EngineerStatus


def count_active_allocations(engineer_id: str, allocations: Iterable[Allocation]) -> int:
    """Number of allocated/in-progress allocations bound to the engineer."""
    return sum(1 for a in allocations if a.engineer_id == engineer_id and a.is_active)


def can_accept(engineer: Engineer, active_allocation_count: int) -> bool:
    """True iff the engineer is flagged available and holds no active allocation."""
    return engineer.status == EngineerStatus.AVAILABLE and active_allocation_count == 0


def is_effectively_available(engineer: Engineer, allocations: Iterable[Allocation]) -> bool:
    return can_accept(engineer, count_active_allocations(engineer.id, allocations))


def rejection_reason(engineer: Engineer, allocations: Iterable[Allocation]) -> Optional[str]:
    """Human readable reason the engineer cannot accept work, or None if eligible."""
    active = count_active_allocations(engineer.id, allocations)
    if can_accept(engineer, active):
        return None
    if active:
        return f"Engineer {engineer.name} already holds {active} active allocation(s)."
    return f"Engineer {engineer.name} is not available."


def reconcile_engineer(engineer: Engineer, allocations: Iterable[Allocation]) -> Engineer:
    """Returns the engineer with ``status`` replaced by effective availability."""
    if engineer.status == EngineerStatus.UNAVAILABLE:
        return engineer
    if count_active_allocations(engineer.id, allocations):
        return engineer.model_copy(update={"status": EngineerStatus.UNAVAILABLE})
    return engineer
