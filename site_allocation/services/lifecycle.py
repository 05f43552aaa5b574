"""
Allocation lifecycle state machine.

    unallocated --assign--> allocated --start--> in-progress --finish--> completed
    allocated/in-progress --cancel--> unallocated
    allocated --reassign--> allocated

``completed`` is terminal. Every transition is a pure function returning a
new Allocation; the input record is never modified, so a rejected transition
leaves nothing half-applied.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional

from site_allocation.schemas.allocation import Allocation, AllocationStatus
from site_allocation.schemas.engineer import Engineer
from site_allocation.schemas.site import Site
from site_allocation.services.eligibility import rejection_reason
from site_allocation.services.exceptions import EligibilityRejected, InvalidTransition

ASSIGN = "assign"
START = "start"
FINISH = "finish"
CANCEL = "cancel"
REASSIGN = "reassign"

TRANSITIONS: Dict[str, FrozenSet[AllocationStatus]] = {
    ASSIGN: frozenset({AllocationStatus.UNALLOCATED}),
    START: frozenset({AllocationStatus.ALLOCATED}),
    FINISH: frozenset({AllocationStatus.IN_PROGRESS}),
    CANCEL: frozenset({AllocationStatus.ALLOCATED, AllocationStatus.IN_PROGRESS}),
    REASSIGN: frozenset({AllocationStatus.ALLOCATED}),
}


def allowed_events(status: AllocationStatus) -> FrozenSet[str]:
    return frozenset(event for event, sources in TRANSITIONS.items() if status in sources)


def new_allocation(site: Site, allocation_id: Optional[str] = None) -> Allocation:
    """Unallocated record for a site entering the allocation pool."""
    now = datetime.now(timezone.utc)
    return Allocation(
        id=allocation_id or str(uuid.uuid4()),
        site_id=site.id,
        site_name=site.name,
        address=site.address,
        region=site.region,
        priority=site.priority,
        status=AllocationStatus.UNALLOCATED,
        created_at=now,
        updated_at=now,
    )


def _check(allocation: Allocation, event: str) -> None:
    if allocation.status not in TRANSITIONS[event]:
        raise InvalidTransition(
            f"Cannot {event} allocation {allocation.id} while it is {allocation.status.value}."
        )


def _evolve(allocation: Allocation, **changes) -> Allocation:
    """Copy of the allocation with ``changes`` applied, validated as a new record."""
    data = allocation.model_dump()
    data.update(changes)
    data["updated_at"] = datetime.now(timezone.utc)
    return Allocation(**data)


def refresh_site_details(allocation: Allocation, site: Site) -> Allocation:
    """Copies the site's current name, address, region and priority onto the allocation."""
    return _evolve(
        allocation,
        site_name=site.name,
        address=site.address,
        region=site.region,
        priority=site.priority,
    )


def assign(
    allocation: Allocation,
    engineer: Engineer,
    allocations: Iterable[Allocation],
    scheduled_date: Optional[date] = None,
) -> Allocation:
    _check(allocation, ASSIGN)
    reason = rejection_reason(engineer, allocations)
    if reason:
        raise EligibilityRejected(reason)
    changes = {"status": AllocationStatus.ALLOCATED, "engineer_id": engineer.id}
    if scheduled_date is not None:
        changes["scheduled_date"] = scheduled_date
    return _evolve(allocation, **changes)


def start(allocation: Allocation) -> Allocation:
    _check(allocation, START)
    if allocation.engineer_id is None:
        raise InvalidTransition(f"Allocation {allocation.id} has no engineer to start work.")
    return _evolve(allocation, status=AllocationStatus.IN_PROGRESS)


def finish(allocation: Allocation) -> Allocation:
    _check(allocation, FINISH)
    return _evolve(allocation, status=AllocationStatus.COMPLETED)


def cancel(allocation: Allocation) -> Allocation:
    _check(allocation, CANCEL)
    return _evolve(allocation, status=AllocationStatus.UNALLOCATED, engineer_id=None, distance=None)


def reassign(
    allocation: Allocation,
    new_engineer: Engineer,
    allocations: Iterable[Allocation],
) -> Allocation:
    _check(allocation, REASSIGN)
    if new_engineer.id == allocation.engineer_id:
        raise InvalidTransition(
            f"Allocation {allocation.id} is already assigned to engineer {new_engineer.id}."
        )
    reason = rejection_reason(new_engineer, allocations)
    if reason:
        raise EligibilityRejected(reason)
    return _evolve(allocation, engineer_id=new_engineer.id, distance=None)
