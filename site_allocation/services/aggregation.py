"""Summary counters derived from a full snapshot. Nothing here is cached."""

from typing import Dict, Iterable, List, Sequence

from site_allocation.schemas.allocation import Allocation, AllocationStatus
from site_allocation.schemas.engineer import Engineer
from site_allocation.schemas.site import Site
from site_allocation.schemas.snapshot import AllocationStats
from site_allocation.services.eligibility import is_effectively_available


def _by_site(allocations: Iterable[Allocation]) -> Dict[str, List[Allocation]]:
    grouped: Dict[str, List[Allocation]] = {}
    for allocation in allocations:
        grouped.setdefault(allocation.site_id, []).append(allocation)
    return grouped


def count_available_sites(sites: Sequence[Site], allocations: Sequence[Allocation]) -> int:
    """Sites whose allocations are all unallocated, or that have none."""
    grouped = _by_site(allocations)
    return sum(
        1 for site in sites
        if all(a.status == AllocationStatus.UNALLOCATED for a in grouped.get(site.id, []))
    )


def count_available_engineers(engineers: Sequence[Engineer], allocations: Sequence[Allocation]) -> int:
    return sum(1 for engineer in engineers if is_effectively_available(engineer, allocations))


def count_pending_sites(sites: Sequence[Site], allocations: Sequence[Allocation]) -> int:
    """Sites with no engineer bound on any of their allocations."""
    grouped = _by_site(allocations)
    return sum(
        1 for site in sites
        if all(a.engineer_id is None for a in grouped.get(site.id, []))
    )


def count_bound_sites(sites: Sequence[Site], allocations: Sequence[Allocation]) -> int:
    """Sites with an engineer bound (allocated, in progress or completed)."""
    return len(sites) - count_pending_sites(sites, allocations)


def summarize(
    sites: Sequence[Site],
    engineers: Sequence[Engineer],
    allocations: Sequence[Allocation],
) -> AllocationStats:
    return AllocationStats(
        available_sites=count_available_sites(sites, allocations),
        available_engineers=count_available_engineers(engineers, allocations),
        pending_allocations=count_pending_sites(sites, allocations),
    )
