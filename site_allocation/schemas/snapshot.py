from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from site_allocation.schemas.allocation import Allocation
from site_allocation.schemas.engineer import Engineer
from site_allocation.schemas.site import Site

# Region value meaning "no region restriction". Distinct from "" so that
# sites without a region can still be selected explicitly.
ALL_REGIONS = "all-regions"


class FilterCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    region: str = ALL_REGIONS


class AllocationStats(BaseModel):
    available_sites: int
    available_engineers: int
    pending_allocations: int


class Snapshot(BaseModel):
    """In-memory copy of the store held by one operator session."""
    model_config = ConfigDict(frozen=True)

    engineers: Tuple[Engineer, ...] = ()
    sites: Tuple[Site, ...] = ()
    allocations: Tuple[Allocation, ...] = ()

    def engineer(self, engineer_id: str) -> Optional[Engineer]:
        return next((e for e in self.engineers if e.id == engineer_id), None)

    def site(self, site_id: str) -> Optional[Site]:
        return next((s for s in self.sites if s.id == site_id), None)

    def allocation(self, allocation_id: str) -> Optional[Allocation]:
        return next((a for a in self.allocations if a.id == allocation_id), None)

    def allocations_for_site(self, site_id: str) -> List[Allocation]:
        return [a for a in self.allocations if a.site_id == site_id]

    def with_allocation(self, allocation: Allocation) -> "Snapshot":
        """Returns a copy with the allocation replaced (or appended when new)."""
        replaced = False
        allocations = []
        for existing in self.allocations:
            if existing.id == allocation.id:
                allocations.append(allocation)
                replaced = True
            else:
                allocations.append(existing)
        if not replaced:
            allocations.append(allocation)
        return self.model_copy(update={"allocations": tuple(allocations)})

    def with_engineer(self, engineer: Engineer) -> "Snapshot":
        engineers = [engineer if e.id == engineer.id else e for e in self.engineers]
        if engineer.id not in {e.id for e in self.engineers}:
            engineers.append(engineer)
        return self.model_copy(update={"engineers": tuple(engineers)})

    def with_site(self, site: Site) -> "Snapshot":
        sites = [site if s.id == site.id else s for s in self.sites]
        if site.id not in {s.id for s in self.sites}:
            sites.append(site)
        # Same order the store lists sites in
        sites.sort(key=lambda s: (s.name, s.id))
        return self.model_copy(update={"sites": tuple(sites)})


class SnapshotView(BaseModel):
    """Read-only view handed to the presentation layer."""
    engineers: List[Engineer]
    sites: List[Site]
    allocations: List[Allocation]
    filtered: List[Site]
    filtered_allocations: List[Allocation]
    stats: AllocationStats
    filters: FilterCriteria


class EngineerAllocations(BaseModel):
    engineer_id: str
    active: List[Allocation]
    completed: List[Allocation]
