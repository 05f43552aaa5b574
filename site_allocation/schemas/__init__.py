from site_allocation.schemas.allocation import (
    ACTIVE_STATUSES,
    Allocation,
    AllocationStatus,
    AllocateRequest,
    ReassignRequest,
)
from site_allocation.schemas.engineer import Engineer, EngineerStatus, EngineerWorkload
from site_allocation.schemas.site import Site, SiteCreate, SitePriority
from site_allocation.schemas.snapshot import (
    ALL_REGIONS,
    AllocationStats,
    EngineerAllocations,
    FilterCriteria,
    Snapshot,
    SnapshotView,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ALL_REGIONS",
    "AllocateRequest",
    "Allocation",
    "AllocationStats",
    "AllocationStatus",
    "Engineer",
    "EngineerAllocations",
    "EngineerStatus",
    "EngineerWorkload",
    "FilterCriteria",
    "ReassignRequest",
    "Site",
    "SiteCreate",
    "SitePriority",
    "Snapshot",
    "SnapshotView",
]
