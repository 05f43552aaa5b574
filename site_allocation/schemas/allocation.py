from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from site_allocation.schemas.site import SitePriority


class AllocationStatus(str, Enum):
    UNALLOCATED = "unallocated"
    ALLOCATED = "allocated"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# Statuses in which the bound engineer is busy and the site is taken
ACTIVE_STATUSES = frozenset({AllocationStatus.ALLOCATED, AllocationStatus.IN_PROGRESS})


class Allocation(BaseModel):
    """Work-assignment record binding a site to at most one engineer."""
    model_config = ConfigDict(frozen=True)

    id: str
    site_id: str
    engineer_id: Optional[str] = None
    site_name: Optional[str] = None
    address: Optional[str] = None
    region: Optional[str] = None
    priority: SitePriority = SitePriority.MEDIUM
    status: AllocationStatus = AllocationStatus.UNALLOCATED
    scheduled_date: Optional[date] = None
    distance: Optional[float] = Field(None, description="Advisory distance from the location service")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def engineer_matches_status(self):
        if self.status == AllocationStatus.UNALLOCATED and self.engineer_id is not None:
            raise ValueError("an unallocated allocation cannot reference an engineer")
        if self.status in ACTIVE_STATUSES and self.engineer_id is None:
            raise ValueError(f"a {self.status.value} allocation must reference an engineer")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AllocateRequest(BaseModel):
    engineer_id: str
    site_id: str
    scheduled_date: Optional[date] = Field(None, description="Planned visit date")


class ReassignRequest(BaseModel):
    engineer_id: str
