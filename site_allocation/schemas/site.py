from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SitePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Site(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    region: Optional[str] = None
    address: Optional[str] = None
    priority: SitePriority = SitePriority.MEDIUM
    type: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: Optional[datetime] = None


class SiteCreate(BaseModel):
    """Body for adding a site to the allocation pool; the id is generated when omitted."""
    id: Optional[str] = None
    name: str
    region: Optional[str] = None
    address: Optional[str] = None
    priority: SitePriority = SitePriority.MEDIUM
    type: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
