from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EngineerStatus(str, Enum):
    AVAILABLE = "available"
    # Covers "on assignment" as well as administratively disabled engineers
    UNAVAILABLE = "unavailable"


class Engineer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    vehicle: Optional[str] = None
    status: EngineerStatus = EngineerStatus.AVAILABLE


class EngineerWorkload(BaseModel):
    engineer_id: str
    name: str
    vehicle: Optional[str] = None
    allocated_sites: int
    available: bool
