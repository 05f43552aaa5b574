"""
Location service collaborator.

Supplies an advisory distance (km) from the engineer to a site. It never
gates an allocation: when no service is configured, or it fails, the
allocation proceeds with ``distance`` left empty.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from site_allocation.schemas.engineer import Engineer
from site_allocation.schemas.site import Site

logger = logging.getLogger(__name__)


class LocationService(ABC):
    @abstractmethod
    async def distance_to(self, engineer: Engineer, site: Site) -> Optional[float]:
        ...


class StaticDistanceLocationService(LocationService):
    """Looks distances up in a fixed table keyed by (engineer_id, site_id)."""

    def __init__(self, distances: Dict[Tuple[str, str], float]):
        self._distances = dict(distances)

    async def distance_to(self, engineer: Engineer, site: Site) -> Optional[float]:
        return self._distances.get((engineer.id, site.id))


async def advisory_distance(
    service: Optional[LocationService],
    engineer: Engineer,
    site: Optional[Site],
) -> Optional[float]:
    if service is None or site is None:
        return None
    try:
        return await service.distance_to(engineer, site)
    except Exception as e:
        logger.warning(f"Location service failed for site {site.id}: {e}")
        return None
