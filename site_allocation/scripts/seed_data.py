import asyncio
import logging

from site_allocation.core.db import AsyncSessionLocal, init_models
from site_allocation.core.logging import setup_logging
from site_allocation.schemas.engineer import Engineer, EngineerStatus
from site_allocation.schemas.site import Site, SitePriority
from site_allocation.services.lifecycle import new_allocation
from site_allocation.services.store import SqlAlchemyEntityStore

logger = logging.getLogger(__name__)

ENGINEERS = [
    Engineer(id="E1", name="John Doe", vehicle="Toyota Hilux", status=EngineerStatus.AVAILABLE),
    Engineer(id="E2", name="Jane Smith", vehicle="Ford Ranger", status=EngineerStatus.AVAILABLE),
    Engineer(id="E3", name="Robert Johnson", vehicle="Nissan Navara", status=EngineerStatus.UNAVAILABLE),
]

SITES = [
    Site(id="S1", name="Apollo Substation", region="Gauteng", priority=SitePriority.HIGH),
    Site(id="S2", name="Brakpan Exchange", region="Gauteng"),
    Site(id="S3", name="Centurion Depot", region="Gauteng", priority=SitePriority.LOW),
    Site(id="S4", name="Durban North Relay", region="KwaZulu-Natal", priority=SitePriority.HIGH),
    Site(id="S5", name="Empangeni Tower", region="KwaZulu-Natal"),
    Site(id="S6", name="Free State Switching Yard", region="Free State"),
    Site(id="S7", name="Gqeberha Harbour Node", region="Eastern Cape"),
    Site(id="S8", name="Hermanus Coastal Link", region="Western Cape", priority=SitePriority.HIGH),
    Site(id="S9", name="Isando Data Room", region="Gauteng"),
    Site(id="S10", name="Jozini Dam Feeder", region="KwaZulu-Natal", priority=SitePriority.LOW),
]


async def seed():
    store = SqlAlchemyEntityStore(AsyncSessionLocal)
    for engineer in ENGINEERS:
        await store.upsert_engineer(engineer)
    for site in SITES:
        await store.upsert_site(site)
        await store.upsert_allocation(new_allocation(site, allocation_id=f"A-{site.id}"))
    logger.info(f"Seeded {len(ENGINEERS)} engineers and {len(SITES)} sites")


async def main():
    setup_logging()
    await init_models()
    await seed()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
