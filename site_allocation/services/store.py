"""
Entity store adapter: the only code that talks to the durable store.

The orchestrator depends on the abstract ``EntityStore``; the SQLAlchemy
implementation below is the production one. Guarded writes return ``False``
instead of raising when another session changed the row first, so the caller
can turn a lost race into an eligibility rejection.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_allocation.core.retry import async_retry
from site_allocation.models.allocation import Allocation as AllocationRow
from site_allocation.models.engineer import Engineer as EngineerRow
from site_allocation.models.site import Site as SiteRow
from site_allocation.schemas.allocation import ACTIVE_STATUSES, Allocation, AllocationStatus
from site_allocation.schemas.engineer import Engineer, EngineerStatus
from site_allocation.schemas.site import Site
from site_allocation.services.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

ACTIVE_STATUS_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


class EntityStore(ABC):
    """CRUD-style access to engineers, sites and allocations."""

    @abstractmethod
    async def list_engineers(self) -> List[Engineer]:
        ...

    @abstractmethod
    async def list_sites(self) -> List[Site]:
        ...

    @abstractmethod
    async def list_allocations(self) -> List[Allocation]:
        ...

    @abstractmethod
    async def upsert_allocation(
        self,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus] = None,
        expected_engineer_id: Optional[str] = None,
    ) -> bool:
        """Writes the allocation; False if the stored row is no longer in
        ``expected_status`` bound to ``expected_engineer_id``, or the write would
        give the site a second active allocation."""

    @abstractmethod
    async def upsert_site_with_allocation(
        self,
        site: Site,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus] = None,
        expected_engineer_id: Optional[str] = None,
    ) -> bool:
        """Writes the site and one of its allocations in a single transaction,
        with the same guards as ``upsert_allocation``; nothing is written on False."""

    @abstractmethod
    async def update_engineer_status(
        self,
        engineer_id: str,
        status: EngineerStatus,
        expected_status: Optional[EngineerStatus] = None,
    ) -> bool:
        """Sets the engineer status; False when no row matched."""

    @abstractmethod
    async def upsert_site(self, site: Site) -> None:
        ...

    @abstractmethod
    async def upsert_engineer(self, engineer: Engineer) -> None:
        ...


class SqlAlchemyEntityStore(EntityStore):
    """
    Entity store over SQLAlchemy 2.0 async sessions.

    Each call runs in its own short transaction. Driver and connection errors
    surface as StoreUnavailable; reads are retried with exponential backoff,
    writes are attempted once.
    """

    def __init__(self, sessionmaker: async_sessionmaker):
        self._sessionmaker = sessionmaker

    @async_retry()
    async def list_engineers(self) -> List[Engineer]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(EngineerRow).order_by(EngineerRow.name, EngineerRow.id)
                )
                return [_to_engineer(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    @async_retry()
    async def list_sites(self) -> List[Site]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(SiteRow).order_by(SiteRow.name, SiteRow.id)
                )
                return [_to_site(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    @async_retry()
    async def list_allocations(self) -> List[Allocation]:
        try:
            async with self._sessionmaker() as session:
                result = await session.execute(
                    select(AllocationRow).order_by(AllocationRow.created_at, AllocationRow.id)
                )
                return [_to_allocation(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    async def upsert_allocation(
        self,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus] = None,
        expected_engineer_id: Optional[str] = None,
    ) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    allowed, row = await self._guarded_row(session, allocation, expected_status, expected_engineer_id)
                    if not allowed:
                        return False
                    if row is None:
                        row = AllocationRow(id=allocation.id)
                        session.add(row)
                    _apply_allocation(row, allocation)
            return True
        except IntegrityError as e:
            logger.info(f"Site {allocation.site_id} already has an active allocation: {e.orig}")
            return False
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    async def upsert_site_with_allocation(
        self,
        site: Site,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus] = None,
        expected_engineer_id: Optional[str] = None,
    ) -> bool:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    allowed, row = await self._guarded_row(session, allocation, expected_status, expected_engineer_id)
                    if not allowed:
                        return False
                    await _merge_site(session, site)
                    await session.flush()
                    if row is None:
                        row = AllocationRow(id=allocation.id)
                        session.add(row)
                    _apply_allocation(row, allocation)
            return True
        except IntegrityError as e:
            logger.info(f"Site {allocation.site_id} already has an active allocation: {e.orig}")
            return False
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    async def _guarded_row(
        self,
        session: AsyncSession,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus],
        expected_engineer_id: Optional[str],
    ) -> Tuple[bool, Optional[AllocationRow]]:
        """
        Locks the stored row (None when new) and checks the write guards.

        With ``expected_status`` set, the stored row must still have that status
        and be bound to ``expected_engineer_id``.
        """
        row = (
            await session.execute(
                select(AllocationRow)
                .where(AllocationRow.id == allocation.id)
                .with_for_update()
            )
        ).scalar_one_or_none()

        if row is not None and expected_status is not None:
            if row.status != expected_status.value or row.engineer_id != expected_engineer_id:
                logger.info(
                    f"Allocation {allocation.id} is {row.status} with engineer {row.engineer_id}, "
                    f"expected {expected_status.value} with engineer {expected_engineer_id}"
                )
                return False, row

        if allocation.status in ACTIVE_STATUSES and await self._has_other_active(session, allocation):
            logger.info(f"Site {allocation.site_id} already has an active allocation")
            return False, row
        return True, row

    async def _has_other_active(self, session: AsyncSession, allocation: Allocation) -> bool:
        conflicts = await session.execute(
            select(func.count(AllocationRow.id)).where(
                AllocationRow.site_id == allocation.site_id,
                AllocationRow.id != allocation.id,
                AllocationRow.status.in_(ACTIVE_STATUS_VALUES),
            )
        )
        return conflicts.scalar() > 0

    async def update_engineer_status(
        self,
        engineer_id: str,
        status: EngineerStatus,
        expected_status: Optional[EngineerStatus] = None,
    ) -> bool:
        stmt = update(EngineerRow).where(EngineerRow.id == engineer_id)
        if expected_status is not None:
            stmt = stmt.where(EngineerRow.status == expected_status.value)
        stmt = stmt.values(status=status.value)
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
            return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    async def upsert_site(self, site: Site) -> None:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    await _merge_site(session, site)
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e

    async def upsert_engineer(self, engineer: Engineer) -> None:
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    row = await session.get(EngineerRow, engineer.id)
                    if row is None:
                        row = EngineerRow(id=engineer.id)
                        session.add(row)
                    row.name = engineer.name
                    row.vehicle = engineer.vehicle
                    row.status = engineer.status.value
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e


async def _merge_site(session: AsyncSession, site: Site) -> None:
    row = await session.get(SiteRow, site.id)
    if row is None:
        row = SiteRow(id=site.id)
        session.add(row)
    row.name = site.name
    row.region = site.region
    row.address = site.address
    row.priority = site.priority.value
    row.type = site.type
    row.contact_name = site.contact_name
    row.contact_phone = site.contact_phone
    row.contact_email = site.contact_email
    if site.created_at is not None:
        row.created_at = site.created_at


def _apply_allocation(row: AllocationRow, allocation: Allocation) -> None:
    row.site_id = allocation.site_id
    row.engineer_id = allocation.engineer_id
    row.site_name = allocation.site_name
    row.address = allocation.address
    row.region = allocation.region
    row.priority = allocation.priority.value
    row.status = allocation.status.value
    row.scheduled_date = allocation.scheduled_date
    row.distance = allocation.distance
    if allocation.created_at is not None and row.created_at is None:
        row.created_at = allocation.created_at
    if allocation.updated_at is not None:
        row.updated_at = allocation.updated_at


def _to_engineer(row: EngineerRow) -> Engineer:
    return Engineer(
        id=row.id,
        name=row.name,
        vehicle=row.vehicle,
        status=EngineerStatus(row.status),
    )


def _to_site(row: SiteRow) -> Site:
    return Site.model_validate(row, from_attributes=True)


def _to_allocation(row: AllocationRow) -> Allocation:
    return Allocation(
        id=row.id,
        site_id=row.site_id,
        engineer_id=row.engineer_id,
        site_name=row.site_name,
        address=row.address,
        region=row.region,
        priority=row.priority,
        status=AllocationStatus(row.status),
        scheduled_date=row.scheduled_date,
        distance=row.distance,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
