import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Awaitable, Callable, List, Optional

from site_allocation.core.metrics import track_performance
from site_allocation.core.prometheus_metrics import prometheus_collector
from site_allocation.schemas.allocation import Allocation, AllocationStatus
from site_allocation.schemas.engineer import Engineer, EngineerStatus, EngineerWorkload
from site_allocation.schemas.site import Site
from site_allocation.schemas.snapshot import (
    AllocationStats,
    EngineerAllocations,
    FilterCriteria,
    Snapshot,
    SnapshotView,
)
from site_allocation.services import filters, lifecycle
from site_allocation.services.aggregation import summarize
from site_allocation.services.eligibility import is_effectively_available, reconcile_engineer
from site_allocation.services.exceptions import (
    EligibilityRejected,
    RecordNotFound,
    SnapshotNotLoaded,
    StoreUnavailable,
)
from site_allocation.services.location import LocationService, advisory_distance
from site_allocation.services.store import EntityStore
from site_allocation.services.validators import BusinessRules

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[object]]


class AllocationOrchestrator:
    """
    One operator session over the allocation engine.

    The orchestrator owns the session snapshot and is the only code path that
    changes it. Every command follows the same discipline:

    1. Validate against the current snapshot (eligibility, lifecycle guards)
    2. Write through the entity store, compensating earlier writes if a later
       one fails or loses a race
    3. Only then replace the snapshot with the updated copy

    A rejected or failed command therefore leaves the snapshot exactly as it
    was. Commands are serialized per session with an asyncio lock; concurrent
    sessions are kept apart by the store's guarded writes.

    The acting operator is passed in explicitly and only used for attribution
    in logs and metrics.
    """

    def __init__(
        self,
        store: EntityStore,
        operator_id: str,
        location_service: Optional[LocationService] = None,
    ):
        self.store = store
        self.operator_id = operator_id
        self.location_service = location_service
        self._snapshot: Optional[Snapshot] = None
        self._criteria = FilterCriteria()
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> Snapshot:
        self._require_loaded()
        return self._snapshot

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def _require_loaded(self) -> None:
        if self._snapshot is None:
            raise SnapshotNotLoaded("Load the snapshot before issuing allocation commands.")

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @track_performance(service_name="AllocationOrchestrator")
    async def load_snapshot(self) -> SnapshotView:
        """
        Replaces the snapshot with a fresh read of the store.

        The three lists are collected into locals and swapped in together, so a
        failed or cancelled load never leaves a half-merged snapshot behind.

        Raises:
            StoreUnavailable: the store could not be read; the previous snapshot is kept
        """
        async with self._lock:
            try:
                engineers = await self.store.list_engineers()
                sites = await self.store.list_sites()
                allocations = await self.store.list_allocations()
            except StoreUnavailable as e:
                logger.warning(f"Snapshot load failed for operator {self.operator_id}: {e}")
                raise

            self._snapshot = Snapshot(
                engineers=tuple(engineers),
                sites=tuple(sites),
                allocations=tuple(allocations),
            )
            logger.info(
                f"Snapshot loaded for operator {self.operator_id}: "
                f"{len(engineers)} engineers, {len(sites)} sites, {len(allocations)} allocations"
            )
            return self.view()

    def view(self) -> SnapshotView:
        """Read-only view with engineer status reconciled against active allocations."""
        snapshot = self.snapshot
        stats = self.stats()
        visible = filters.apply(snapshot.sites, snapshot.allocations, self._criteria)
        return SnapshotView(
            engineers=[reconcile_engineer(e, snapshot.allocations) for e in snapshot.engineers],
            sites=list(snapshot.sites),
            allocations=list(snapshot.allocations),
            filtered=list(visible.sites),
            filtered_allocations=list(visible.allocations),
            stats=stats,
            filters=self._criteria,
        )

    def stats(self) -> AllocationStats:
        snapshot = self.snapshot
        stats = summarize(snapshot.sites, snapshot.engineers, snapshot.allocations)
        prometheus_collector.update_allocation_stats(
            available_sites=stats.available_sites,
            available_engineers=stats.available_engineers,
            pending_allocations=stats.pending_allocations,
        )
        return stats

    # ------------------------------------------------------------------
    # Allocation commands
    # ------------------------------------------------------------------

    @track_performance(service_name="AllocationOrchestrator")
    async def request_allocation(
        self,
        engineer_id: str,
        site_id: str,
        scheduled_date: Optional[date] = None,
    ) -> Allocation:
        """
        Assigns an engineer to a site.

        Uses the site's open (unallocated) allocation, or creates one when the
        site has none. The engineer is claimed with a store update restricted
        to engineers still available, so two operators cannot both book them.

        Raises:
            RecordNotFound: unknown engineer or site
            EligibilityRejected: engineer busy/unavailable, site already taken,
                or another session won the race
            StoreUnavailable: a write failed; earlier writes are undone
        """
        async with self._lock:
            snapshot = self.snapshot
            engineer = self._get_engineer(snapshot, engineer_id)
            site = self._get_site(snapshot, site_id)

            target = self._open_allocation(snapshot, site)
            is_new = snapshot.allocation(target.id) is None

            assigned = lifecycle.assign(target, engineer, snapshot.allocations, scheduled_date)
            distance = await advisory_distance(self.location_service, engineer, site)
            if distance is not None:
                assigned = assigned.model_copy(update={"distance": distance})

            async with self._compensating() as undo:
                await self._claim_engineer(engineer)
                undo.append(lambda: self._set_engineer_status(engineer.id, EngineerStatus.AVAILABLE))
                await self._write_allocation(
                    assigned,
                    expected_status=None if is_new else AllocationStatus.UNALLOCATED,
                )

            self._snapshot = self._with_engineer_status(
                snapshot.with_allocation(assigned), engineer.id, EngineerStatus.UNAVAILABLE
            )
            logger.info(
                f"Operator {self.operator_id} allocated site {site.id} to engineer {engineer.id} "
                f"(allocation {assigned.id})"
            )
            return assigned

    @track_performance(service_name="AllocationOrchestrator")
    async def reassign(self, allocation_id: str, new_engineer_id: str) -> Allocation:
        """Moves an allocated site to another engineer in one step, with no unallocated gap."""
        async with self._lock:
            snapshot = self.snapshot
            allocation = self._get_allocation(snapshot, allocation_id)
            new_engineer = self._get_engineer(snapshot, new_engineer_id)
            old_engineer_id = allocation.engineer_id

            updated = lifecycle.reassign(allocation, new_engineer, snapshot.allocations)
            distance = await advisory_distance(
                self.location_service, new_engineer, snapshot.site(allocation.site_id)
            )
            if distance is not None:
                updated = updated.model_copy(update={"distance": distance})

            async with self._compensating() as undo:
                await self._claim_engineer(new_engineer)
                undo.append(lambda: self._set_engineer_status(new_engineer.id, EngineerStatus.AVAILABLE))
                await self._write_allocation(
                    updated,
                    expected_status=AllocationStatus.ALLOCATED,
                    expected_engineer_id=old_engineer_id,
                )
                undo.append(lambda: self.store.upsert_allocation(allocation))
                await self._set_engineer_status(old_engineer_id, EngineerStatus.AVAILABLE)

            snapshot = snapshot.with_allocation(updated)
            snapshot = self._with_engineer_status(snapshot, new_engineer.id, EngineerStatus.UNAVAILABLE)
            self._snapshot = self._with_engineer_status(snapshot, old_engineer_id, EngineerStatus.AVAILABLE)
            logger.info(
                f"Operator {self.operator_id} reassigned allocation {allocation.id} "
                f"from engineer {old_engineer_id} to {new_engineer.id}"
            )
            return updated

    @track_performance(service_name="AllocationOrchestrator")
    async def start(self, allocation_id: str) -> Allocation:
        async with self._lock:
            snapshot = self.snapshot
            allocation = self._get_allocation(snapshot, allocation_id)
            started = lifecycle.start(allocation)

            await self._write_allocation(
                started,
                expected_status=AllocationStatus.ALLOCATED,
                expected_engineer_id=allocation.engineer_id,
            )

            self._snapshot = snapshot.with_allocation(started)
            logger.info(f"Operator {self.operator_id} started allocation {allocation.id}")
            return started

    @track_performance(service_name="AllocationOrchestrator")
    async def complete(self, allocation_id: str) -> Allocation:
        """Finishes in-progress work and frees the engineer."""
        async with self._lock:
            snapshot = self.snapshot
            allocation = self._get_allocation(snapshot, allocation_id)
            finished = lifecycle.finish(allocation)
            return await self._release(snapshot, allocation, finished, "completed")

    @track_performance(service_name="AllocationOrchestrator")
    async def cancel(self, allocation_id: str) -> Allocation:
        """Returns the allocation to the pool; the record itself is kept."""
        async with self._lock:
            snapshot = self.snapshot
            allocation = self._get_allocation(snapshot, allocation_id)
            cancelled = lifecycle.cancel(allocation)
            return await self._release(snapshot, allocation, cancelled, "cancelled")

    @track_performance(service_name="AllocationOrchestrator")
    async def register_site(self, site: Site) -> Allocation:
        """
        Adds (or updates) a site and makes sure it has an open allocation.

        The site and its allocation are written in one store transaction. When
        the site already has unfinished work, that allocation picks up the new
        site name, address, region and priority.

        Raises:
            ValidationError: missing site name or id
            EligibilityRejected: the allocation was changed by another session
        """
        BusinessRules.validate_site(site)
        async with self._lock:
            snapshot = self.snapshot
            existing = [
                a for a in snapshot.allocations_for_site(site.id)
                if a.status != AllocationStatus.COMPLETED
            ]
            if existing:
                current = existing[0]
                allocation = lifecycle.refresh_site_details(current, site)
                written = await self.store.upsert_site_with_allocation(
                    site,
                    allocation,
                    expected_status=current.status,
                    expected_engineer_id=current.engineer_id,
                )
            else:
                allocation = lifecycle.new_allocation(site)
                written = await self.store.upsert_site_with_allocation(site, allocation)

            if not written:
                raise EligibilityRejected(
                    f"Allocation for site {site.id} was changed by another session; reload and retry."
                )

            self._snapshot = snapshot.with_site(site).with_allocation(allocation)
            logger.info(f"Operator {self.operator_id} registered site {site.id} ({site.name})")
            return allocation

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_filters(self, criteria: FilterCriteria) -> SnapshotView:
        """Replaces the active filters; the snapshot data is untouched."""
        self._require_loaded()
        self._criteria = criteria
        return self.view()

    def clear_filters(self) -> SnapshotView:
        self._require_loaded()
        self._criteria = filters.clear_filters()
        return self.view()

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def regions(self) -> List[str]:
        """Distinct non-empty site regions, sorted, for the region selector."""
        return sorted({site.region for site in self.snapshot.sites if site.region})

    def engineer_workload(self) -> List[EngineerWorkload]:
        snapshot = self.snapshot
        workload = []
        for engineer in snapshot.engineers:
            bound = [
                a for a in snapshot.allocations
                if a.engineer_id == engineer.id and a.status != AllocationStatus.UNALLOCATED
            ]
            workload.append(
                EngineerWorkload(
                    engineer_id=engineer.id,
                    name=engineer.name,
                    vehicle=engineer.vehicle,
                    allocated_sites=len(bound),
                    available=is_effectively_available(engineer, snapshot.allocations),
                )
            )
        return workload

    def allocations_for_engineer(self, engineer_id: str) -> EngineerAllocations:
        snapshot = self.snapshot
        self._get_engineer(snapshot, engineer_id)
        mine = [a for a in snapshot.allocations if a.engineer_id == engineer_id]
        return EngineerAllocations(
            engineer_id=engineer_id,
            active=[a for a in mine if a.is_active],
            completed=[a for a in mine if a.status == AllocationStatus.COMPLETED],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _release(
        self,
        snapshot: Snapshot,
        before: Allocation,
        after: Allocation,
        verb: str,
    ) -> Allocation:
        async with self._compensating() as undo:
            await self._write_allocation(
                after,
                expected_status=before.status,
                expected_engineer_id=before.engineer_id,
            )
            undo.append(lambda: self.store.upsert_allocation(before))
            await self._set_engineer_status(before.engineer_id, EngineerStatus.AVAILABLE)

        self._snapshot = self._with_engineer_status(
            snapshot.with_allocation(after), before.engineer_id, EngineerStatus.AVAILABLE
        )
        logger.info(
            f"Operator {self.operator_id} {verb} allocation {before.id} "
            f"(engineer {before.engineer_id} released)"
        )
        return after

    @asynccontextmanager
    async def _compensating(self):
        """Runs registered undo steps newest-first if the block fails, then re-raises."""
        undo: List[Compensation] = []
        try:
            yield undo
        except Exception:
            for step in reversed(undo):
                try:
                    await step()
                except Exception as e:
                    logger.error(f"Compensation step failed for operator {self.operator_id}: {e}")
            raise

    async def _claim_engineer(self, engineer: Engineer) -> None:
        claimed = await self.store.update_engineer_status(
            engineer.id,
            EngineerStatus.UNAVAILABLE,
            expected_status=EngineerStatus.AVAILABLE,
        )
        if not claimed:
            raise EligibilityRejected(f"Engineer {engineer.name} is no longer available.")

    async def _set_engineer_status(self, engineer_id: str, status: EngineerStatus) -> None:
        await self.store.update_engineer_status(engineer_id, status)

    async def _write_allocation(
        self,
        allocation: Allocation,
        expected_status: Optional[AllocationStatus],
        expected_engineer_id: Optional[str] = None,
    ) -> None:
        written = await self.store.upsert_allocation(
            allocation,
            expected_status=expected_status,
            expected_engineer_id=expected_engineer_id,
        )
        if not written:
            raise EligibilityRejected(
                f"Allocation for site {allocation.site_id} was changed by another session; reload and retry."
            )

    @staticmethod
    def _with_engineer_status(snapshot: Snapshot, engineer_id: str, status: EngineerStatus) -> Snapshot:
        engineer = snapshot.engineer(engineer_id)
        if engineer is None or engineer.status == status:
            return snapshot
        return snapshot.with_engineer(engineer.model_copy(update={"status": status}))

    @staticmethod
    def _open_allocation(snapshot: Snapshot, site: Site) -> Allocation:
        site_allocations = snapshot.allocations_for_site(site.id)
        if any(a.is_active for a in site_allocations):
            raise EligibilityRejected(f"Site {site.name} already has an active allocation.")
        for allocation in site_allocations:
            if allocation.status == AllocationStatus.UNALLOCATED:
                return allocation
        return lifecycle.new_allocation(site)

    @staticmethod
    def _get_engineer(snapshot: Snapshot, engineer_id: str) -> Engineer:
        engineer = snapshot.engineer(engineer_id)
        if engineer is None:
            raise RecordNotFound(f"Engineer {engineer_id} not found.")
        return engineer

    @staticmethod
    def _get_site(snapshot: Snapshot, site_id: str) -> Site:
        site = snapshot.site(site_id)
        if site is None:
            raise RecordNotFound(f"Site {site_id} not found.")
        return site

    @staticmethod
    def _get_allocation(snapshot: Snapshot, allocation_id: str) -> Allocation:
        allocation = snapshot.allocation(allocation_id)
        if allocation is None:
            raise RecordNotFound(f"Allocation {allocation_id} not found.")
        return allocation
