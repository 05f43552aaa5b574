import uuid
from typing import List

from fastapi import APIRouter, Depends, Header, Request

from site_allocation.schemas.allocation import AllocateRequest, ReassignRequest
from site_allocation.schemas.engineer import EngineerWorkload
from site_allocation.schemas.site import Site, SiteCreate
from site_allocation.schemas.snapshot import EngineerAllocations, FilterCriteria, SnapshotView
from site_allocation.services.orchestrator import AllocationOrchestrator


router = APIRouter(prefix="/allocation", tags=["allocation"])


def get_orchestrator(
    request: Request,
    x_operator_id: str = Header(..., description="Acting operator"),
) -> AllocationOrchestrator:
    """One orchestrator session per operator, kept on the application."""
    return request.app.state.sessions.get(x_operator_id)


def _result(orchestrator: AllocationOrchestrator, allocation) -> dict:
    return {
        "success": True,
        "allocation": allocation,
        "stats": orchestrator.stats(),
    }


@router.post("/snapshot/load", response_model=SnapshotView)
async def load_snapshot(orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.load_snapshot()


@router.get("/snapshot", response_model=SnapshotView)
async def get_snapshot(orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.view()


@router.post("/allocate")
async def allocate(req: AllocateRequest, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    allocation = await orchestrator.request_allocation(req.engineer_id, req.site_id, req.scheduled_date)
    return _result(orchestrator, allocation)


@router.post("/{allocation_id}/reassign")
async def reassign(
    allocation_id: str,
    req: ReassignRequest,
    orchestrator: AllocationOrchestrator = Depends(get_orchestrator),
):
    allocation = await orchestrator.reassign(allocation_id, req.engineer_id)
    return _result(orchestrator, allocation)


@router.post("/{allocation_id}/start")
async def start(allocation_id: str, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return _result(orchestrator, await orchestrator.start(allocation_id))


@router.post("/{allocation_id}/complete")
async def complete(allocation_id: str, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return _result(orchestrator, await orchestrator.complete(allocation_id))


@router.post("/{allocation_id}/cancel")
async def cancel(allocation_id: str, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return _result(orchestrator, await orchestrator.cancel(allocation_id))


@router.put("/filters", response_model=SnapshotView)
async def set_filters(criteria: FilterCriteria, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.set_filters(criteria)


@router.delete("/filters", response_model=SnapshotView)
async def clear_filters(orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.clear_filters()


@router.post("/sites")
async def register_site(req: SiteCreate, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    site = Site(**req.model_dump(exclude={"id"}), id=req.id or str(uuid.uuid4()))
    return _result(orchestrator, await orchestrator.register_site(site))


@router.get("/regions", response_model=List[str])
async def regions(orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.regions()


@router.get("/engineers/workload", response_model=List[EngineerWorkload])
async def engineer_workload(orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.engineer_workload()


@router.get("/engineers/{engineer_id}/allocations", response_model=EngineerAllocations)
async def engineer_allocations(engineer_id: str, orchestrator: AllocationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.allocations_for_engineer(engineer_id)
