from site_allocation.schemas.allocation import AllocationStatus
from site_allocation.schemas.engineer import EngineerStatus
from site_allocation.services.eligibility import (
    can_accept,
    count_active_allocations,
    is_effectively_available,
    reconcile_engineer,
    rejection_reason,
)


def test_available_engineer_without_work_can_accept(make_engineer):
    assert can_accept(make_engineer(), 0) is True


def test_unavailable_flag_blocks_acceptance(make_engineer):
    assert can_accept(make_engineer(status=EngineerStatus.UNAVAILABLE), 0) is False


def test_active_allocation_blocks_acceptance_even_if_flag_says_available(make_engineer):
    assert can_accept(make_engineer(), 1) is False


def test_count_ignores_unallocated_and_completed(make_allocation):
    allocations = [
        make_allocation("A1", "S1", AllocationStatus.ALLOCATED, "E1"),
        make_allocation("A2", "S2", AllocationStatus.IN_PROGRESS, "E1"),
        make_allocation("A3", "S3", AllocationStatus.COMPLETED, "E1"),
        make_allocation("A4", "S4", AllocationStatus.UNALLOCATED),
        make_allocation("A5", "S5", AllocationStatus.ALLOCATED, "E2"),
    ]
    assert count_active_allocations("E1", allocations) == 2
    assert count_active_allocations("E3", allocations) == 0


def test_stale_available_flag_is_reconciled_against_allocations(make_engineer, make_allocation):
    engineer = make_engineer("E1")
    allocations = [make_allocation("A1", "S1", AllocationStatus.IN_PROGRESS, "E1")]

    assert is_effectively_available(engineer, allocations) is False
    assert reconcile_engineer(engineer, allocations).status == EngineerStatus.UNAVAILABLE
    # the input record is left alone
    assert engineer.status == EngineerStatus.AVAILABLE


def test_completed_work_frees_the_engineer(make_engineer, make_allocation):
    engineer = make_engineer("E1")
    allocations = [make_allocation("A1", "S1", AllocationStatus.COMPLETED, "E1")]

    assert is_effectively_available(engineer, allocations) is True
    assert reconcile_engineer(engineer, allocations) == engineer


def test_rejection_reason_explains_why(make_engineer, make_allocation):
    busy = [make_allocation("A1", "S1", AllocationStatus.ALLOCATED, "E1")]

    assert rejection_reason(make_engineer("E1"), []) is None
    assert "active allocation" in rejection_reason(make_engineer("E1"), busy)
    assert "not available" in rejection_reason(make_engineer("E1", status=EngineerStatus.UNAVAILABLE), [])
