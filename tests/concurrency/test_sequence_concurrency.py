"""
Concurrent sequence issuance.

Two batches assigned at the same time against one grant must receive
disjoint, contiguous blocks whose union is 1..N with no duplicates.
Sessions here commit for real; the session_factory fixture cleans up.

Skip with: pytest -m "not slow_locks"
"""

import threading
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from grants_kernel.domain.serial import SerialId
from grants_kernel.services.funding_service import FundingService
from grants_kernel.services.project_service import ProjectService
from grants_kernel.services.sequence_service import GrantSequenceService
from grants_services.ledger_operations import GrantLedgerService

pytestmark = pytest.mark.slow_locks

ACTOR = uuid4()
DONOR = "Concurrent Donor"
GRANT = "CC-1"


def _run_concurrently(*targets):
    """Start all targets behind a barrier and re-raise the first error."""
    barrier = threading.Barrier(len(targets))
    errors: list[Exception] = []

    def runner(target):
        try:
            barrier.wait(timeout=10)
            target()
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=runner, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    if errors:
        raise errors[0]


@pytest.fixture
def grant_id(session_factory):
    setup = session_factory()
    funding = FundingService(setup)
    donor = funding.create_donor(DONOR, "CD", ACTOR)
    grant = funding.create_grant(donor.id, GRANT, "Concurrency grant", Decimal("1000000"), ACTOR)
    funding.register_state("Kassala", "KS", ACTOR)
    setup.commit()
    setup.close()
    return grant.id


def _mou_with_projects(session_factory, count: int, start: datetime):
    setup = session_factory()
    funding = FundingService(setup)
    projects = ProjectService(setup)
    cycle = funding.create_cycle(f"Cycle {uuid4()}", 2024, 1, "emergency", ACTOR)
    allocation = funding.add_state_allocation(cycle.id, "Kassala", Decimal("100000"), ACTOR)
    mou = funding.create_mou(f"MOU-{uuid4()}", "Partner", "Kassala ERR", ACTOR)
    ids = []
    for i in range(count):
        info = funding.create_workplan(
            ACTOR,
            state="Kassala",
            expenses=[{"total_cost": "100"}],
            submitted_at=start + timedelta(minutes=i),
        )
        projects.allocate(info.id, allocation.id, ACTOR)
        projects.commit(info.id, ACTOR)
        ids.append(info.id)
    setup.commit()
    GrantLedgerService(setup).add_projects_to_mou(mou.id, ids, ACTOR)
    setup.close()
    return mou.id


class TestConcurrentIncrement:
    def test_blocks_of_five_and_seven_cover_one_to_twelve(self, session_factory, grant_id):
        blocks = []
        lock = threading.Lock()

        def reserve(count):
            def work():
                s = session_factory()
                try:
                    block = GrantSequenceService(s).increment(grant_id, count, ACTOR)
                    s.commit()
                finally:
                    s.close()
                with lock:
                    blocks.append((count, block))
            return work

        _run_concurrently(reserve(5), reserve(7))

        numbers = sorted(
            n for _, (old, new) in blocks for n in range(old + 1, new + 1)
        )
        assert numbers == list(range(1, 13))
        for count, (old, new) in blocks:
            assert new - old == count

        check = session_factory()
        assert GrantSequenceService(check).current_value(grant_id) == 12


class TestConcurrentAssignment:
    def test_two_mous_get_disjoint_serials(self, session_factory, grant_id):
        mou_a = _mou_with_projects(session_factory, 5, datetime(2024, 8, 1))
        mou_b = _mou_with_projects(session_factory, 7, datetime(2024, 8, 2))
        reports = []
        lock = threading.Lock()

        def assign(mou_id):
            def work():
                s = session_factory()
                try:
                    report = GrantLedgerService(s).assign_mou_to_grant(
                        mou_id, GRANT, DONOR, "0824", ACTOR
                    )
                finally:
                    s.close()
                with lock:
                    reports.append(report)
            return work

        _run_concurrently(assign(mou_a), assign(mou_b))

        assert all(r.is_complete for r in reports)
        sequences = sorted(
            SerialId.parse(o.serial).sequence for r in reports for o in r.outcomes
        )
        assert sequences == list(range(1, 13))
        for report in reports:
            own = [o.sequence for o in report.outcomes]
            assert own == list(range(report.first_sequence, report.last_sequence + 1))
