"""Tests for the workplan funding lifecycle."""

from decimal import Decimal
from uuid import uuid4

import pytest

from grants_kernel.exceptions import (
    InvalidFundingTransitionError,
    ProjectLinkedToMouError,
    ProjectNotFoundError,
    StateAllocationNotFoundError,
)
from grants_kernel.models import Workplan
from grants_kernel.services.project_service import ProjectService

DONOR = "Global Relief Fund"
GRANT = "GRF-2024-01"


class TestFundingTransitions:
    def test_allocate_then_commit(self, ledger, ledger_world, make_project, test_actor_id):
        project = make_project(status="unassigned")

        allocated = ledger.allocate_project(project.id, ledger_world.allocation.id, test_actor_id)
        assert allocated.funding_status == "allocated"
        assert allocated.state_allocation_id == ledger_world.allocation.id

        committed = ledger.commit_project(project.id, test_actor_id)
        assert committed.funding_status == "committed"
        assert committed.approval_status == "approved"

    def test_commit_requires_allocation(self, ledger, make_project, test_actor_id):
        project = make_project(status="unassigned")
        with pytest.raises(InvalidFundingTransitionError) as exc_info:
            ledger.commit_project(project.id, test_actor_id)
        assert exc_info.value.from_status == "unassigned"
        assert exc_info.value.to_status == "committed"

    def test_allocate_twice_rejected(self, ledger, ledger_world, make_project, test_actor_id):
        project = make_project(status="allocated")
        with pytest.raises(InvalidFundingTransitionError):
            ledger.allocate_project(project.id, ledger_world.allocation.id, test_actor_id)

    def test_allocate_against_missing_allocation(self, ledger, make_project, test_actor_id):
        project = make_project(status="unassigned")
        with pytest.raises(StateAllocationNotFoundError):
            ledger.allocate_project(project.id, uuid4(), test_actor_id)

    def test_unknown_project(self, ledger, ledger_world, test_actor_id):
        with pytest.raises(ProjectNotFoundError):
            ledger.commit_project(uuid4(), test_actor_id)


class TestDecommit:
    def test_decommit_returns_to_pending(self, ledger, ledger_world, make_project, test_actor_id):
        project = make_project()

        info = ledger.decommit_project(project.id, test_actor_id)

        assert info.funding_status == "unassigned"
        assert info.approval_status == "pending"
        assert info.state_allocation_id == ledger_world.allocation.id

    def test_decommit_requires_committed(self, ledger, make_project, test_actor_id):
        with pytest.raises(InvalidFundingTransitionError):
            ledger.decommit_project(make_project(status="allocated").id, test_actor_id)

    def test_linked_project_cannot_decommit(self, ledger, make_project, make_mou, test_actor_id):
        project = make_project()
        make_mou([project.id])
        with pytest.raises(ProjectLinkedToMouError):
            ledger.decommit_project(project.id, test_actor_id)

    def test_decommit_sees_link_committed_elsewhere(
        self, session, ledger, make_project, make_mou, test_actor_id
    ):
        project = make_project()
        mou = make_mou()
        ProjectService(session).get_many([project.id])
        session.execute(
            Workplan.__table__.update()
            .where(Workplan.__table__.c.id == project.id)
            .values(mou_id=mou.id)
        )

        with pytest.raises(ProjectLinkedToMouError):
            ledger.decommit_project(project.id, test_actor_id)


class TestRemainingAcrossLifecycle:
    def test_identity_holds_after_every_step(
        self, ledger, ledger_world, make_project, make_mou, test_actor_id
    ):
        def check():
            figures = ledger.compute_state_allocation_remaining("Khartoum")
            assert figures.remaining == figures.total - figures.committed - figures.allocated
            return figures

        project = make_project(Decimal("2000"), status="unassigned")
        assert check().allocated == Decimal("2000")

        ledger.allocate_project(project.id, ledger_world.allocation.id, test_actor_id)
        assert check().allocated == Decimal("2000")

        ledger.commit_project(project.id, test_actor_id)
        figures = check()
        assert (figures.committed, figures.allocated) == (Decimal("2000"), Decimal("0"))

        mou = make_mou([project.id])
        ledger.assign_mou_to_grant(mou.id, GRANT, DONOR, "0824", test_actor_id)
        figures = check()
        assert figures.committed == Decimal("2000")
        assert figures.remaining == Decimal("48000")
