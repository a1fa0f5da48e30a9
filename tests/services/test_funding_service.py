"""Tests for donors, grants, cycles, allocations, tranches and workplans."""

from decimal import Decimal
from uuid import uuid4

import pytest

from grants_kernel.exceptions import (
    AllocationHasCommittedProjectsError,
    CycleClosedError,
    CycleNotFoundError,
    DonorNotFoundError,
    GrantAlreadyIncludedError,
    InvalidAmountError,
    InvalidCycleStatusError,
    InvalidCycleTypeError,
    MissingFieldError,
    StateAllocationNotFoundError,
)
from grants_kernel.models import StateAllocation, Workplan


class TestGrants:
    def test_new_grant_counter_is_zero(self, ledger_world):
        assert ledger_world.grant.max_workplan_sequence == 0
        assert ledger_world.grant.sum_activity_amount == Decimal("100000")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", None])
    def test_grant_amount_must_be_positive(self, funding, ledger_world, test_actor_id, amount):
        with pytest.raises(InvalidAmountError):
            funding.create_grant(ledger_world.donor.id, "G-X", "Bad", amount, test_actor_id)

    def test_grant_needs_donor(self, funding, db_tables, test_actor_id):
        with pytest.raises(DonorNotFoundError):
            funding.create_grant(uuid4(), "G-X", "Orphan", Decimal("1"), test_actor_id)

    def test_donor_name_required(self, funding, db_tables, test_actor_id):
        with pytest.raises(MissingFieldError):
            funding.create_donor(" ", "X", test_actor_id)


class TestCycles:
    def test_tranches_need_count(self, funding, db_tables, test_actor_id):
        with pytest.raises(InvalidCycleTypeError):
            funding.create_cycle("C", 2024, 2, "tranches", test_actor_id)
        cycle = funding.create_cycle("C", 2024, 2, "tranches", test_actor_id, tranche_count=3)
        assert (cycle.type, cycle.tranche_count, cycle.status) == ("tranches", 3, "open")

    def test_one_off_rejects_tranche_count(self, funding, db_tables, test_actor_id):
        with pytest.raises(InvalidCycleTypeError):
            funding.create_cycle("C", 2024, 3, "one_off", test_actor_id, tranche_count=2)

    def test_unknown_type(self, funding, db_tables, test_actor_id):
        with pytest.raises(InvalidCycleTypeError):
            funding.create_cycle("C", 2024, 4, "quarterly", test_actor_id)

    def test_one_inclusion_per_cycle(self, funding, ledger_world, test_actor_id):
        with pytest.raises(GrantAlreadyIncludedError):
            funding.include_grant(
                ledger_world.cycle.id, ledger_world.grant.id, Decimal("10"), test_actor_id
            )

    def test_allocation_needs_cycle(self, funding, db_tables, test_actor_id):
        with pytest.raises(CycleNotFoundError):
            funding.add_state_allocation(uuid4(), "Khartoum", Decimal("10"), test_actor_id)

    def test_allocation_decision_number(self, funding, ledger_world, test_actor_id):
        with pytest.raises(InvalidAmountError):
            funding.add_state_allocation(
                ledger_world.cycle.id, "Khartoum", Decimal("10"), test_actor_id, decision_no=0
            )
        second = funding.add_state_allocation(
            ledger_world.cycle.id, "Khartoum", Decimal("10"), test_actor_id, decision_no=2
        )
        assert second.decision_no == 2


class TestWorkplans:
    def test_costs_stored_as_decimal_strings(self, session, funding, db_tables, test_actor_id):
        info = funding.create_workplan(
            test_actor_id,
            state="Khartoum",
            expenses=[{"activity": "Food", "total_cost": 1500.5}],
            planned_activities=[{"category": "Food", "planned_activity_cost": 1500.5}, "note"],
        )
        row = session.get(Workplan, info.id)
        assert row.expenses[0]["total_cost"] == "1500.5"
        assert row.planned_activities[0]["planned_activity_cost"] == "1500.5"
        assert row.planned_activities[1] == "note"
        assert info.amount == Decimal("1500.5")
        assert (info.funding_status, info.approval_status, info.serial_status) == (
            "unassigned",
            "pending",
            "none",
        )
        assert info.mou_id is None

    def test_negative_expense_rejected(self, funding, db_tables, test_actor_id):
        with pytest.raises(InvalidAmountError):
            funding.create_workplan(test_actor_id, expenses=[{"total_cost": "-1"}])

    @pytest.mark.parametrize("individuals", ["about 20", "-3", -1, True, 2.5])
    def test_individuals_must_be_a_count(self, funding, db_tables, test_actor_id, individuals):
        with pytest.raises(InvalidAmountError) as exc_info:
            funding.create_workplan(
                test_actor_id,
                planned_activities=[
                    {"category": "Food", "planned_activity_cost": "10", "individuals": individuals}
                ],
            )
        assert exc_info.value.field_name == "individuals"

    def test_individuals_stored_as_int(self, session, funding, db_tables, test_actor_id):
        info = funding.create_workplan(
            test_actor_id,
            planned_activities=[
                {"category": "Food", "planned_activity_cost": "10", "individuals": " 20 "},
                {"category": "WASH", "planned_activity_cost": "5", "individuals": None},
            ],
        )
        row = session.get(Workplan, info.id)
        assert row.planned_activities[0]["individuals"] == 20
        assert row.planned_activities[1]["individuals"] is None


class TestCycleUpdates:
    def test_close_cycle(self, ledger, ledger_world, test_actor_id):
        closed = ledger.close_cycle(ledger_world.cycle.id, test_actor_id)
        assert closed.status == "closed"
        assert ledger.close_cycle(ledger_world.cycle.id, test_actor_id).status == "closed"

    def test_close_unknown_cycle(self, ledger, db_tables, test_actor_id):
        with pytest.raises(CycleNotFoundError):
            ledger.close_cycle(uuid4(), test_actor_id)

    def test_closed_cycle_is_frozen(self, ledger, funding, ledger_world, test_actor_id):
        cycle_id = ledger_world.cycle.id
        ledger.close_cycle(cycle_id, test_actor_id)

        with pytest.raises(CycleClosedError):
            funding.add_state_allocation(cycle_id, "Khartoum", Decimal("10"), test_actor_id)
        with pytest.raises(CycleClosedError):
            ledger.amend_state_allocation(
                cycle_id, ledger_world.allocation.id, Decimal("1"), test_actor_id
            )
        with pytest.raises(CycleClosedError):
            ledger.delete_state_allocation(
                cycle_id, ledger_world.jazirah_allocation.id, test_actor_id
            )

    def test_closed_cycle_rejects_inclusion(
        self, ledger, funding, session, ledger_world, test_actor_id
    ):
        cycle = funding.create_cycle("Cycle 2 / 2024", 2024, 2, "one_off", test_actor_id)
        session.commit()
        ledger.close_cycle(cycle.id, test_actor_id)
        with pytest.raises(CycleClosedError) as exc_info:
            funding.include_grant(cycle.id, ledger_world.grant.id, Decimal("10"), test_actor_id)
        assert "is closed" in str(exc_info.value)

    def test_closed_cycle_rejects_project_allocation(
        self, ledger, ledger_world, make_project, test_actor_id
    ):
        project = make_project(status="unassigned")
        ledger.close_cycle(ledger_world.cycle.id, test_actor_id)
        with pytest.raises(CycleClosedError):
            ledger.allocate_project(project.id, ledger_world.allocation.id, test_actor_id)

    def test_reopen(self, ledger, funding, ledger_world, test_actor_id):
        ledger.close_cycle(ledger_world.cycle.id, test_actor_id)
        reopened = ledger.update_cycle(ledger_world.cycle.id, test_actor_id, status="open")
        assert reopened.status == "open"
        added = funding.add_state_allocation(
            ledger_world.cycle.id, "Khartoum", Decimal("10"), test_actor_id, decision_no=2
        )
        assert added.amount == Decimal("10")

    def test_unknown_status(self, ledger, ledger_world, test_actor_id):
        with pytest.raises(InvalidCycleStatusError):
            ledger.update_cycle(ledger_world.cycle.id, test_actor_id, status="archived")
        assert ledger.get_cycle(ledger_world.cycle.id).status == "open"

    def test_rename(self, ledger, ledger_world, test_actor_id):
        info = ledger.update_cycle(ledger_world.cycle.id, test_actor_id, name="Cycle 1 (revised)")
        assert info.name == "Cycle 1 (revised)"
        assert (info.type, info.tranche_count) == ("one_off", None)

    def test_change_shape(self, ledger, ledger_world, test_actor_id):
        cycle_id = ledger_world.cycle.id
        with pytest.raises(InvalidCycleTypeError):
            ledger.update_cycle(cycle_id, test_actor_id, cycle_type="tranches")

        info = ledger.update_cycle(cycle_id, test_actor_id, cycle_type="tranches", tranche_count=2)
        assert (info.type, info.tranche_count) == ("tranches", 2)
        ledger.set_tranche(cycle_id, 2, test_actor_id, planned_cap=Decimal("500"))

        info = ledger.update_cycle(cycle_id, test_actor_id, cycle_type="emergency")
        assert (info.type, info.tranche_count) == ("emergency", None)
        assert ledger.list_tranches(cycle_id) == []


class TestAllocationChanges:
    def test_amend(self, ledger, ledger_world, test_actor_id):
        amended = ledger.amend_state_allocation(
            ledger_world.cycle.id, ledger_world.allocation.id, "60000", test_actor_id
        )
        assert amended.amount == Decimal("60000")
        budget = ledger.compute_cycle_budget(ledger_world.cycle.id)
        assert budget.state_allocated == Decimal("80000")
        assert budget.unallocated == Decimal("0")

    @pytest.mark.parametrize("amount", ["0", "-1", "lots"])
    def test_amend_amount_positive(self, ledger, ledger_world, test_actor_id, amount):
        with pytest.raises(InvalidAmountError):
            ledger.amend_state_allocation(
                ledger_world.cycle.id, ledger_world.allocation.id, amount, test_actor_id
            )

    def test_allocation_must_belong_to_cycle(
        self, ledger, funding, session, ledger_world, test_actor_id
    ):
        other = funding.create_cycle("Cycle 2 / 2024", 2024, 2, "one_off", test_actor_id)
        session.commit()
        with pytest.raises(StateAllocationNotFoundError):
            ledger.amend_state_allocation(
                other.id, ledger_world.allocation.id, Decimal("1"), test_actor_id
            )
        with pytest.raises(StateAllocationNotFoundError):
            ledger.delete_state_allocation(other.id, uuid4(), test_actor_id)

    def test_delete_refused_with_committed_projects(
        self, ledger, session, ledger_world, make_project, test_actor_id
    ):
        project = make_project()
        with pytest.raises(AllocationHasCommittedProjectsError) as exc_info:
            ledger.delete_state_allocation(
                ledger_world.cycle.id, ledger_world.allocation.id, test_actor_id
            )
        assert str(exc_info.value).startswith("Cannot delete allocation")
        assert exc_info.value.project_ids == [str(project.id)]
        assert session.get(StateAllocation, ledger_world.allocation.id) is not None

    def test_delete_releases_allocated_projects(
        self, ledger, session, ledger_world, make_project, test_actor_id, captured_logs
    ):
        project = make_project(
            status="allocated",
            state="Al Jazirah",
            allocation_id=ledger_world.jazirah_allocation.id,
        )

        released = ledger.delete_state_allocation(
            ledger_world.cycle.id, ledger_world.jazirah_allocation.id, test_actor_id
        )

        assert released == 1
        row = session.get(Workplan, project.id)
        assert (row.funding_status, row.state_allocation_id) == ("unassigned", None)
        assert session.get(StateAllocation, ledger_world.jazirah_allocation.id) is None
        [event] = [r for r in captured_logs() if r["message"] == "state_allocation_deleted"]
        assert event["released_count"] == 1


class TestTranches:
    @pytest.fixture
    def tranche_cycle(self, funding, session, db_tables, test_actor_id):
        cycle = funding.create_cycle(
            "Tranche cycle", 2025, 1, "tranches", test_actor_id, tranche_count=3
        )
        session.commit()
        return cycle

    def test_new_tranche_defaults(self, ledger, tranche_cycle, test_actor_id):
        tranche = ledger.set_tranche(tranche_cycle.id, 2, test_actor_id)
        assert tranche.tranche_no == 2
        assert (tranche.planned_cap, tranche.status) == (Decimal("0"), "closed")

    def test_update_keeps_omitted_fields(self, ledger, tranche_cycle, test_actor_id):
        ledger.set_tranche(tranche_cycle.id, 1, test_actor_id, planned_cap="2500", status="open")
        tranche = ledger.set_tranche(tranche_cycle.id, 1, test_actor_id, planned_cap="3000")
        assert (tranche.planned_cap, tranche.status) == (Decimal("3000"), "open")

    def test_listed_in_order(self, ledger, tranche_cycle, test_actor_id):
        for no in (3, 1, 2):
            ledger.set_tranche(tranche_cycle.id, no, test_actor_id, planned_cap=no * 100)
        tranches = ledger.list_tranches(tranche_cycle.id)
        assert [t.tranche_no for t in tranches] == [1, 2, 3]
        assert tranches[0].planned_cap == Decimal("100")

    @pytest.mark.parametrize("tranche_no", [0, 4])
    def test_number_within_count(self, ledger, tranche_cycle, test_actor_id, tranche_no):
        with pytest.raises(InvalidAmountError):
            ledger.set_tranche(tranche_cycle.id, tranche_no, test_actor_id)

    def test_cap_and_status_validated(self, ledger, tranche_cycle, test_actor_id):
        with pytest.raises(InvalidAmountError):
            ledger.set_tranche(tranche_cycle.id, 1, test_actor_id, planned_cap="-1")
        with pytest.raises(InvalidCycleStatusError):
            ledger.set_tranche(tranche_cycle.id, 1, test_actor_id, status="paused")
        assert ledger.list_tranches(tranche_cycle.id) == []

    def test_only_tranche_cycles(self, ledger, ledger_world, test_actor_id):
        with pytest.raises(InvalidCycleTypeError):
            ledger.set_tranche(ledger_world.cycle.id, 1, test_actor_id)

    def test_closed_cycle(self, ledger, tranche_cycle, test_actor_id):
        ledger.close_cycle(tranche_cycle.id, test_actor_id)
        with pytest.raises(CycleClosedError):
            ledger.set_tranche(tranche_cycle.id, 1, test_actor_id, planned_cap="10")

    def test_reduced_count_drops_tranches(self, ledger, tranche_cycle, test_actor_id):
        for no in (1, 2, 3):
            ledger.set_tranche(tranche_cycle.id, no, test_actor_id)
        ledger.update_cycle(tranche_cycle.id, test_actor_id, tranche_count=2)
        assert [t.tranche_no for t in ledger.list_tranches(tranche_cycle.id)] == [1, 2]
