"""Tests for GrantSequenceService and SerialAllocator."""

from uuid import uuid4

import pytest

from grants_kernel.domain.settings import LedgerSettings
from grants_kernel.exceptions import (
    GrantNotFoundError,
    InvalidAmountError,
    InvalidMonthYearError,
)
from grants_kernel.models import Grant
from grants_kernel.services.sequence_service import GrantSequenceService
from grants_kernel.services.serial_allocator import SerialAllocator

STATE = "Khartoum"


class _Target:
    def __init__(self, state):
        self.id = uuid4()
        self.state = state


class TestGrantSequenceService:
    def test_new_grant_starts_at_zero(self, session, ledger_world):
        assert GrantSequenceService(session).current_value(ledger_world.grant.id) == 0

    def test_increment_reserves_contiguous_block(self, session, ledger_world, test_actor_id):
        service = GrantSequenceService(session)
        assert service.increment(ledger_world.grant.id, 3, test_actor_id) == (0, 3)
        assert service.increment(ledger_world.grant.id, 2, test_actor_id) == (3, 5)
        assert session.get(Grant, ledger_world.grant.id).max_workplan_sequence == 5

    @pytest.mark.parametrize("count", [0, -1, True, 1.5])
    def test_rejects_bad_count(self, session, ledger_world, count):
        with pytest.raises(InvalidAmountError):
            GrantSequenceService(session).increment(ledger_world.grant.id, count)

    def test_unknown_grant(self, session, db_tables):
        with pytest.raises(GrantNotFoundError):
            GrantSequenceService(session).increment(uuid4(), 1)

    def test_logs_block(self, session, ledger_world, captured_logs):
        GrantSequenceService(session).increment(ledger_world.grant.id, 4)
        logs = [r for r in captured_logs() if r["message"] == "sequence_block_reserved"]
        assert logs and logs[-1]["old_max"] == 0 and logs[-1]["new_max"] == 4


class TestSerialAllocator:
    def test_allocate_uses_each_project_state(self, session, ledger_world, test_actor_id):
        allocator = SerialAllocator(session, LedgerSettings())
        targets = [_Target(STATE), _Target("Al Jazirah"), _Target("North Darfur"), _Target(None)]

        assignments = allocator.allocate(ledger_world.grant.id, "GRF", targets, "0824", test_actor_id)

        assert [a.serial for a in assignments] == [
            "LCC-GRF-KH-0824-0001",
            "LCC-GRF-AJ-0824-0002",
            "LCC-GRF-XX-0824-0003",
            "LCC-GRF-XX-0824-0004",
        ]
        assert [a.project_id for a in assignments] == [t.id for t in targets]

    def test_alias_resolves_to_short_code(self, session, ledger_world):
        allocator = SerialAllocator(
            session, LedgerSettings(state_aliases={"Al Jazeera": "Al Jazirah"})
        )
        assert allocator.state_code("Al Jazeera") == "AJ"
        assert allocator.state_code(" khartoum ") == "KH"

    def test_custom_placeholder(self, session, ledger_world):
        allocator = SerialAllocator(session, LedgerSettings(placeholder_state_code="ZZ"))
        assert allocator.state_code("Unknown State") == "ZZ"

    def test_preview_persists_nothing(self, session, ledger_world):
        allocator = SerialAllocator(session)
        GrantSequenceService(session).increment(ledger_world.grant.id, 6)

        preview = allocator.preview(ledger_world.grant.id, "GRF", [_Target(STATE)], "0824")

        assert preview[0].serial == "LCC-GRF-KH-0824-0007"
        assert GrantSequenceService(session).current_value(ledger_world.grant.id) == 6

    def test_empty_allocation_does_not_touch_counter(self, session, ledger_world):
        assert SerialAllocator(session).allocate(ledger_world.grant.id, "GRF", [], "0824") == []
        assert GrantSequenceService(session).current_value(ledger_world.grant.id) == 0

    def test_invalid_mmyy_before_any_write(self, session, ledger_world):
        with pytest.raises(InvalidMonthYearError):
            SerialAllocator(session).allocate(ledger_world.grant.id, "GRF", [_Target(STATE)], "1399")
        assert GrantSequenceService(session).current_value(ledger_world.grant.id) == 0
