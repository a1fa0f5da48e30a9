"""
Module: grants_kernel.selectors.reference_selector
Responsibility: Short-code lookups used to build serials.
Architecture position: Kernel > Selectors.

A missing state mapping returns None; the serial allocator substitutes the
configured placeholder.  A missing donor short code is the caller's error
to raise.
"""

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from grants_kernel.domain.aggregates import normalize_state
from grants_kernel.models import Donor, StateReference
from grants_kernel.selectors.base import BaseSelector


class ReferenceSelector(BaseSelector[StateReference]):
    def __init__(self, session: Session, state_aliases: Mapping[str, str] | None = None):
        super().__init__(session)
        self._aliases = state_aliases or {}

    def donor_short_code(self, donor_id: UUID) -> str | None:
        donor = self.session.get(Donor, donor_id)
        if donor is None or not donor.short_code:
            return None
        return donor.short_code.strip() or None

    def state_short_code(self, state_name: str | None) -> str | None:
        """Short code for a state, matching alias-normalized names case-insensitively."""
        normalized = normalize_state(state_name, self._aliases)
        if normalized is None:
            return None
        return self.session.execute(
            select(StateReference.short_code).where(
                func.lower(StateReference.state_name) == normalized.lower()
            )
        ).scalars().first()
