"""
SerialAllocator -- turns a grant counter block into serial ids.

Responsibility:
    Builds ``LCC-{Donor}-{State}-{MMYY}-{Seq:04d}`` serials for an ordered
    list of projects.  ``allocate()`` reserves the numbers through
    GrantSequenceService inside the caller's transaction; ``preview()``
    computes the same values from an unlocked read and persists nothing.

Architecture position:
    Kernel > Services.  Used by AssignmentService and by the read-only
    preview operation.

Invariants enforced:
    - The i-th project gets sequence old_max + i, in input order.
    - Each serial carries that project's own state code.  A state with no
      mapping gets the placeholder code (default "XX"); this is not an error.
    - A preview is never authoritative.  Committing always re-derives.

Failure modes:
    - InvalidMonthYearError before any read or write.
    - Anything GrantSequenceService raises.
"""

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from grants_kernel.domain.dtos import SerialAssignment
from grants_kernel.domain.serial import plan_serials, validate_mmyy
from grants_kernel.domain.settings import LedgerSettings
from grants_kernel.logging_config import get_logger
from grants_kernel.models import Grant
from grants_kernel.selectors.reference_selector import ReferenceSelector
from grants_kernel.services.base import BaseService
from grants_kernel.services.sequence_service import GrantSequenceService

logger = get_logger("services.serial_allocator")


class SerialTarget(Protocol):
    """Anything with a project id and a state (Workplan rows, ProjectInfo)."""

    id: UUID
    state: str | None


class SerialAllocator(BaseService[Grant]):
    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        super().__init__(session)
        self._settings = settings or LedgerSettings()
        self._references = ReferenceSelector(session, self._settings.state_aliases)
        self._sequences = GrantSequenceService(session)

    def state_code(self, state_name: str | None) -> str:
        code = self._references.state_short_code(state_name)
        return code or self._settings.placeholder_state_code

    def _build(
        self,
        donor_code: str,
        projects: Sequence[SerialTarget],
        mmyy: str,
        start_after: int,
    ) -> list[SerialAssignment]:
        state_codes = [self.state_code(p.state) for p in projects]
        serials = plan_serials(donor_code, state_codes, mmyy, start_after)
        return [
            SerialAssignment(
                project_id=project.id,
                serial=serial.render(),
                sequence=serial.sequence,
                state_code=serial.state_code,
            )
            for project, serial in zip(projects, serials)
        ]

    def preview(
        self,
        grant_id: UUID,
        donor_code: str,
        projects: Sequence[SerialTarget],
        mmyy: str,
    ) -> list[SerialAssignment]:
        """Serials the next allocate() would issue, given no concurrent writer."""
        validate_mmyy(mmyy)
        current = self._sequences.current_value(grant_id)
        return self._build(donor_code, projects, mmyy, current)

    def allocate(
        self,
        grant_id: UUID,
        donor_code: str,
        projects: Sequence[SerialTarget],
        mmyy: str,
        actor_id: UUID | None = None,
    ) -> list[SerialAssignment]:
        """Reserve one number per project and return the serials in project order."""
        validate_mmyy(mmyy)
        if not projects:
            return []

        old_max, new_max = self._sequences.increment(grant_id, len(projects), actor_id)
        assignments = self._build(donor_code, projects, mmyy, old_max)

        logger.info(
            "serials_allocated",
            extra={
                "grant_id": str(grant_id),
                "count": len(assignments),
                "first_sequence": old_max + 1,
                "last_sequence": new_max,
                "mmyy": mmyy,
            },
        )
        return assignments
