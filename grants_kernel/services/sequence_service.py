"""
GrantSequenceService -- per-grant serial sequence blocks.

Responsibility:
    Reserves a contiguous block of workplan sequence numbers on a grant's
    ``max_workplan_sequence`` counter.  The grant row owns its counter;
    there is no separate counter table.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by SerialAllocator during assign and reassign.

Invariants enforced:
    - Monotonicity: the counter only moves up.  There is no decrement
      method, and numbers issued to a project whose write later failed are
      never handed out again.
    - Atomicity: the grant row is locked with ``SELECT ... FOR UPDATE`` and
      the increment is computed in SQL (``col = col + :count``), so two
      concurrent blocks can never overlap even where FOR UPDATE is a no-op.
    - The block is only visible to others after the caller commits.  If the
      caller rolls back, the block is returned with it.

Failure modes:
    - GrantNotFoundError: grant id does not exist.
    - InvalidAmountError: count < 1.
    - SequenceInvariantError: the re-read counter did not advance by count.

Audit relevance:
    Each reservation logs ``sequence_block_reserved`` with grant_id, old_max
    and new_max.
"""

from uuid import UUID

from sqlalchemy import select, update

from grants_kernel.exceptions import (
    GrantNotFoundError,
    InvalidAmountError,
    SequenceInvariantError,
)
from grants_kernel.logging_config import get_logger
from grants_kernel.models import Grant
from grants_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class GrantSequenceService(BaseService[Grant]):
    """
    Issues blocks of sequence numbers from a grant's counter.

    Usage:
        old_max, new_max = GrantSequenceService(session).increment(grant_id, 3)
        # numbers old_max + 1 .. new_max now belong to the caller
    """

    def increment(
        self,
        grant_id: UUID,
        count: int,
        actor_id: UUID | None = None,
    ) -> tuple[int, int]:
        """
        Reserve ``count`` numbers on the grant counter.

        Preconditions:
            - The caller is inside an active transaction.
        Postconditions:
            - Returns (old_max, new_max) with new_max == old_max + count.
            - The grant row stays locked until the caller's transaction ends.

        Raises:
            InvalidAmountError: count < 1.
            GrantNotFoundError: no grant with this id.
            SequenceInvariantError: the counter failed to advance by count.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidAmountError("count", count)

        locked = self.session.execute(
            select(Grant.max_workplan_sequence)
            .where(Grant.id == grant_id)
            .with_for_update()
        ).scalar_one_or_none()
        if locked is None:
            raise GrantNotFoundError(str(grant_id))

        values = {"max_workplan_sequence": Grant.max_workplan_sequence + count}
        if actor_id is not None:
            values["updated_by_id"] = actor_id
        self.session.execute(
            update(Grant)
            .where(Grant.id == grant_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        grant = self.session.execute(
            select(Grant)
            .where(Grant.id == grant_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        new_max = grant.max_workplan_sequence
        old_max = new_max - count

        # INVARIANT: the counter advanced by exactly count from the locked value
        if old_max != locked:
            raise SequenceInvariantError(str(grant_id), locked, new_max, count)

        logger.info(
            "sequence_block_reserved",
            extra={
                "grant_id": str(grant_id),
                "old_max": old_max,
                "new_max": new_max,
                "count": count,
            },
        )
        return old_max, new_max

    def current_value(self, grant_id: UUID) -> int:
        """
        Read the counter without locking.  For previews only.

        Raises:
            GrantNotFoundError: no grant with this id.
        """
        value = self.session.execute(
            select(Grant.max_workplan_sequence).where(Grant.id == grant_id)
        ).scalar_one_or_none()
        if value is None:
            raise GrantNotFoundError(str(grant_id))
        return value
