"""
LinkageService -- adds and removes workplans on an MOU and keeps its
document in step.

Responsibility:
    Links freestanding committed workplans to an MOU, unlinks them, and
    regenerates the MOU's derived document (budget table, aggregated text,
    total) from whatever is linked afterwards.

Architecture position:
    Kernel > Services -- imperative shell.  The document itself is built by
    a DocumentAggregator from grants_kernel.domain.budget_rollup.

Invariants enforced:
    - Linkage never changes on an assigned MOU.  The check runs after the
      MOU row is locked, and the error is raised before any write.
    - Every change bumps document_revision under the same lock, in the same
      transaction as the regeneration.  Two editors of one MOU serialize.
    - Workplan rows are locked after the MOU row, so two MOUs racing for the
      same workplan serialize and the second sees it already linked.
    - total_amount is always the rollup's expense grand total.
    - Regenerating over unchanged workplans is byte-identical.

Failure modes:
    - MissingFieldError (empty id list), MouNotFoundError,
      MouAlreadyAssignedError, ProjectNotFoundError,
      ProjectAlreadyLinkedError, ProjectNotEligibleError.
"""

import json
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from grants_kernel.domain.budget_rollup import DocumentAggregator, MouDocumentAggregator
from grants_kernel.domain.dtos import LinkageResult
from grants_kernel.exceptions import (
    MissingFieldError,
    MouAlreadyAssignedError,
    MouNotFoundError,
    ProjectAlreadyLinkedError,
    ProjectNotEligibleError,
)
from grants_kernel.logging_config import LogContext, get_logger
from grants_kernel.models import ApprovalStatus, FundingStatus, Mou, Workplan
from grants_kernel.selectors.converters import rollup_project
from grants_kernel.selectors.ledger_selector import LedgerSelector, order_workplans
from grants_kernel.services.base import BaseService
from grants_kernel.services.project_service import ProjectService
from grants_kernel.utils.hashing import canonicalize_json

logger = get_logger("services.linkage")


def _dedupe(project_ids: Sequence[UUID]) -> list[UUID]:
    seen: list[UUID] = []
    for pid in project_ids:
        if pid not in seen:
            seen.append(pid)
    return seen


class LinkageService(BaseService[Mou]):
    def __init__(
        self,
        session: Session,
        aggregator: DocumentAggregator | None = None,
        project_service: ProjectService | None = None,
    ):
        super().__init__(session)
        self._aggregator = aggregator or MouDocumentAggregator()
        self._projects = project_service or ProjectService(session)
        self._selector = LedgerSelector(session)

    def _lock_unassigned_mou(self, mou_id: UUID, operation: str) -> Mou:
        mou = self.session.execute(
            select(Mou)
            .where(Mou.id == mou_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if mou is None:
            raise MouNotFoundError(str(mou_id))
        # INVARIANT: linkage is frozen once the MOU holds serials
        if self._selector.is_mou_assigned(mou_id):
            raise MouAlreadyAssignedError(str(mou_id), operation=operation)
        return mou

    def _regenerate(self, mou: Mou, actor_id: UUID, changed_count: int) -> LinkageResult:
        linked = order_workplans(
            list(
                self.session.execute(
                    select(Workplan).where(Workplan.mou_id == mou.id)
                ).scalars()
            )
        )
        document = self._aggregator.aggregate([rollup_project(w) for w in linked])

        mou.total_amount = document.total_amount
        mou.aggregated_objectives = document.objectives
        mou.aggregated_beneficiaries = document.beneficiaries_text
        mou.aggregated_activities = document.activities
        mou.locations = document.locations
        mou.beneficiary_total = document.beneficiary_total
        mou.budget_table = json.loads(canonicalize_json(document.budget.to_dict()))
        mou.document_checksum = document.checksum()
        mou.document_revision = (mou.document_revision or 0) + 1
        if document.state and not mou.state:
            mou.state = document.state
        mou.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "mou_document_regenerated",
            extra={
                "mou_id": str(mou.id),
                "project_count": len(linked),
                "changed_count": changed_count,
                "total_amount": str(document.total_amount),
                "document_revision": mou.document_revision,
                "checksum": mou.document_checksum,
            },
        )
        return LinkageResult(
            mou_id=mou.id,
            changed_count=changed_count,
            total_amount=document.total_amount,
            document=document,
            document_revision=mou.document_revision,
            checksum=mou.document_checksum,
        )

    def add_projects(
        self,
        mou_id: UUID,
        project_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> LinkageResult:
        """
        Link freestanding, committed, approved workplans to an unassigned MOU.

        All checks run before the first link is written; one bad id rejects
        the whole call.
        """
        ids = _dedupe(project_ids or ())
        if not ids:
            raise MissingFieldError("project_ids")

        with LogContext.bind(mou_id=str(mou_id), actor_id=str(actor_id)):
            mou = self._lock_unassigned_mou(mou_id, operation="add projects")
            projects = self._projects.get_many(ids, for_update=True)

            already_linked = [str(p.id) for p in projects if p.mou_id is not None]
            if already_linked:
                raise ProjectAlreadyLinkedError(already_linked)
            ineligible = [
                str(p.id)
                for p in projects
                if FundingStatus(p.funding_status) != FundingStatus.COMMITTED
                or ApprovalStatus(p.approval_status) != ApprovalStatus.APPROVED
            ]
            if ineligible:
                raise ProjectNotEligibleError(ineligible)

            for project in projects:
                self._projects.set_project_linkage(project.id, mou_id, actor_id)

            logger.info("mou_projects_added", extra={"project_count": len(projects)})
            return self._regenerate(mou, actor_id, changed_count=len(projects))

    def remove_projects(
        self,
        mou_id: UUID,
        project_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> LinkageResult:
        """
        Unlink workplans from an unassigned MOU.

        Ids that are not linked to this MOU are ignored; changed_count says
        how many were actually unlinked.
        """
        ids = _dedupe(project_ids or ())
        if not ids:
            raise MissingFieldError("project_ids")

        with LogContext.bind(mou_id=str(mou_id), actor_id=str(actor_id)):
            mou = self._lock_unassigned_mou(mou_id, operation="remove projects")
            linked = list(
                self.session.execute(
                    select(Workplan)
                    .where(Workplan.mou_id == mou_id, Workplan.id.in_(ids))
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalars()
            )
            removed = 0
            for project in linked:
                self._projects.set_project_linkage(project.id, None, actor_id)
                removed += 1

            logger.info("mou_projects_removed", extra={"project_count": removed})
            return self._regenerate(mou, actor_id, changed_count=removed)

    def regenerate(self, mou_id: UUID, actor_id: UUID) -> LinkageResult:
        """
        Rebuild the MOU document from its current workplans.

        Allowed on assigned MOUs; linkage is not touched.
        """
        mou = self.session.execute(
            select(Mou)
            .where(Mou.id == mou_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if mou is None:
            raise MouNotFoundError(str(mou_id))
        with LogContext.bind(mou_id=str(mou_id), actor_id=str(actor_id)):
            return self._regenerate(mou, actor_id, changed_count=0)
