"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service in the kernel.  Services persist with ``session.flush()`` and
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    Transaction boundaries belong to the caller (GrantLedgerService or a
    test harness).  A service may open savepoints with
    ``session.begin_nested()`` but never commits or rolls back the outer
    transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from grants_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Accepts the caller's session; flushes within the active transaction."""

    def __init__(self, session: Session):
        self.session = session
