"""
Module: grants_kernel.models.reference
Responsibility: Read-only lookup of state name to the short code used in serials.
Architecture position: Kernel > Models.  May import from db/base.py only.

A state with no row here is not an error: serials fall back to the
configured placeholder code.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import TrackedBase


class StateReference(TrackedBase):
    __tablename__ = "state_references"

    __table_args__ = (
        UniqueConstraint("state_name", name="uq_state_reference_name"),
    )

    state_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    short_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StateReference {self.state_name} -> {self.short_code}>"
