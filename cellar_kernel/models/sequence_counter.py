"""
Module: cellar_kernel.models.sequence_counter
Responsibility: Named monotonic counters backing human-readable codes
    (lot codes, blend codes, transfer codes).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - name is unique.  A counter row is incremented only while locked; the
      next value is never derived from max(existing codes) + 1.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from cellar_kernel.db.base import Base


class SequenceCounter(Base):
    """One row per named sequence, holding the last value handed out."""

    __tablename__ = "sequence_counters"

    # e.g. "lot:FERM:<tenant>:20260115", "lot:BLEND:<tenant>:2026"
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
