"""
Module: cellar_kernel.selectors.base
Responsibility: Base class for read-side query objects.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/.

Invariants enforced:
    - Selectors never add, delete, flush or commit.  Row locks taken with
      SELECT ... FOR UPDATE are reads and are allowed.
    - The caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Read-only access over a caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
