"""
BaseService -- abstract base for kernel write-side services.

Services receive a SQLAlchemy ``Session`` from the caller and persist with
``session.flush()``.  They never commit or roll back: the allocation
orchestrator owns the transaction, so every write of a request lands or
none does.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
