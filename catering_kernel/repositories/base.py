"""
BaseRepository -- common constructor and session contract for repositories.

Invariants enforced:
    Repositories flush within the caller's transaction and never commit or
    roll back.  The caller (job, application service or test) owns the
    transaction boundary.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseRepository(ABC):
    """
    Abstract base class for SQLAlchemy-backed repositories.

    Guarantees:
        - ``session.commit()`` / ``session.rollback()`` are never called here.
        - Reads return frozen domain values, never ORM instances.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name
