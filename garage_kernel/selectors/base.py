"""
Module: garage_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the read path into the persistence layer: they translate ORM rows into
    frozen domain DTOs and never mutate data.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.  MUST NOT import from engines, services, or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), delete(),
      commit(), or flush().
    - DTO return convention: selectors return frozen dataclasses, NOT ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
    - Timestamps leave the selector timezone-aware; UTCDateTime columns
      normalize them on every backend.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from garage_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def parse_id(value: str | UUID) -> UUID | None:
        """Parse an external identifier; None if it cannot name a row."""
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError:
            return None
