"""
Module: billing_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ DTOs.  Selectors never add, delete, flush or commit; the caller
    owns the session and its transaction.  They return DTOs, not ORM rows.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Read-only access through a caller-owned session."""

    def __init__(self, session: Session):
        self.session = session
