"""
BaseService -- base for session-bound payroll services.

Services receive a SQLAlchemy ``Session`` and persist with
``session.flush()`` only; the caller owns commit and rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Holds the caller's session. Never commits or rolls back."""

    def __init__(self, session: Session):
        self.session = session
