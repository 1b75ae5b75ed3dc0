"""SQLAlchemy models."""

from searchgate.models.base import Base
from searchgate.models.record import GateRecord

__all__ = ["Base", "GateRecord"]
