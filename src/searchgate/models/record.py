"""Gate record model backing the SQL store."""

from sqlalchemy import Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from searchgate.models.base import Base


class GateRecord(Base):
    """
    One key-value row of the gatekeeper store.

    Tokens, rate windows and cached responses live side by side, separated
    by ``namespace``. ``value`` is a JSON document, ``expires_at`` is epoch
    seconds (NULL never expires) and ``revision`` changes on every write so
    conditional updates can detect concurrent writers.
    """

    __tablename__ = "gate_records"

    namespace: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
    )
    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    expires_at: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )
    revision: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    __table_args__ = (Index("ix_gate_records_namespace_expires_at", "namespace", "expires_at"),)

    def __repr__(self) -> str:
        return f"<GateRecord(namespace={self.namespace!r}, key={self.key!r}, revision={self.revision!r})>"
