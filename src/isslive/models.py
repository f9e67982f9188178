"""SQLAlchemy ORM models."""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class StreamSample(Base):
    """One observed value of a telemetry parameter.

    Descriptor columns are copied from the catalog when the row is written.
    """

    __tablename__ = "stream_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[str | None] = mapped_column(Text)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms, receipt time
    description: Mapped[str] = mapped_column(Text, default="")
    ops_nom: Mapped[str] = mapped_column(Text, default="")
    eng_nom: Mapped[str] = mapped_column(Text, default="")
    units: Mapped[str] = mapped_column(Text, default="")
    min_value: Mapped[str] = mapped_column(Text, default="")
    max_value: Mapped[str] = mapped_column(Text, default="")
    enum_values: Mapped[str] = mapped_column(Text, default="")
    format_spec: Mapped[str] = mapped_column(Text, default="")

    __table_args__ = (
        UniqueConstraint("key", "timestamp"),
        Index("idx_key", "key"),
        {"sqlite_autoincrement": True},
    )
