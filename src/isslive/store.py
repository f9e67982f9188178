"""Bounded per-key sample history backed by the stream_data table.

Every write is an insert followed by a prune of the same key. The two steps
run as separate transactions: the insert is committed before anything is
deleted, so a failed or interrupted prune only delays cap enforcement until
the next insert for that key.

Reads and writes each use their own session from the pool. Concurrency is left
to the database (WAL mode on SQLite), so readers never queue behind the
ingest writer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from itertools import groupby
from typing import TypeVar

import structlog
from sqlalchemy import and_, delete, func, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from isslive.catalog import EMPTY_DESCRIPTOR, Descriptor
from isslive.db import Database
from isslive.models import StreamSample

logger = structlog.get_logger()

RETENTION_CAP = 100

# Range of an SQLite INTEGER column.
MIN_TIMESTAMP = -(2**63)
MAX_TIMESTAMP = 2**63 - 1

T = TypeVar("T")


class StorageUnavailable(RuntimeError):
    """Raised when the sample table cannot be read or written."""


class KeyNotFound(LookupError):
    """Raised when no samples exist for a key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No data found for key: {key}")
        self.key = key


@dataclass(frozen=True)
class InsertResult:
    inserted: bool


@dataclass(frozen=True)
class SampleValue:
    value: str | None
    timestamp: int
    id: int


@dataclass(frozen=True)
class KeySeries:
    key: str
    descriptor: Descriptor
    values: list[SampleValue] = field(default_factory=list)


@dataclass(frozen=True)
class LatestSample:
    key: str
    value: str | None
    timestamp: int
    descriptor: Descriptor


@dataclass(frozen=True)
class KeyInfo:
    key: str
    descriptor: Descriptor


def _descriptor(row: StreamSample) -> Descriptor:
    return Descriptor(
        description=row.description or "",
        ops_nom=row.ops_nom or "",
        eng_nom=row.eng_nom or "",
        units=row.units or "",
        min_value=row.min_value or "",
        max_value=row.max_value or "",
        enum_values=row.enum_values or "",
        format_spec=row.format_spec or "",
    )


def _sample_value(row: StreamSample) -> SampleValue:
    return SampleValue(value=row.value, timestamp=row.timestamp, id=row.id)


def _error_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _is_missing_table(exc: SQLAlchemyError) -> bool:
    return isinstance(exc, OperationalError) and "no such table" in _error_message(exc).lower()


def _newest_first():
    return (StreamSample.timestamp.desc(), StreamSample.id.desc())


class RetentionStore:
    """Durable store keeping the most recent ``retention_cap`` samples per key."""

    def __init__(self, database: Database, retention_cap: int = RETENTION_CAP) -> None:
        if retention_cap < 1:
            raise ValueError("retention_cap must be at least 1")
        self.database = database
        self.retention_cap = retention_cap

    def create_schema(self) -> None:
        self.database.create_schema()

    def _run(self, operation: Callable[[Session], T]) -> T:
        """Run one operation in its own transaction, recreating a missing table once."""
        try:
            with self.database.session_scope() as session:
                return operation(session)
        except SQLAlchemyError as e:
            if not _is_missing_table(e):
                raise StorageUnavailable(_error_message(e)) from e
            logger.warning("Sample table missing, recreating schema", error=_error_message(e))

        try:
            self.database.create_schema()
            with self.database.session_scope() as session:
                return operation(session)
        except SQLAlchemyError as e:
            raise StorageUnavailable(_error_message(e)) from e

    # Writes

    def insert(
        self,
        key: str,
        value: str | None,
        timestamp: int,
        descriptor: Descriptor | None = None,
    ) -> InsertResult:
        """Persist one sample; a repeated (key, timestamp) is a no-op."""
        if not key:
            raise ValueError("key must be non-empty")
        if not MIN_TIMESTAMP <= int(timestamp) <= MAX_TIMESTAMP:
            raise ValueError(f"timestamp out of range: {timestamp}")
        descriptor = descriptor or EMPTY_DESCRIPTOR
        row = {"key": key, "value": value, "timestamp": int(timestamp), **descriptor.as_dict()}

        def _insert(session: Session) -> bool:
            try:
                session.execute(insert(StreamSample).values(**row))
            except IntegrityError:
                session.rollback()
                return False
            return True

        inserted = self._run(_insert)
        if inserted:
            self.prune(key)
        else:
            logger.debug("Duplicate sample ignored", key=key, timestamp=timestamp)
        return InsertResult(inserted=inserted)

    def prune(self, key: str) -> int:
        """Delete the oldest samples of ``key`` beyond the cap. Never raises."""
        excess = (
            select(StreamSample.id)
            .where(StreamSample.key == key)
            .order_by(*_newest_first())
            .offset(self.retention_cap)
        )

        def _delete(session: Session) -> int:
            result = session.execute(
                delete(StreamSample)
                .where(StreamSample.id.in_(excess))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

        try:
            deleted = self._run(_delete)
        except StorageUnavailable as e:
            logger.error("Error pruning old data", key=key, error=str(e))
            return 0

        if deleted:
            logger.debug("Pruned samples", key=key, deleted=deleted)
        return deleted

    # Reads

    def get_all(self) -> list[KeySeries]:
        """Every stored key with its samples, newest first.

        Keys sort by SQLite binary collation, so code-point order rather than locale order.
        """

        def _query(session: Session) -> list[KeySeries]:
            rows = session.scalars(select(StreamSample).order_by(StreamSample.key, *_newest_first())).all()
            series = []
            for key, group in groupby(rows, key=lambda row: row.key):
                key_rows = list(group)
                series.append(
                    KeySeries(
                        key=key,
                        descriptor=_descriptor(key_rows[0]),
                        values=[_sample_value(row) for row in key_rows],
                    )
                )
            return series

        return self._run(_query)

    def get_by_key(self, key: str) -> KeySeries:
        def _query(session: Session) -> list[StreamSample]:
            return list(
                session.scalars(select(StreamSample).where(StreamSample.key == key).order_by(*_newest_first())).all()
            )

        rows = self._run(_query)
        if not rows:
            raise KeyNotFound(key)
        return KeySeries(key=key, descriptor=_descriptor(rows[0]), values=[_sample_value(row) for row in rows])

    def _latest_rows(self) -> list[StreamSample]:
        latest = (
            select(StreamSample.key, func.max(StreamSample.timestamp).label("max_timestamp"))
            .group_by(StreamSample.key)
            .subquery()
        )
        stmt = (
            select(StreamSample)
            .join(latest, and_(StreamSample.key == latest.c.key, StreamSample.timestamp == latest.c.max_timestamp))
            .order_by(StreamSample.key)
        )
        return self._run(lambda session: list(session.scalars(stmt).all()))

    def get_latest(self) -> dict[str, LatestSample]:
        return {
            row.key: LatestSample(key=row.key, value=row.value, timestamp=row.timestamp, descriptor=_descriptor(row))
            for row in self._latest_rows()
        }

    def list_keys(self) -> list[KeyInfo]:
        """Stored keys with the descriptor of each key's most recent sample."""
        return [KeyInfo(key=row.key, descriptor=_descriptor(row)) for row in self._latest_rows()]

    def count(self, key: str | None = None) -> int:
        stmt = select(func.count(StreamSample.id))
        if key is not None:
            stmt = stmt.where(StreamSample.key == key)
        return self._run(lambda session: session.scalar(stmt) or 0)

    def counts_by_key(self) -> dict[str, int]:
        stmt = select(StreamSample.key, func.count(StreamSample.id)).group_by(StreamSample.key).order_by(StreamSample.key)
        return self._run(lambda session: {key: total for key, total in session.execute(stmt).all()})
