"""Database helpers for FIRMS ingestion."""

from __future__ import annotations

from typing import Any, Dict, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    create_engine,
    func,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from firms_ingest.config import settings as ingest_settings

metadata = MetaData()

firms_focos = Table(
    "firms_focos",
    metadata,
    Column("id_firms", Text, nullable=False),
    Column("satellite", Text, nullable=True),
    Column("acq_datetime_utc", DateTime(timezone=True), nullable=False),
    Column("brightness", Float, nullable=True),
    Column("confidence", Text, nullable=True),
    Column("frp", Float, nullable=True),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("ingested_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    PrimaryKeyConstraint("id_firms", "acq_datetime_utc", name="firms_focos_pkey"),
)

NATURAL_KEY = (firms_focos.c.id_firms, firms_focos.c.acq_datetime_utc)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Create (or memoize) the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(ingest_settings.database_url, pool_pre_ping=True, future=True)
    return _engine


def create_schema(engine: Engine | None = None) -> None:
    """Create the detections table if it does not exist yet."""
    metadata.create_all(engine or get_engine(), tables=[firms_focos])


def _insert_for(engine: Engine):
    if engine.dialect.name == "postgresql":
        return postgresql.insert(firms_focos)
    if engine.dialect.name == "sqlite":
        return sqlite.insert(firms_focos)
    raise NotImplementedError(f"Unsupported database dialect: {engine.dialect.name}")


class SqlDetectionStore:
    """`DetectionStore` backed by the `firms_focos` table."""

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def insert_ignoring_conflicts(self, rows: Sequence[Dict[str, Any]]) -> int:
        """Bulk insert one chunk in its own transaction and return the inserted count."""
        if not rows:
            return 0

        stmt = (
            _insert_for(self.engine)
            .values(list(rows))
            .on_conflict_do_nothing(index_elements=list(NATURAL_KEY))
            .returning(firms_focos.c.id_firms)
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
            inserted = len(result.fetchall())

        return inserted
