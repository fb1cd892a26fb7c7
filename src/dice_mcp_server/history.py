from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import DateTime, Integer, String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import RollOutcome


log = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class RollRecord(Base):
    __tablename__ = "roll_history"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[str] = mapped_column(String(128), index=True)
    expression: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Text, not Integer: products of large rolls overflow 64-bit columns.
    total: Mapped[str] = mapped_column(Text)
    breakdown: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


@dataclass(frozen=True)
class RollEntry:
    expression: str
    description: str | None
    total: int
    breakdown: str
    timestamp: datetime

    def as_dict(self) -> dict[str, object]:
        return {
            "expression": self.expression,
            "description": self.description,
            "total": self.total,
            "breakdown": self.breakdown,
            "timestamp": self.timestamp.replace(microsecond=0).isoformat(),
        }


def _to_entry(record: RollRecord) -> RollEntry:
    timestamp = record.created_at
    # SQLite hands back naive datetimes
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return RollEntry(
        expression=record.expression,
        description=record.description,
        total=int(record.total),
        breakdown=record.breakdown,
        timestamp=timestamp,
    )


class RollHistory:
    """Stores successful rolls per client, keeping the newest ``max_entries``."""

    def __init__(self, database_url: str, max_entries: int = 100) -> None:
        kwargs: dict[str, object] = {}
        if database_url.startswith("sqlite"):
            kwargs.update(connect_args={"check_same_thread": False})
            # In-memory DBs need one shared connection so the schema persists
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                kwargs.update(poolclass=StaticPool)

        self.max_entries = max_entries
        self._engine = create_engine(database_url, **kwargs)
        self._sessionmaker = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        log.info("history.ready", dialect=self._engine.dialect.name, max_entries=max_entries)

    def _session(self) -> Session:
        return self._sessionmaker()

    def record(
        self, client_id: str, outcome: RollOutcome, description: str | None = None
    ) -> RollEntry:
        with self._session() as s, s.begin():
            row = RollRecord(
                client_id=client_id,
                expression=outcome.expression,
                description=description,
                total=str(outcome.total),
                breakdown=outcome.breakdown,
            )
            s.add(row)
            s.flush()

            # Newest id past the retained window; it and everything older go.
            cutoff = s.scalar(
                select(RollRecord.id)
                .where(RollRecord.client_id == client_id)
                .order_by(RollRecord.id.desc())
                .offset(self.max_entries)
                .limit(1)
            )
            pruned = 0
            if cutoff is not None:
                pruned = s.execute(
                    delete(RollRecord).where(
                        RollRecord.client_id == client_id,
                        RollRecord.id <= cutoff,
                    ),
                    execution_options={"synchronize_session": False},
                ).rowcount
            entry = _to_entry(row)

        if pruned:
            log.debug("history.pruned", client_id=client_id, rows=pruned)
        return entry

    def recent(self, client_id: str, limit: int = 10) -> list[RollEntry]:
        with self._session() as s:
            rows = s.scalars(
                select(RollRecord)
                .where(RollRecord.client_id == client_id)
                .order_by(RollRecord.id.desc())
                .limit(limit)
            ).all()
            return [_to_entry(r) for r in rows]

    def clear(self, client_id: str) -> int:
        with self._session() as s, s.begin():
            return s.execute(delete(RollRecord).where(RollRecord.client_id == client_id)).rowcount

    def close(self) -> None:
        self._engine.dispose()
