"""Analysis Store: capped, newest-first list of analyses plus debounce markers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from fitcoach.coach.schemas.analysis import AnalysisResult
from fitcoach.state.db import get_session
from fitcoach.state.models import AnalysisMarkerRecord, AnalysisRecord

MAX_STORED_ANALYSES = 10


@dataclass(frozen=True)
class DebounceMarkers:
    last_analysis_at: datetime | None = None
    last_workout_count: int = 0


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AnalysisStore(Protocol):
    async def append(self, result: AnalysisResult) -> None: ...

    async def get_latest(self) -> AnalysisResult | None: ...

    async def get_all(self) -> list[AnalysisResult]: ...

    async def get_debounce_markers(self) -> DebounceMarkers: ...

    async def set_debounce_markers(self, timestamp: datetime, workout_count: int) -> None: ...


class InMemoryAnalysisStore:
    def __init__(self, max_items: int = MAX_STORED_ANALYSES) -> None:
        self.max_items = max_items
        self._results: list[AnalysisResult] = []
        self._markers = DebounceMarkers()

    async def append(self, result: AnalysisResult) -> None:
        self._results = [result, *self._results][: self.max_items]

    async def get_latest(self) -> AnalysisResult | None:
        return self._results[0] if self._results else None

    async def get_all(self) -> list[AnalysisResult]:
        return list(self._results)

    async def get_debounce_markers(self) -> DebounceMarkers:
        return self._markers

    async def set_debounce_markers(self, timestamp: datetime, workout_count: int) -> None:
        self._markers = DebounceMarkers(last_analysis_at=timestamp, last_workout_count=workout_count)


class SqlAnalysisStore:
    """SQLAlchemy-backed Analysis Store bound to one user.

    Session work runs in a worker thread, as in the SQL Plan Store.
    """

    def __init__(self, session_factory: sessionmaker[Session], user_id: str, max_items: int = MAX_STORED_ANALYSES):
        self._session_factory = session_factory
        self.user_id = user_id
        self.max_items = max_items

    def _append(self, result: AnalysisResult) -> None:
        with get_session(self._session_factory) as session:
            session.add(
                AnalysisRecord(
                    id=result.id,
                    user_id=self.user_id,
                    timestamp=result.timestamp,
                    payload=result.model_dump(mode="json", by_alias=True),
                )
            )
            session.flush()

            stale_ids = session.scalars(
                select(AnalysisRecord.id)
                .where(AnalysisRecord.user_id == self.user_id)
                .order_by(AnalysisRecord.timestamp.desc())
                .offset(self.max_items)
            ).all()
            if stale_ids:
                session.execute(delete(AnalysisRecord).where(AnalysisRecord.id.in_(stale_ids)))
                logger.debug("Trimmed stored analyses", user_id=self.user_id, removed=len(stale_ids))

    def _load_all(self) -> list[AnalysisResult]:
        with get_session(self._session_factory) as session:
            records = session.scalars(
                select(AnalysisRecord)
                .where(AnalysisRecord.user_id == self.user_id)
                .order_by(AnalysisRecord.timestamp.desc())
                .limit(self.max_items)
            ).all()
            return [AnalysisResult.model_validate(record.payload) for record in records]

    def _load_markers(self) -> DebounceMarkers:
        with get_session(self._session_factory) as session:
            record = session.get(AnalysisMarkerRecord, self.user_id)
            if record is None:
                return DebounceMarkers()
            return DebounceMarkers(
                last_analysis_at=_aware(record.last_analysis_at),
                last_workout_count=record.last_workout_count,
            )

    def _save_markers(self, timestamp: datetime, workout_count: int) -> None:
        with get_session(self._session_factory) as session:
            record = session.get(AnalysisMarkerRecord, self.user_id)
            if record is None:
                session.add(
                    AnalysisMarkerRecord(
                        user_id=self.user_id,
                        last_analysis_at=timestamp,
                        last_workout_count=workout_count,
                    )
                )
            else:
                record.last_analysis_at = timestamp
                record.last_workout_count = workout_count

    async def append(self, result: AnalysisResult) -> None:
        await asyncio.to_thread(self._append, result)

    async def get_all(self) -> list[AnalysisResult]:
        return await asyncio.to_thread(self._load_all)

    async def get_latest(self) -> AnalysisResult | None:
        results = await self.get_all()
        return results[0] if results else None

    async def get_debounce_markers(self) -> DebounceMarkers:
        return await asyncio.to_thread(self._load_markers)

    async def set_debounce_markers(self, timestamp: datetime, workout_count: int) -> None:
        await asyncio.to_thread(self._save_markers, timestamp, workout_count)
