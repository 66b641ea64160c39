from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

import aiosqlite

from recall.db.sqlite import insert_activity
from recall.models.review import AttemptEvent, SessionEvent

logger = logging.getLogger(__name__)

E = TypeVar("E", AttemptEvent, SessionEvent)


class AnalyticsSink(Protocol):
    async def log_attempt(self, event: AttemptEvent) -> None: ...

    async def log_session(self, event: SessionEvent) -> None: ...


class SQLiteAnalyticsSink:
    """Records attempts and sessions in the activity_log table."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def log_attempt(self, event: AttemptEvent) -> None:
        await insert_activity(
            self.db,
            "attempt",
            deck_id=event.deck_id,
            item_id=event.question_id,
            topic=event.topic,
            detail=event.model_dump(mode="json", exclude={"deck_id", "question_id", "topic"}),
        )

    async def log_session(self, event: SessionEvent) -> None:
        await insert_activity(
            self.db,
            "session",
            deck_id=event.deck_id,
            topic=", ".join(event.topics_covered),
            detail=event.model_dump(mode="json", exclude={"deck_id"}),
        )


class LoggingAnalyticsSink:
    async def log_attempt(self, event: AttemptEvent) -> None:
        logger.info("attempt %s", event.model_dump(mode="json"))

    async def log_session(self, event: SessionEvent) -> None:
        logger.info("session %s", event.model_dump(mode="json"))


async def record(log: Callable[[E], Awaitable[None]], event: E) -> None:
    """Send `event` to an analytics call; failures are logged, never raised."""
    try:
        await log(event)
    except Exception as e:
        logger.warning("Analytics %s dropped: %s", type(event).__name__, e)
