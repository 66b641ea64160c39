"""
Review session controller.

    IDLE --start--> PRESENTING --grade--> GRADED --> PRESENTING (more items)
                                                 --> COMPLETE   (queue exhausted)
    IDLE | PRESENTING --cancel--> CANCELLED

All mutable progress lives in ReviewSessionState, so a controller can be
rebuilt around a stored state on every request. Grading is strictly
sequential; a grade arriving while the previous one is still persisting
finds the session in GRADED and is rejected.
"""
from __future__ import annotations

import logging
import random
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from recall.config import settings
from recall.errors import NotFoundError, SessionStateError
from recall.models.content import ReviewGrade
from recall.models.deck import Deck
from recall.models.flashcard import Card
from recall.models.quiz import QuizQuestion
from recall.models.review import (
    AttemptEvent,
    ScheduleUpdate,
    SessionEvent,
    SessionStatus,
    SessionSummary,
    SessionView,
)
from recall.services import analytics as analytics_
from recall.services.randomizer import shuffle_options
from recall.services.scheduler import ScheduleResult, schedule

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


class ReviewStore(Protocol):
    async def get_deck(self, deck_id: str) -> Deck | None: ...

    async def get_due_items(
        self, deck: Deck, as_of: date, include_all: bool = False
    ) -> list[Card] | list[QuizQuestion]: ...

    async def update_schedule(self, item: Card | QuizQuestion, update: ScheduleUpdate) -> None: ...

    async def mark_studied(self, deck_id: str) -> None: ...


@dataclass
class ReviewSessionState:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: SessionStatus = SessionStatus.IDLE
    deck: Deck | None = None
    queue: list[Card | QuizQuestion] = field(default_factory=list)
    cursor: int = 0
    # question id -> shuffled view, so a question is shuffled at most once
    shuffled: dict[str, QuizQuestion] = field(default_factory=dict)
    reviewed: int = 0
    correct: int = 0
    started_at: float | None = None
    topics: list[str] = field(default_factory=list)


def _queue_key(item: Card | QuizQuestion) -> tuple[bool, date]:
    # Never-scheduled items first, then oldest due date
    return (item.due_date is not None, item.due_date or date.min)


def _topic(item: Card | QuizQuestion) -> str:
    return item.tags[0] if item.tags else UNCATEGORIZED


class ReviewSession:
    def __init__(
        self,
        store: ReviewStore,
        analytics: analytics_.AnalyticsSink,
        *,
        state: ReviewSessionState | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        today: date | None = None,
        max_interval: float | None = None,
    ) -> None:
        self.store = store
        self.analytics = analytics
        self.state = state or ReviewSessionState()
        self.rng = rng or random.Random()
        self.clock = clock
        self._today = today
        self.max_interval = max_interval if max_interval is not None else settings.max_interval_days

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    async def start(self, deck_id: str, as_of: date | None = None, cram: bool = False) -> None:
        """Load the deck's due items (every item when `cram`) and present the first."""
        state = self.state
        if state.status is not SessionStatus.IDLE:
            raise SessionStateError(f"Session already {state.status.value}")

        deck = await self.store.get_deck(deck_id)
        if deck is None:
            raise NotFoundError(f"Deck not found: {deck_id}")
        items = await self.store.get_due_items(deck, as_of or self.today, include_all=cram)
        await self.store.mark_studied(deck.id)

        state.deck = deck
        state.queue = sorted(items, key=_queue_key)
        state.cursor = 0
        state.started_at = self.clock()
        logger.info("Review session %s started: deck=%s items=%d", state.id, deck.id, len(state.queue))

        if state.queue:
            state.status = SessionStatus.PRESENTING
        else:
            await self._finish(SessionStatus.COMPLETE)

    @property
    def current(self) -> Card | QuizQuestion | None:
        """The presented item; quiz questions come back with their options shuffled once."""
        state = self.state
        if state.status not in (SessionStatus.PRESENTING, SessionStatus.GRADED):
            return None
        item = state.queue[state.cursor]
        if isinstance(item, QuizQuestion):
            if item.id not in state.shuffled:
                state.shuffled[item.id] = shuffle_options(item, self.rng)
            return state.shuffled[item.id]
        return item

    async def grade(
        self, grade: ReviewGrade | str, selected_index: int | None = None
    ) -> ScheduleResult:
        state = self.state
        if state.status is not SessionStatus.PRESENTING:
            raise SessionStateError(f"Cannot grade while session is {state.status.value}")

        item = self.current
        assert item is not None
        result = schedule(item, grade, today=self.today, max_interval=self.max_interval)
        grade = ReviewGrade(grade)

        state.status = SessionStatus.GRADED
        update = ScheduleUpdate(
            interval=result.interval,
            ease_factor=result.ease_factor,
            due_date=result.next_review_date,
            repetitions=item.repetitions + 1,
            last_reviewed=self.today,
        )
        try:
            await self.store.update_schedule(item, update)
        except Exception:
            state.status = SessionStatus.PRESENTING
            raise

        if isinstance(item, QuizQuestion) and selected_index is not None:
            is_correct = selected_index == item.correct_index
        else:
            is_correct = grade is not ReviewGrade.AGAIN

        topic = _topic(item)
        state.reviewed += 1
        state.correct += int(is_correct)
        if topic not in state.topics:
            state.topics.append(topic)
        state.queue[state.cursor] = state.queue[state.cursor].model_copy(update=update.model_dump())

        await analytics_.record(
            self.analytics.log_attempt,
            AttemptEvent(
                question_id=item.id,
                topic=topic,
                is_correct=is_correct,
                difficulty=item.difficulty,
                deck_id=state.deck.id if state.deck else None,
                grade=grade,
            ),
        )

        state.cursor += 1
        if state.cursor < len(state.queue):
            state.status = SessionStatus.PRESENTING
        else:
            await self._finish(SessionStatus.COMPLETE)
        return result

    async def cancel(self) -> None:
        """Abandon the session; graded items keep their new schedule, the rest are untouched."""
        if self.state.status not in (SessionStatus.IDLE, SessionStatus.PRESENTING):
            raise SessionStateError(f"Cannot cancel a {self.state.status.value} session")
        await self._finish(SessionStatus.CANCELLED)

    async def _finish(self, status: SessionStatus) -> None:
        state = self.state
        state.status = status
        if state.deck is None:
            return
        started = state.started_at if state.started_at is not None else self.clock()
        event = SessionEvent(
            type=state.deck.kind,
            duration_ms=max(0, int((self.clock() - started) * 1000)),
            topics_covered=list(state.topics),
            deck_id=state.deck.id,
            reviewed=state.reviewed,
            correct=state.correct,
            cancelled=status is SessionStatus.CANCELLED,
        )
        logger.info(
            "Review session %s %s: reviewed=%d correct=%d",
            state.id, status.value, state.reviewed, state.correct,
        )
        await analytics_.record(self.analytics.log_session, event)

    def summary(self) -> SessionSummary:
        state = self.state
        return SessionSummary(
            reviewed=state.reviewed,
            correct=state.correct,
            remaining=max(0, len(state.queue) - state.cursor),
            accuracy=round(state.correct / state.reviewed * 100, 1) if state.reviewed else 0.0,
        )

    def view(self) -> SessionView:
        state = self.state
        return SessionView(
            id=state.id,
            deck_id=state.deck.id if state.deck else None,
            status=state.status,
            position=state.cursor,
            total=len(state.queue),
            current=self.current,
            summary=self.summary(),
        )


class SessionRegistry:
    """In-memory review sessions for the single local user, keyed by session id.

    Holds at most `max_sessions` states; adding one more evicts the least
    recently used.
    """

    def __init__(self, max_sessions: int | None = None) -> None:
        self._sessions: OrderedDict[str, ReviewSessionState] = OrderedDict()
        self.max_sessions = max_sessions if max_sessions is not None else settings.max_review_sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add(self, state: ReviewSessionState) -> None:
        self._sessions[state.id] = state
        self._sessions.move_to_end(state.id)
        while len(self._sessions) > max(1, self.max_sessions):
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("Evicted review session %s", evicted)

    def get(self, session_id: str) -> ReviewSessionState:
        try:
            state = self._sessions[session_id]
        except KeyError as e:
            raise NotFoundError(f"Review session not found: {session_id}") from e
        self._sessions.move_to_end(session_id)
        return state

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


review_sessions = SessionRegistry()
