import asyncio
import random
from datetime import date

import pytest

from factories import FakeStore, RecordingSink, make_card, make_deck, make_question
from recall.errors import NotFoundError, SchedulingError, SessionStateError
from recall.models.content import ContentKind, ReviewGrade
from recall.models.review import SessionStatus
from recall.services.review_session import ReviewSession, ReviewSessionState, SessionRegistry

pytestmark = pytest.mark.unit

TODAY = date(2026, 3, 10)


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def session_for(store, sink=None, **kwargs):
    kwargs.setdefault("today", TODAY)
    kwargs.setdefault("rng", random.Random(1))
    return ReviewSession(store, sink or RecordingSink(), **kwargs)


def test_queue_orders_unscheduled_first_then_oldest_due():
    store = FakeStore(
        make_deck(),
        [
            make_card("c0", 0, due_date=date(2026, 3, 9)),
            make_card("c1", 1),
            make_card("c2", 2, due_date=date(2026, 3, 1)),
            make_card("c3", 3, due_date=date(2026, 3, 20)),
            make_card("c4", 4),
        ],
    )
    session = session_for(store)
    asyncio.run(session.start("deck-1"))
    assert [i.id for i in session.state.queue] == ["c1", "c4", "c2", "c0"]
    assert session.status is SessionStatus.PRESENTING
    assert session.current.id == "c1"
    assert store.studied == ["deck-1"]


def test_cram_queues_every_item():
    store = FakeStore(make_deck(), [make_card("c0", due_date=date(2026, 5, 1))])
    session = session_for(store)
    asyncio.run(session.start("deck-1", cram=True))
    assert session.view().total == 1


def test_unknown_deck():
    with pytest.raises(NotFoundError):
        asyncio.run(session_for(FakeStore()).start("missing"))


def test_empty_queue_completes_immediately():
    sink = RecordingSink()
    store = FakeStore(make_deck(), [make_card("c0", due_date=date(2026, 4, 1))])
    session = session_for(store, sink)
    asyncio.run(session.start("deck-1"))
    assert session.status is SessionStatus.COMPLETE
    assert session.current is None
    assert len(sink.sessions) == 1
    assert sink.sessions[0].reviewed == 0


def test_grading_walks_the_queue_and_persists():
    sink = RecordingSink()
    clock = Clock()
    store = FakeStore(
        make_deck(),
        [make_card("c0", 0), make_card("c1", 1, tags=(), interval=6, ease_factor=2.5, repetitions=2)],
    )
    session = session_for(store, sink, clock=clock)

    async def scenario():
        await session.start("deck-1")
        await session.grade(ReviewGrade.GOOD)
        clock.now += 12.5
        await session.grade("easy")

    asyncio.run(scenario())

    assert session.status is SessionStatus.COMPLETE
    (id0, u0), (id1, u1) = store.updates
    assert (id0, u0.interval, u0.ease_factor, u0.repetitions) == ("c0", 1, 2.5, 1)
    assert u0.due_date == date(2026, 3, 11)
    assert u0.last_reviewed == TODAY
    assert (id1, u1.interval, u1.ease_factor, u1.repetitions) == ("c1", 20, 2.65, 3)

    assert [a.topic for a in sink.attempts] == ["#cells", "Uncategorized"]
    assert all(a.is_correct for a in sink.attempts)
    (event,) = sink.sessions
    assert event.type is ContentKind.FLASHCARDS
    assert event.duration_ms == 12500
    assert event.topics_covered == ["#cells", "Uncategorized"]
    assert not event.cancelled
    assert session.summary().accuracy == 100.0
    assert session.summary().remaining == 0


def test_again_counts_as_incorrect_for_cards():
    sink = RecordingSink()
    session = session_for(FakeStore(make_deck(), [make_card("c0")]), sink)

    async def scenario():
        await session.start("deck-1")
        await session.grade("again")

    asyncio.run(scenario())
    assert sink.attempts[0].is_correct is False
    assert session.summary().accuracy == 0.0


def test_quiz_is_shuffled_once_and_judged_by_selected_option():
    sink = RecordingSink()
    deck = make_deck(ContentKind.QUIZ)
    store = FakeStore(deck, [make_question("q0", 0), make_question("q1", 1)])
    session = session_for(store, sink, rng=random.Random(5))

    async def scenario():
        await session.start("deck-1")
        shown = session.current
        assert session.current is shown
        assert shown.correct_option == "gamma"
        await session.grade("good", selected_index=shown.correct_index)
        wrong = (session.current.correct_index + 1) % 4
        await session.grade("good", selected_index=wrong)

    asyncio.run(scenario())
    assert [a.is_correct for a in sink.attempts] == [True, False]
    assert session.summary().correct == 1


def test_grading_outside_presenting_is_rejected():
    session = session_for(FakeStore(make_deck(), [make_card("c0")]))
    with pytest.raises(SessionStateError):
        asyncio.run(session.grade("good"))

    async def finish():
        await session.start("deck-1")
        await session.grade("good")
        await session.grade("good")

    with pytest.raises(SessionStateError):
        asyncio.run(finish())


def test_concurrent_grade_is_rejected_while_persisting():
    class SlowStore(FakeStore):
        async def update_schedule(self, item, update):
            await asyncio.sleep(0.01)
            await super().update_schedule(item, update)

    store = SlowStore(make_deck(), [make_card("c0"), make_card("c1", 1)])
    session = session_for(store)

    async def scenario():
        await session.start("deck-1")
        return await asyncio.gather(
            session.grade("good"), session.grade("good"), return_exceptions=True
        )

    first, second = asyncio.run(scenario())
    assert not isinstance(first, Exception)
    assert isinstance(second, SessionStateError)
    assert len(store.updates) == 1


def test_unknown_grade_leaves_session_presenting():
    session = session_for(FakeStore(make_deck(), [make_card("c0")]))
    asyncio.run(session.start("deck-1"))
    with pytest.raises(SchedulingError):
        asyncio.run(session.grade("meh"))
    assert session.status is SessionStatus.PRESENTING


def test_persistence_failure_keeps_current_item():
    store = FakeStore(make_deck(), [make_card("c0"), make_card("c1", 1)])
    session = session_for(store)
    asyncio.run(session.start("deck-1"))
    store.fail_updates = True
    with pytest.raises(RuntimeError):
        asyncio.run(session.grade("good"))
    assert session.status is SessionStatus.PRESENTING
    assert session.current.id == "c0"
    assert session.summary().reviewed == 0


def test_analytics_failure_is_swallowed():
    store = FakeStore(make_deck(), [make_card("c0")])
    session = session_for(store, RecordingSink(fail=True))

    async def scenario():
        await session.start("deck-1")
        await session.grade("good")

    asyncio.run(scenario())
    assert session.status is SessionStatus.COMPLETE
    assert len(store.updates) == 1


def test_cancel_keeps_graded_items_only():
    sink = RecordingSink()
    store = FakeStore(make_deck(), [make_card("c0"), make_card("c1", 1), make_card("c2", 2)])
    session = session_for(store, sink)

    async def scenario():
        await session.start("deck-1")
        await session.grade("hard")
        await session.cancel()

    asyncio.run(scenario())
    assert session.status is SessionStatus.CANCELLED
    assert [item_id for item_id, _ in store.updates] == ["c0"]
    assert sink.sessions[0].cancelled
    assert sink.sessions[0].reviewed == 1
    assert session.summary().remaining == 2
    with pytest.raises(SessionStateError):
        asyncio.run(session.cancel())


def test_state_survives_rebuilding_the_controller():
    store = FakeStore(make_deck(ContentKind.QUIZ), [make_question("q0"), make_question("q1", 1)])
    state = ReviewSessionState()
    first = session_for(store, state=state, rng=random.Random(9))
    asyncio.run(first.start("deck-1"))
    shown = first.current

    second = session_for(store, state=state, rng=random.Random(1234))
    assert second.current.options == shown.options
    asyncio.run(second.grade("good", selected_index=shown.correct_index))
    assert second.view().position == 1


def test_registry():
    registry = SessionRegistry()
    state = ReviewSessionState()
    registry.add(state)
    assert registry.get(state.id) is state
    registry.discard(state.id)
    with pytest.raises(NotFoundError):
        registry.get(state.id)


def test_registry_evicts_least_recently_used():
    registry = SessionRegistry(max_sessions=2)
    first, second, third = ReviewSessionState(), ReviewSessionState(), ReviewSessionState()
    registry.add(first)
    registry.add(second)
    registry.get(first.id)
    registry.add(third)
    assert len(registry) == 2
    assert first.id in registry
    assert second.id not in registry
    assert third.id in registry
