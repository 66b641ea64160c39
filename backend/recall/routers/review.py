"""
Review session router.

Endpoints:
  POST   /review/sessions              start a session over a deck's due items
  GET    /review/sessions/{sid}        current item and progress
  POST   /review/sessions/{sid}/grade  grade the current item and advance
  DELETE /review/sessions/{sid}        abandon the session

A session that completes or is cancelled is forgotten once its final view has
been returned; later calls for it answer 404.
"""
from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from recall.db.sqlite import SQLiteReviewStore, get_db
from recall.errors import NotFoundError, SchedulingError, SessionStateError
from recall.models.review import GradeRequest, SessionStart, SessionStatus, SessionView
from recall.services.analytics import SQLiteAnalyticsSink
from recall.services.review_session import (
    ReviewSession,
    ReviewSessionState,
    review_sessions,
)

router = APIRouter()


def _load(session_id: str, db: aiosqlite.Connection) -> ReviewSession:
    try:
        state = review_sessions.get(session_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _bind(state, db)


def _bind(state: ReviewSessionState, db: aiosqlite.Connection) -> ReviewSession:
    return ReviewSession(SQLiteReviewStore(db), SQLiteAnalyticsSink(db), state=state)


def _respond(session: ReviewSession) -> SessionView:
    """Render the session; a finished one is unregistered once its final view is built."""
    view = session.view()
    if session.status in (SessionStatus.COMPLETE, SessionStatus.CANCELLED):
        review_sessions.discard(session.state.id)
    return view


@router.post("/sessions", response_model=SessionView, status_code=201)
async def start_session(
    body: SessionStart,
    db: aiosqlite.Connection = Depends(get_db),
) -> SessionView:
    session = _bind(ReviewSessionState(), db)
    try:
        await session.start(body.deck_id, cram=body.cram)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    review_sessions.add(session.state)
    return _respond(session)


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(
    session_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> SessionView:
    return _respond(_load(session_id, db))


@router.post("/sessions/{session_id}/grade", response_model=SessionView)
async def grade_current(
    session_id: str,
    body: GradeRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> SessionView:
    session = _load(session_id, db)
    try:
        await session.grade(body.grade, body.selected_index)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except SchedulingError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _respond(session)


@router.delete("/sessions/{session_id}", response_model=SessionView)
async def cancel_session(
    session_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> SessionView:
    session = _load(session_id, db)
    if session.status in (SessionStatus.IDLE, SessionStatus.PRESENTING):
        await session.cancel()
    review_sessions.discard(session_id)
    return session.view()
