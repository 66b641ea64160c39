import json
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

import aiosqlite

from recall.config import settings
from recall.errors import UnsupportedContentKindError
from recall.models.content import ContentKind
from recall.models.deck import Deck
from recall.models.flashcard import Card, CardUpdate, GeneratedFlashcard
from recall.models.quiz import GeneratedQuestion, QuizQuestion
from recall.models.review import ScheduleUpdate
from recall.models.schedule import MASTERED_INTERVAL

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS decks (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL,
    kind         TEXT NOT NULL,
    description  TEXT DEFAULT '',
    last_studied TEXT,
    created_at   TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS cards (
    id            TEXT PRIMARY KEY,
    deck_id       TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    position      INTEGER NOT NULL DEFAULT 0,
    front         TEXT NOT NULL,
    back          TEXT NOT NULL,
    difficulty    TEXT NOT NULL DEFAULT 'normal',
    tags          TEXT NOT NULL DEFAULT '[]',
    interval      REAL NOT NULL DEFAULT 0,
    ease_factor   REAL NOT NULL DEFAULT 2.5,
    repetitions   INTEGER NOT NULL DEFAULT 0,
    due_date      TEXT,
    last_reviewed TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_cards_deck ON cards(deck_id, position);
CREATE INDEX IF NOT EXISTS idx_cards_due ON cards(due_date);

CREATE TABLE IF NOT EXISTS quiz_questions (
    id            TEXT PRIMARY KEY,
    quiz_id       TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    position      INTEGER NOT NULL DEFAULT 0,
    stem          TEXT NOT NULL,
    options       TEXT NOT NULL,
    correct_index INTEGER NOT NULL,
    explanation   TEXT NOT NULL DEFAULT '',
    difficulty    TEXT NOT NULL DEFAULT 'normal',
    type          TEXT NOT NULL DEFAULT '',
    tags          TEXT NOT NULL DEFAULT '[]',
    interval      REAL NOT NULL DEFAULT 0,
    ease_factor   REAL NOT NULL DEFAULT 2.5,
    repetitions   INTEGER NOT NULL DEFAULT 0,
    due_date      TEXT,
    last_reviewed TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_questions_quiz ON quiz_questions(quiz_id, position);
CREATE INDEX IF NOT EXISTS idx_questions_due ON quiz_questions(due_date);

CREATE TABLE IF NOT EXISTS activity_log (
    id          TEXT PRIMARY KEY,
    deck_id     TEXT REFERENCES decks(id) ON DELETE SET NULL,
    item_id     TEXT,
    action_type TEXT NOT NULL,
    topic       TEXT DEFAULT '',
    detail      TEXT DEFAULT '{}',
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_deck ON activity_log(deck_id);
CREATE INDEX IF NOT EXISTS idx_activity_time ON activity_log(created_at);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""

# kind -> (table, parent id column)
_ITEM_TABLES = {
    ContentKind.FLASHCARDS: ("cards", "deck_id"),
    ContentKind.QUIZ: ("quiz_questions", "quiz_id"),
}

_DECK_SELECT = f"""
SELECT d.*,
       (SELECT COUNT(*) FROM cards c WHERE c.deck_id = d.id)
     + (SELECT COUNT(*) FROM quiz_questions q WHERE q.quiz_id = d.id) AS item_count,
       (SELECT COUNT(*) FROM cards c WHERE c.deck_id = d.id AND c.interval > {MASTERED_INTERVAL})
     + (SELECT COUNT(*) FROM quiz_questions q
        WHERE q.quiz_id = d.id AND q.interval > {MASTERED_INTERVAL}) AS mastered
FROM decks d
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _item_table(kind: ContentKind) -> tuple[str, str]:
    try:
        return _ITEM_TABLES[ContentKind(kind)]
    except KeyError as e:
        raise UnsupportedContentKindError(f"No storage for {kind} items") from e


def _row_to_deck(row: aiosqlite.Row) -> Deck:
    return Deck(**dict(row))


def _row_to_card(row: aiosqlite.Row) -> Card:
    d = dict(row)
    d["tags"] = json.loads(d["tags"] or "[]")
    return Card(**d)


def _row_to_question(row: aiosqlite.Row) -> QuizQuestion:
    d = dict(row)
    d["options"] = json.loads(d["options"])
    d["tags"] = json.loads(d["tags"] or "[]")
    return QuizQuestion(**d)


def _row_to_item(kind: ContentKind, row: aiosqlite.Row) -> Card | QuizQuestion:
    return _row_to_card(row) if kind is ContentKind.FLASHCARDS else _row_to_question(row)


# --- Decks ---


async def get_deck(db: aiosqlite.Connection, deck_id: str) -> Deck | None:
    cursor = await db.execute(_DECK_SELECT + " WHERE d.id = ?", (deck_id,))
    row = await cursor.fetchone()
    return _row_to_deck(row) if row else None


async def list_decks(
    db: aiosqlite.Connection,
    kind: ContentKind | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Deck], int]:
    if kind:
        count_cursor = await db.execute("SELECT COUNT(*) FROM decks WHERE kind = ?", (kind.value,))
        cursor = await db.execute(
            _DECK_SELECT + " WHERE d.kind = ? ORDER BY d.created_at DESC LIMIT ? OFFSET ?",
            (kind.value, limit, offset),
        )
    else:
        count_cursor = await db.execute("SELECT COUNT(*) FROM decks")
        cursor = await db.execute(
            _DECK_SELECT + " ORDER BY d.created_at DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
    total = (await count_cursor.fetchone())[0]
    rows = await cursor.fetchall()
    return [_row_to_deck(r) for r in rows], total


async def delete_deck(db: aiosqlite.Connection, deck_id: str) -> bool:
    cursor = await db.execute("DELETE FROM decks WHERE id = ?", (deck_id,))
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def mark_deck_studied(db: aiosqlite.Connection, deck_id: str) -> None:
    now = _now()
    await db.execute(
        "UPDATE decks SET last_studied = ?, updated_at = ? WHERE id = ?",
        (now, now, deck_id),
    )
    await db.commit()


async def _insert_card(
    db: aiosqlite.Connection, deck_id: str, position: int, card: GeneratedFlashcard, now: str
) -> None:
    await db.execute(
        """INSERT INTO cards
           (id, deck_id, position, front, back, difficulty, tags,
            interval, ease_factor, repetitions, due_date, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            str(uuid.uuid4()),
            deck_id,
            position,
            card.front,
            card.back,
            card.difficulty.value,
            json.dumps(card.tags),
            card.interval,
            card.ease_factor,
            card.repetitions,
            card.due_date.isoformat() if card.due_date else None,
            now,
            now,
        ),
    )


async def _insert_question(
    db: aiosqlite.Connection, quiz_id: str, position: int, q: GeneratedQuestion, now: str
) -> None:
    await db.execute(
        """INSERT INTO quiz_questions
           (id, quiz_id, position, stem, options, correct_index, explanation,
            difficulty, type, tags, interval, ease_factor, repetitions, due_date,
            created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            str(uuid.uuid4()),
            quiz_id,
            position,
            q.stem,
            json.dumps(q.options),
            q.correct_index,
            q.explanation,
            q.difficulty.value,
            q.type,
            json.dumps(q.tags),
            q.interval,
            q.ease_factor,
            q.repetitions,
            q.due_date.isoformat() if q.due_date else None,
            now,
            now,
        ),
    )


async def save_generated_deck(
    db: aiosqlite.Connection,
    name: str,
    kind: ContentKind,
    items: Sequence[GeneratedFlashcard | GeneratedQuestion],
    description: str = "",
) -> Deck:
    """Insert a deck and all of its items in one transaction."""
    kind = ContentKind(kind)
    _item_table(kind)
    deck_id = str(uuid.uuid4())
    now = _now()
    try:
        await db.execute(
            """INSERT INTO decks (id, name, kind, description, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (deck_id, name, kind.value, description, now, now),
        )
        for position, item in enumerate(items):
            if isinstance(item, GeneratedFlashcard) and kind is ContentKind.FLASHCARDS:
                await _insert_card(db, deck_id, position, item, now)
            elif isinstance(item, GeneratedQuestion) and kind is ContentKind.QUIZ:
                await _insert_question(db, deck_id, position, item, now)
            else:
                raise UnsupportedContentKindError(
                    f"Item {position} does not belong in a {kind.value} deck"
                )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return await get_deck(db, deck_id)  # type: ignore[return-value]


async def save_flashcard_deck(
    db: aiosqlite.Connection, name: str, cards: Sequence[GeneratedFlashcard], description: str = ""
) -> Deck:
    return await save_generated_deck(db, name, ContentKind.FLASHCARDS, cards, description)


async def save_quiz_deck(
    db: aiosqlite.Connection, name: str, questions: Sequence[GeneratedQuestion], description: str = ""
) -> Deck:
    return await save_generated_deck(db, name, ContentKind.QUIZ, questions, description)


# --- Items ---


async def list_deck_items(
    db: aiosqlite.Connection, deck: Deck
) -> list[Card] | list[QuizQuestion]:
    table, parent = _item_table(deck.kind)
    cursor = await db.execute(
        f"SELECT * FROM {table} WHERE {parent} = ? ORDER BY position ASC",  # noqa: S608
        (deck.id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_item(deck.kind, r) for r in rows]


async def get_due_items(
    db: aiosqlite.Connection,
    deck: Deck,
    as_of: date,
    include_all: bool = False,
) -> list[Card] | list[QuizQuestion]:
    """Items due on or before `as_of` (never-scheduled first), oldest due date first."""
    if include_all:
        return await list_deck_items(db, deck)
    table, parent = _item_table(deck.kind)
    cursor = await db.execute(
        f"""SELECT * FROM {table}
            WHERE {parent} = ? AND (due_date IS NULL OR due_date <= ?)
            ORDER BY COALESCE(due_date, '0000') ASC, position ASC""",  # noqa: S608
        (deck.id, as_of.isoformat()),
    )
    rows = await cursor.fetchall()
    return [_row_to_item(deck.kind, r) for r in rows]


async def get_card(db: aiosqlite.Connection, card_id: str) -> Card | None:
    cursor = await db.execute("SELECT * FROM cards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return _row_to_card(row) if row else None


async def get_question(db: aiosqlite.Connection, question_id: str) -> QuizQuestion | None:
    cursor = await db.execute("SELECT * FROM quiz_questions WHERE id = ?", (question_id,))
    row = await cursor.fetchone()
    return _row_to_question(row) if row else None


async def update_card_content(
    db: aiosqlite.Connection,
    card_id: str,
    update: CardUpdate,
) -> Card | None:
    card = await get_card(db, card_id)
    if not card:
        return None
    new_front = update.front if update.front is not None else card.front
    new_back = update.back if update.back is not None else card.back
    await db.execute(
        "UPDATE cards SET front = ?, back = ?, updated_at = ? WHERE id = ?",
        (new_front, new_back, _now(), card_id),
    )
    await db.commit()
    return await get_card(db, card_id)


async def update_item_schedule(
    db: aiosqlite.Connection,
    kind: ContentKind,
    item_id: str,
    update: ScheduleUpdate,
) -> bool:
    """Write one graded item's schedule fields in a single transaction."""
    table, _ = _item_table(kind)
    cursor = await db.execute(
        f"""UPDATE {table}
            SET interval = ?, ease_factor = ?, repetitions = ?, due_date = ?,
                last_reviewed = ?, updated_at = ?
            WHERE id = ?""",  # noqa: S608
        (
            update.interval,
            update.ease_factor,
            update.repetitions,
            update.due_date.isoformat(),
            update.last_reviewed.isoformat(),
            _now(),
            item_id,
        ),
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


# --- Activity / stats ---


async def insert_activity(
    db: aiosqlite.Connection,
    action_type: str,
    deck_id: str | None = None,
    item_id: str | None = None,
    topic: str = "",
    detail: dict[str, Any] | None = None,
) -> None:
    await db.execute(
        """INSERT INTO activity_log (id, deck_id, item_id, action_type, topic, detail, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            str(uuid.uuid4()),
            deck_id,
            item_id,
            action_type,
            topic,
            json.dumps(detail or {}),
            _now(),
        ),
    )
    await db.commit()


async def list_activity(
    db: aiosqlite.Connection, deck_id: str | None = None, limit: int = 100
) -> list[dict[str, Any]]:
    if deck_id:
        cursor = await db.execute(
            "SELECT * FROM activity_log WHERE deck_id = ? ORDER BY created_at DESC LIMIT ?",
            (deck_id, limit),
        )
    else:
        cursor = await db.execute(
            "SELECT * FROM activity_log ORDER BY created_at DESC LIMIT ?", (limit,)
        )
    rows = await cursor.fetchall()
    out = []
    for row in rows:
        d = dict(row)
        d["detail"] = json.loads(d["detail"] or "{}")
        out.append(d)
    return out


async def get_review_stats(db: aiosqlite.Connection, as_of: date | None = None) -> dict:
    """Return total items, due count, mastered count, and per-deck breakdown."""
    today = (as_of or date.today()).isoformat()
    cursor = await db.execute(
        """SELECT d.id, d.name, d.kind, COUNT(i.id) AS total,
                  SUM(CASE WHEN i.id IS NOT NULL AND (i.due_date IS NULL OR i.due_date <= ?)
                      THEN 1 ELSE 0 END) AS due,
                  SUM(CASE WHEN i.interval > ? THEN 1 ELSE 0 END) AS mastered
           FROM decks d
           LEFT JOIN (
               SELECT id, deck_id AS parent, due_date, interval FROM cards
               UNION ALL
               SELECT id, quiz_id AS parent, due_date, interval FROM quiz_questions
           ) i ON i.parent = d.id
           GROUP BY d.id
           ORDER BY d.name ASC""",
        (today, MASTERED_INTERVAL),
    )
    rows = await cursor.fetchall()
    per_deck = [
        {
            "deck_id": row[0],
            "name": row[1],
            "kind": row[2],
            "total": row[3],
            "due": row[4] or 0,
            "mastered": row[5] or 0,
        }
        for row in rows
    ]
    return {
        "total_items": sum(d["total"] for d in per_deck),
        "due_today": sum(d["due"] for d in per_deck),
        "mastered": sum(d["mastered"] for d in per_deck),
        "per_deck": per_deck,
    }


class SQLiteReviewStore:
    """Persistence capability used by the review session, backed by one connection."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def get_deck(self, deck_id: str) -> Deck | None:
        return await get_deck(self.db, deck_id)

    async def get_due_items(
        self, deck: Deck, as_of: date, include_all: bool = False
    ) -> list[Card] | list[QuizQuestion]:
        return await get_due_items(self.db, deck, as_of, include_all)

    async def update_schedule(self, item: Card | QuizQuestion, update: ScheduleUpdate) -> None:
        await update_item_schedule(self.db, ContentKind(item.kind), item.id, update)

    async def mark_studied(self, deck_id: str) -> None:
        await mark_deck_studied(self.db, deck_id)
