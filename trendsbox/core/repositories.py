"""Repository layer for database operations.

Every function takes the caller's ``user_id`` and only touches rows that
user owns. The usage counter is incremented with a single
``INSERT ... ON CONFLICT DO UPDATE`` so concurrent requests never lose
an update.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, desc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from trendsbox.core.models import HistoryItem, UsageCounter, Feedback
from trendsbox.core.logging import get_logger

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def get_usage_count(session: AsyncSession, user_id: str, day: date) -> int:
    """
    Generations already used by ``user_id`` on ``day``.

    Args:
        session: Database session
        user_id: Caller id
        day: Quota day

    Returns:
        Count, 0 when no row exists yet
    """
    stmt = select(UsageCounter.count).where(
        UsageCounter.user_id == user_id,
        UsageCounter.date == day,
    )
    result = await session.execute(stmt)
    count = result.scalar_one_or_none()
    return count or 0


def build_usage_increment(dialect_name: str, user_id: str, day: date, limit: Optional[int] = None):
    """
    Insert-if-absent then add 1, as one statement.

    Args:
        dialect_name: SQLAlchemy dialect name of the bound engine
        user_id: Caller id
        day: Quota day
        limit: When given, an existing counter is only bumped while below it

    Returns:
        Executable upsert statement
    """
    insert_fn = _UPSERT_DIALECTS.get(dialect_name)
    if insert_fn is None:
        raise ValueError(f"Atomic usage increment not supported for dialect '{dialect_name}'")

    stmt = insert_fn(UsageCounter).values(user_id=user_id, date=day, count=1)
    return stmt.on_conflict_do_update(
        index_elements=[UsageCounter.user_id, UsageCounter.date],
        set_={"count": UsageCounter.count + 1},
        where=(UsageCounter.count < limit) if limit is not None else None,
    )


async def increment_usage(
    session: AsyncSession,
    user_id: str,
    day: date,
    limit: Optional[int] = None,
) -> bool:
    """
    Add one generation to today's counter. Caller commits.

    Returns:
        False when ``limit`` was already reached and nothing changed
    """
    stmt = build_usage_increment(session.get_bind().dialect.name, user_id, day, limit=limit)
    result = await session.execute(stmt)
    if result.rowcount == 0:
        logger.info(f"Usage for user {user_id} on {day} already at limit {limit}")
        return False

    logger.debug(f"Usage incremented for user {user_id} on {day}")
    return True


def history_row_from_record(user_id: str, record: Dict[str, Any]) -> HistoryItem:
    """Map a serialised GenerationRecord onto a history row."""
    return HistoryItem(
        id=record["id"],
        user_id=user_id,
        title=record["title"],
        excerpt=record["excerpt"],
        body=record["body"],
        content_type=record["content_type"],
        category=record["category"],
        image_url=record["image_url"],
        sources=record["sources"],
        created_at=record["created_at"],
    )


def history_row_to_dict(item: HistoryItem) -> Dict[str, Any]:
    """Plain dict view of a history row, NULLs replaced by empty values."""
    created_at = item.created_at
    if created_at is not None and created_at.tzinfo is None:
        # SQLite drops the offset; rows are written in UTC
        created_at = created_at.replace(tzinfo=timezone.utc)

    return {
        "id": item.id,
        "title": item.title or "",
        "excerpt": item.excerpt or "",
        "body": item.body or "",
        "content_type": item.content_type,
        "category": item.category,
        "image_url": item.image_url or "",
        "sources": item.sources or [],
        "created_at": created_at or datetime.now(timezone.utc),
    }


async def add_history_item(session: AsyncSession, user_id: str, record: Dict[str, Any]) -> HistoryItem:
    """Stage a history row. Caller commits."""
    item = history_row_from_record(user_id, record)
    session.add(item)
    await session.flush()
    return item


async def list_history(session: AsyncSession, user_id: str, limit: int = 50) -> List[HistoryItem]:
    """
    The caller's history, newest first.

    Args:
        session: Database session
        user_id: Caller id
        limit: Maximum rows

    Returns:
        List of HistoryItem rows
    """
    stmt = (
        select(HistoryItem)
        .where(HistoryItem.user_id == user_id)
        .order_by(desc(HistoryItem.created_at))
        .limit(limit)
    )
    result = await session.execute(stmt)
    items = list(result.scalars().all())

    logger.debug(f"Retrieved {len(items)} history items for user {user_id}")
    return items


async def get_history_item(session: AsyncSession, user_id: str, item_id: str) -> Optional[HistoryItem]:
    stmt = select(HistoryItem).where(
        HistoryItem.id == item_id,
        HistoryItem.user_id == user_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def delete_history_item(session: AsyncSession, user_id: str, item_id: str) -> bool:
    """
    Delete one of the caller's records.

    Returns:
        True if a row was deleted, False if it did not exist or is not owned
    """
    stmt = delete(HistoryItem).where(
        HistoryItem.id == item_id,
        HistoryItem.user_id == user_id,
    )
    result = await session.execute(stmt)
    await session.commit()

    deleted = result.rowcount > 0
    if deleted:
        logger.info(f"Deleted history item {item_id} for user {user_id}")
    return deleted


async def add_feedback(
    session: AsyncSession,
    user_id: str,
    generation_id: Optional[str],
    rating: Optional[int],
    comment: Optional[str],
) -> Feedback:
    """Store feedback; ``generation_id`` must reference the caller's own record when given."""
    if generation_id is not None:
        owned = await get_history_item(session, user_id, generation_id)
        if owned is None:
            raise LookupError(f"History item {generation_id} not found")

    item = Feedback(
        user_id=user_id,
        generation_id=generation_id,
        rating=rating,
        comment=comment,
        created_at=datetime.now(timezone.utc),
    )
    session.add(item)
    await session.commit()
    await session.refresh(item)

    logger.info(f"Stored feedback {item.id} from user {user_id}")
    return item


async def list_feedback(session: AsyncSession, user_id: str) -> List[Feedback]:
    stmt = (
        select(Feedback)
        .where(Feedback.user_id == user_id)
        .order_by(desc(Feedback.created_at), desc(Feedback.id))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
