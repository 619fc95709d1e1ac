"""Paginated read of the message log for response-time analytics.

Pages are ordered by the provider event time (``sent_at``). Stores that
reject that ordering get the whole read redone from the first page ordered
by ``created_at`` instead, so one ingestion never mixes the two orderings.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from app.config import settings
from app.messages.models import Message

logger = structlog.get_logger()


class MessageLogUnavailable(Exception):
    """The message log could not be read under either ordering."""


@dataclass(frozen=True)
class MessageRecord:
    conversation_subject_id: str | None
    conversation_owner_id: str | None
    sender_label: str | None
    event_time: datetime | None
    fallback_time: datetime | None


def window_start(now: datetime | None = None, days: int | None = None) -> datetime:
    """Start of the trailing window, truncated to 00:00 UTC."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    if days is None:
        days = settings.STATS_WINDOW_DAYS
    start = now - timedelta(days=days)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def _page_statement(
    since: datetime,
    owner_id: str | None,
    order_column: InstrumentedAttribute,
    offset: int,
    limit: int,
):
    stmt = (
        select(
            Message.customer_id,
            Message.owner_id,
            Message.sender,
            Message.sent_at,
            Message.created_at,
        )
        .where(Message.created_at >= since)
    )
    if owner_id:
        stmt = stmt.where(Message.owner_id == owner_id)
    return stmt.order_by(order_column.asc(), Message.id.asc()).offset(offset).limit(limit)


async def _fetch_page(
    db: AsyncSession,
    since: datetime,
    owner_id: str | None,
    order_column: InstrumentedAttribute,
    offset: int,
    limit: int,
) -> list[MessageRecord]:
    result = await db.execute(_page_statement(since, owner_id, order_column, offset, limit))
    return [
        MessageRecord(
            conversation_subject_id=row.customer_id,
            conversation_owner_id=row.owner_id,
            sender_label=row.sender,
            event_time=row.sent_at,
            fallback_time=row.created_at,
        )
        for row in result.all()
    ]


async def iter_message_pages(
    db: AsyncSession,
    since: datetime,
    owner_id: str | None = None,
    order_column: InstrumentedAttribute = Message.sent_at,
    page_size: int | None = None,
) -> AsyncIterator[list[MessageRecord]]:
    """Yield the log one page at a time, always starting from the first page.

    Iteration stops after the first page holding fewer than ``page_size`` rows.
    """
    page_size = page_size or settings.STATS_PAGE_SIZE
    offset = 0
    while True:
        page = await _fetch_page(db, since, owner_id, order_column, offset, page_size)
        if page:
            yield page
        if len(page) < page_size:
            return
        offset += page_size


async def _read_all(
    db: AsyncSession,
    since: datetime,
    owner_id: str | None,
    order_column: InstrumentedAttribute,
    page_size: int | None,
) -> list[MessageRecord]:
    records: list[MessageRecord] = []
    async for page in iter_message_pages(db, since, owner_id, order_column, page_size):
        records.extend(page)
    return records


async def fetch_message_log(
    db: AsyncSession,
    since: datetime,
    owner_id: str | None = None,
    page_size: int | None = None,
) -> list[MessageRecord]:
    """Read every message created since ``since``, ascending by event time.

    Only a rejected query (``ProgrammingError``/``OperationalError``) switches
    to the ``created_at`` ordering; any other database or connection error
    raises ``MessageLogUnavailable`` straight away, as does a failure of the
    fallback read.
    """
    try:
        return await _read_all(db, since, owner_id, Message.sent_at, page_size)
    except (ProgrammingError, OperationalError) as e:
        logger.warning("message_log_order_fallback", order_by="created_at", error=str(e))
    except (SQLAlchemyError, OSError) as e:
        raise MessageLogUnavailable(str(e)) from e

    try:
        await db.rollback()
        return await _read_all(db, since, owner_id, Message.created_at, page_size)
    except (SQLAlchemyError, OSError) as e:
        raise MessageLogUnavailable(str(e)) from e
