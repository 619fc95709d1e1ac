from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.analytics.aggregation import aggregate, latency_samples
from app.analytics.ingestion import (
    MessageLogUnavailable,
    MessageRecord,
    fetch_message_log,
    window_start,
)
from app.analytics.schemas import ResponseTimeStats, StatsDebugInfo
from app.analytics.timeline import ResponseKind, reconstruct_conversations

logger = structlog.get_logger()


def collect_sender_labels(records: list[MessageRecord]) -> list[str]:
    """Distinct raw sender labels in first-seen order."""
    labels = dict.fromkeys(
        r.sender_label if r.sender_label is not None else "(null)" for r in records
    )
    return list(labels)


async def get_response_time_stats(
    db: AsyncSession,
    owner_id: str | None = None,
    debug: bool = False,
    now: datetime | None = None,
) -> ResponseTimeStats:
    """Compute conversation response-time metrics over the trailing window.

    Any failure degrades to all-zero metrics so dashboard widgets keep
    rendering.
    """
    try:
        return await _compute_stats(db, window_start(now), owner_id, debug)
    except MessageLogUnavailable as e:
        logger.error("message_log_unavailable", owner_id=owner_id, error=str(e))
    except Exception as e:
        logger.error(
            "response_time_stats_failed",
            owner_id=owner_id,
            error_type=type(e).__name__,
            error=str(e),
        )
    return ResponseTimeStats()


async def _compute_stats(
    db: AsyncSession,
    since: datetime,
    owner_id: str | None,
    debug: bool,
) -> ResponseTimeStats:
    records = await fetch_message_log(db, since, owner_id=owner_id)
    replays = reconstruct_conversations(records)
    metrics = aggregate(replays)
    human_samples = len(latency_samples(replays, ResponseKind.HUMAN))
    automated_samples = len(latency_samples(replays, ResponseKind.AUTOMATED))

    logger.info(
        "response_time_stats_computed",
        owner_id=owner_id,
        records=len(records),
        conversations=len(replays),
        human_samples=human_samples,
        automated_samples=automated_samples,
    )

    stats = ResponseTimeStats(
        avg_automated_messages_per_conversation=metrics.average_automated_messages_per_conversation,
        avg_automated_latency_minutes=metrics.average_automated_latency_minutes,
        avg_human_latency_minutes=metrics.average_human_latency_minutes,
    )
    if debug:
        stats.debug = StatsDebugInfo(
            sender_labels=collect_sender_labels(records),
            records=len(records),
            conversations=len(replays),
            human_samples=human_samples,
            automated_samples=automated_samples,
            rejected_samples=sum(r.rejected_samples for r in replays),
        )
    return stats
