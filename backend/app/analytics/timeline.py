"""Conversation reconstruction.

Records are split into conversation lanes keyed by ``(customer, owner)``,
ordered by time, and replayed once. A customer message opens a pending
window; the next automated or human reply closes it and, when the reply is
not earlier than the customer message, yields one latency sample. A newer
customer message replaces an unanswered one instead of queueing behind it.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from app.analytics.ingestion import MessageRecord
from app.analytics.senders import SenderRole, normalize_sender


class ConversationKey(NamedTuple):
    subject_id: str
    owner_id: str


class ResponseKind(str, Enum):
    AUTOMATED = "automated"
    HUMAN = "human"


@dataclass(frozen=True)
class TimelineEntry:
    role: SenderRole
    timestamp_ms: float


@dataclass(frozen=True)
class ResponseEvent:
    kind: ResponseKind
    latency_ms: float


@dataclass
class ConversationReplay:
    key: ConversationKey
    automated_count: int = 0
    events: list[ResponseEvent] = field(default_factory=list)
    rejected_samples: int = 0


_REPLY_KINDS = {
    SenderRole.AUTOMATED: ResponseKind.AUTOMATED,
    SenderRole.HUMAN: ResponseKind.HUMAN,
}


def to_epoch_ms(value: datetime | None) -> float | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp() * 1000


def record_timestamp_ms(record: MessageRecord) -> float | None:
    """Event time when the row has one, otherwise its creation time."""
    if record.event_time is not None:
        return to_epoch_ms(record.event_time)
    return to_epoch_ms(record.fallback_time)


def build_timelines(records: Iterable[MessageRecord]) -> dict[ConversationKey, list[TimelineEntry]]:
    """Group usable records into per-conversation timelines sorted by time.

    Records without a full conversation key, with an unrecognized sender or
    without any timestamp are skipped. Equal timestamps keep input order.
    """
    timelines: dict[ConversationKey, list[TimelineEntry]] = defaultdict(list)
    for record in records:
        if not record.conversation_subject_id or not record.conversation_owner_id:
            continue
        role = normalize_sender(record.sender_label)
        if role is SenderRole.UNRECOGNIZED:
            continue
        timestamp = record_timestamp_ms(record)
        if timestamp is None:
            continue
        key = ConversationKey(record.conversation_subject_id, record.conversation_owner_id)
        timelines[key].append(TimelineEntry(role, timestamp))

    for entries in timelines.values():
        entries.sort(key=lambda e: e.timestamp_ms)
    return dict(timelines)


def replay_timeline(key: ConversationKey, entries: Sequence[TimelineEntry]) -> ConversationReplay:
    """Single forward pass over an already ordered timeline."""
    replay = ConversationReplay(key=key)
    pending: float | None = None

    for entry in entries:
        if entry.role is SenderRole.CUSTOMER:
            pending = entry.timestamp_ms
            continue

        kind = _REPLY_KINDS.get(entry.role)
        if kind is None:
            continue
        if kind is ResponseKind.AUTOMATED:
            replay.automated_count += 1
        if pending is None:
            continue

        delta = entry.timestamp_ms - pending
        if delta >= 0:
            replay.events.append(ResponseEvent(kind, delta))
        else:
            replay.rejected_samples += 1
        pending = None

    return replay


def reconstruct_conversations(records: Iterable[MessageRecord]) -> list[ConversationReplay]:
    return [replay_timeline(key, entries) for key, entries in build_timelines(records).items()]
