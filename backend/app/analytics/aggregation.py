import math
import statistics
from collections.abc import Iterable
from dataclasses import dataclass

from app.analytics.timeline import ConversationReplay, ResponseKind

MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class AggregateMetrics:
    average_automated_messages_per_conversation: float = 0.0
    average_human_latency_minutes: float = 0.0
    average_automated_latency_minutes: float = 0.0


def round_metric(value: float) -> float:
    """One decimal place, halves rounded up."""
    return math.floor(value * 10 + 0.5) / 10


def _mean(values: list[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def latency_samples(replays: Iterable[ConversationReplay], kind: ResponseKind) -> list[float]:
    return [event.latency_ms for replay in replays for event in replay.events if event.kind is kind]


def aggregate(replays: Iterable[ConversationReplay]) -> AggregateMetrics:
    """Reduce replayed conversations to the dashboard metrics.

    The automated-messages average only counts conversations with at least
    one automated message; latency averages are over all samples.
    """
    replays = list(replays)
    automated_tallies = [r.automated_count for r in replays if r.automated_count > 0]
    human_ms = latency_samples(replays, ResponseKind.HUMAN)
    automated_ms = latency_samples(replays, ResponseKind.AUTOMATED)

    return AggregateMetrics(
        average_automated_messages_per_conversation=round_metric(_mean(automated_tallies)),
        average_human_latency_minutes=round_metric(_mean(human_ms) / MS_PER_MINUTE),
        average_automated_latency_minutes=round_metric(_mean(automated_ms) / MS_PER_MINUTE),
    )
