"""Sender label normalization.

Message rows carry whatever sender label the integration wrote. Only a
fixed set of aliases is meaningful for response-time analytics; anything
else is ``UNRECOGNIZED`` and is dropped before timelines are built.
"""

from enum import Enum


class SenderRole(str, Enum):
    CUSTOMER = "customer"
    AUTOMATED = "automated"
    HUMAN = "human"
    UNRECOGNIZED = "unrecognized"


SENDER_ALIASES: dict[str, SenderRole] = {
    "customer": SenderRole.CUSTOMER,
    "cliente": SenderRole.CUSTOMER,
    "ia": SenderRole.AUTOMATED,
    "ai": SenderRole.AUTOMATED,
    "humano": SenderRole.HUMAN,
    "usuario": SenderRole.HUMAN,
    "atendente": SenderRole.HUMAN,
    "agent": SenderRole.HUMAN,
    "human": SenderRole.HUMAN,
}


def normalize_sender(label: str | None) -> SenderRole:
    if not label:
        return SenderRole.UNRECOGNIZED
    return SENDER_ALIASES.get(label.strip().lower(), SenderRole.UNRECOGNIZED)
