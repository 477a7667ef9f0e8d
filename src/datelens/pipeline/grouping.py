"""Partition a flat message list into per-match conversations."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from datelens.schemas import Conversation, Message

logger = logging.getLogger(__name__)


def fallback_participant_id(match_id: str) -> str:
    """Synthetic counterparty id used when only the user spoke in a match."""

    return f"participant_{match_id}"


def group_conversations(messages: Iterable[Message], user_id: str) -> list[Conversation]:
    """Group messages by match id, oldest message first within each conversation.

    Conversations are returned in the order their match id first appears in the input.
    The participant is the first non-user sender in time order.
    """

    by_match: dict[str, list[Message]] = {}
    for message in messages:
        by_match.setdefault(message.match_id, []).append(message)

    conversations: list[Conversation] = []
    for match_id, match_messages in by_match.items():
        ordered = sorted(match_messages, key=lambda message: message.sent_at)
        participant_id = next(
            (message.sender_id for message in ordered if message.sender_id != user_id),
            fallback_participant_id(match_id),
        )
        conversations.append(
            Conversation(match_id=match_id, participant_id=participant_id, messages=ordered)
        )

    logger.debug("Grouped messages into %d conversations", len(conversations))
    return conversations
