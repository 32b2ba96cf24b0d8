"""Summaries of stored conversations, used by the CLI."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any

from unillm.conversation.classify import match_binary_block
from unillm.conversation.heartbeat import is_heartbeat
from unillm.conversation.meta import META_KEY, detach_meta
from unillm.types import ConversationStats

if TYPE_CHECKING:
    from unillm.dialects.base import Dialect


def describe(conversation: Any, dialect: Dialect) -> ConversationStats:
    """Count messages, media, heartbeats and tool blocks in *conversation*."""
    history, ctx = detach_meta(conversation)
    messages = dialect.messages_of(history)

    roles: Counter[str] = Counter()
    stats = ConversationStats(turn_number=ctx.turn_number, message_count=len(messages))
    for message in messages:
        role = message.get("role") if isinstance(message, dict) else None
        roles[str(role or "unknown")] += 1
        stats.heartbeats += sum(1 for t in dialect.text_fields_of(message) if is_heartbeat(t))
        calls, results = dialect.tool_blocks_of(message)
        stats.tool_calls += calls
        stats.tool_results += results
    stats.roles = dict(roles)

    for block in _media_blocks(history, dialect):
        if match_binary_block(block) is not None:
            stats.binary_blocks += 1
        else:
            stats.base64_blocks += 1
    return stats


def _media_blocks(node: Any, dialect: Dialect):
    if isinstance(node, (list, tuple)):
        for item in node:
            yield from _media_blocks(item, dialect)
    elif isinstance(node, dict):
        if dialect.classify_block(node) is not None:
            yield node
            return
        for key, value in node.items():
            if key != META_KEY:
                yield from _media_blocks(value, dialect)
