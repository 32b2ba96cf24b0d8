"""Conversation trees: boxing, turn metadata, stripping, truncation, storage."""

from unillm.conversation.codec import deserialize, serialize
from unillm.conversation.heartbeat import is_heartbeat, strip_heartbeats
from unillm.conversation.inspect import describe
from unillm.conversation.meta import (
    META_KEY,
    attach_meta,
    detach_meta,
    get_meta,
    increment_turn,
    set_meta,
)
from unillm.conversation.store import ConversationStore
from unillm.conversation.strip import strip_base64_images, strip_binary
from unillm.conversation.truncate import truncate_conversation, truncate_text

__all__ = [
    "META_KEY",
    "ConversationStore",
    "attach_meta",
    "describe",
    "deserialize",
    "detach_meta",
    "get_meta",
    "increment_turn",
    "is_heartbeat",
    "serialize",
    "set_meta",
    "strip_base64_images",
    "strip_binary",
    "strip_heartbeats",
    "truncate_conversation",
    "truncate_text",
]
