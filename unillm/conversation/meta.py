"""
Turn metadata carried inside stored conversations.

The turn counter lives under a single reserved key at the root of a
dict-shaped conversation::

    {"messages": [...], "system": [...], "_llumiverse_meta": {"turnNumber": 3}}

List-shaped histories (OpenAI, Groq, Gemini) have no place for the key, so
at the storage boundary they are wrapped as ``{"history": [...], META_KEY: ...}``
by :func:`attach_meta` and unwrapped again by :func:`detach_meta`.  Inside a
turn the counter travels as an explicit :class:`~unillm.types.TurnContext`.
"""

from __future__ import annotations

from typing import Any

from unillm.types import TurnContext

META_KEY = "_llumiverse_meta"
HISTORY_KEY = "history"


def get_meta(conversation: Any) -> TurnContext:
    """Return the stored turn context, or turn 0 when none is recorded."""
    if not isinstance(conversation, dict):
        return TurnContext()
    meta = conversation.get(META_KEY)
    if not isinstance(meta, dict):
        return TurnContext()
    turn = meta.get("turnNumber")
    if isinstance(turn, bool) or not isinstance(turn, int) or turn < 0:
        return TurnContext()
    return TurnContext(turn)


def set_meta(conversation: Any, ctx: TurnContext) -> Any:
    """Return a shallow copy of *conversation* carrying *ctx*."""
    if not isinstance(conversation, dict):
        return conversation
    updated = dict(conversation)
    updated[META_KEY] = ctx.to_dict()
    return updated


def increment_turn(conversation: Any) -> Any:
    return set_meta(conversation, get_meta(conversation).next())


def is_wrapped_history(conversation: Any) -> bool:
    return (
        isinstance(conversation, dict)
        and isinstance(conversation.get(HISTORY_KEY), list)
        and set(conversation) <= {HISTORY_KEY, META_KEY}
    )


def attach_meta(history: Any, ctx: TurnContext) -> dict:
    """Produce the stored form of *history* with *ctx* attached."""
    if isinstance(history, dict):
        return set_meta(history, ctx)
    return {HISTORY_KEY: list(history or []), META_KEY: ctx.to_dict()}


def detach_meta(conversation: Any) -> tuple[Any, TurnContext]:
    """
    Split a stored conversation into its bare history and turn context.

    ``None`` yields ``(None, TurnContext(0))`` so each dialect can substitute
    its own empty shape.
    """
    if conversation is None:
        return None, TurnContext()
    if isinstance(conversation, list):
        return list(conversation), TurnContext()
    if is_wrapped_history(conversation):
        return list(conversation[HISTORY_KEY]), get_meta(conversation)
    if isinstance(conversation, dict):
        ctx = get_meta(conversation)
        history = {k: v for k, v in conversation.items() if k != META_KEY}
        return history, ctx
    return conversation, TurnContext()
