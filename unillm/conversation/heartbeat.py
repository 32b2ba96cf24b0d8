"""
Removal of heartbeat status messages from stored history.

An orchestration layer may inject ``<heartbeat>...</heartbeat>`` messages to
report progress.  They are meant for the round in which they were sent, so
by default they are kept for one turn and then replaced by a placeholder.
"""

from __future__ import annotations

from typing import Any

from unillm.conversation.meta import META_KEY, get_meta
from unillm.types import PipelineReport, RetentionPolicy

HEARTBEAT_OPEN = "<heartbeat>"
HEARTBEAT_CLOSE = "</heartbeat>"
HEARTBEAT_PLACEHOLDER = "[Heartbeat removed from conversation history]"

DEFAULT_HEARTBEAT_POLICY = RetentionPolicy(keep_for_turns=1)


def is_heartbeat(text: Any) -> bool:
    if not isinstance(text, str):
        return False
    body = text.strip()
    return (
        len(body) >= len(HEARTBEAT_OPEN) + len(HEARTBEAT_CLOSE)
        and body.startswith(HEARTBEAT_OPEN)
        and body.endswith(HEARTBEAT_CLOSE)
    )


def strip_heartbeats(
    tree: Any,
    policy: RetentionPolicy | None = None,
    *,
    report: PipelineReport | None = None,
) -> Any:
    """Replace heartbeat texts in *tree* once *policy* no longer retains them."""
    policy = policy or DEFAULT_HEARTBEAT_POLICY
    if policy.retains(get_meta(tree).turn_number):
        return _copy(tree)
    return _walk(tree, report)


def _copy(node: Any) -> Any:
    if isinstance(node, (list, tuple)):
        return [_copy(item) for item in node]
    if isinstance(node, dict):
        return {k: v if k == META_KEY else _copy(v) for k, v in node.items()}
    return node


def _walk(node: Any, report: PipelineReport | None) -> Any:
    if isinstance(node, (list, tuple)):
        return [_walk(item, report) for item in node]
    if not isinstance(node, dict):
        return node

    is_message = "role" in node
    result: dict[str, Any] = {}
    for key, value in node.items():
        if key == META_KEY:
            result[key] = value
        elif (key == "text" or (key == "content" and is_message)) and is_heartbeat(value):
            if report is not None:
                report.heartbeats_removed += 1
            result[key] = HEARTBEAT_PLACEHOLDER
        else:
            result[key] = _walk(value, report)
    return result
