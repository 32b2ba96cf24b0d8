"""
Token-budgeted shortening of text fields in conversation trees.

The budget is converted to characters with a fixed ratio
(:attr:`TruncationOptions.chars_per_token`), which approximates a tokenizer
rather than running one.
"""

from __future__ import annotations

from typing import Any

from unillm.conversation.meta import META_KEY
from unillm.types import PipelineReport, TruncationOptions

TRUNCATION_MARKER = "\n\n[Content truncated - exceeded token limit]"


def truncate_text(text: str, options: TruncationOptions) -> str:
    max_chars = options.max_chars
    if not max_chars or len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def truncate_conversation(
    tree: Any,
    options: TruncationOptions | None = None,
    *,
    report: PipelineReport | None = None,
) -> Any:
    """
    Truncate every oversized text field in *tree*.

    Covered fields:

    - ``text`` of any block (Bedrock, Gemini parts, typed OpenAI/Claude
      blocks, text nested in Bedrock tool results);
    - string ``content`` of a chat message (a dict with a ``role``);
    - string ``content`` of a Claude ``tool_result`` block.
    """
    if options is None or not options.max_chars:
        return tree
    return _walk(tree, options, report)


def _walk(node: Any, options: TruncationOptions, report: PipelineReport | None) -> Any:
    if isinstance(node, (list, tuple)):
        return [_walk(item, options, report) for item in node]
    if not isinstance(node, dict):
        return node

    string_content = "role" in node or node.get("type") == "tool_result"
    result: dict[str, Any] = {}
    for key, value in node.items():
        if key == META_KEY:
            result[key] = value
        elif isinstance(value, str) and (
            key == "text" or (key == "content" and string_content)
        ):
            shortened = truncate_text(value, options)
            if shortened is not value and report is not None:
                report.texts_truncated += 1
            result[key] = shortened
        else:
            result[key] = _walk(value, options, report)
    return result
