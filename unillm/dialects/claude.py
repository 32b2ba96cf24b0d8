"""
Anthropic Claude conversations (Vertex AI and direct API).

History shape::

    {"messages": [{"role": "user", "content": "..." | [block, ...]}, ...],
     "system": [{"type": "text", "text": "..."}]}

Anthropic requires all tool results answering one assistant turn to sit in a
single user message, and rejects empty text blocks, so request preparation
merges adjacent user messages and drops empty text before repairing orphaned
``tool_use`` blocks.
"""

from __future__ import annotations

import logging
from typing import Any

import jsonschema
from anthropic.types import Message as AnthropicMessage

from unillm.conversation.classify import BlockMatch, match_claude_block
from unillm.dialects.base import (
    Dialect,
    interrupted_tool_text,
    repair_orphaned_tool_use,
    role_of,
    tool_call_text,
    tool_result_text,
)
from unillm.errors import ToolSchemaError
from unillm.types import PipelineReport

logger = logging.getLogger(__name__)

TOOL_DEFINITION_SCHEMA: dict = {
    "type": "object",
    "required": ["name", "input_schema"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "input_schema": {
            "type": "object",
            "required": ["type"],
            "properties": {"type": {"const": "object"}},
        },
    },
}


def _blocks(message: Any) -> list:
    """Return *message* content as a block list (strings become text blocks)."""
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    if isinstance(content, list):
        return list(content)
    return []


def _of_type(block: Any, block_type: str) -> bool:
    return isinstance(block, dict) and block.get("type") == block_type


def _tool_uses(message: dict) -> list[tuple[str, str]]:
    return [
        (block["id"], block.get("name", "unknown"))
        for block in _blocks(message)
        if _of_type(block, "tool_use") and block.get("id")
    ]


def _tool_result_ids(message: dict) -> set[str]:
    return {
        block["tool_use_id"]
        for block in _blocks(message)
        if _of_type(block, "tool_result") and block.get("tool_use_id")
    }


def _synthetic_result(tool_use_id: str, name: str) -> dict:
    return {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": interrupted_tool_text(name),
        "is_error": True,
    }


def fix_orphaned_tool_use(
    messages: list, *, report: PipelineReport | None = None
) -> list:
    """Synthesize ``tool_result`` blocks for ``tool_use`` blocks left unanswered."""
    return repair_orphaned_tool_use(
        messages,
        tool_uses=_tool_uses,
        tool_result_ids=_tool_result_ids,
        synthesize=_synthetic_result,
        blocks_of=_blocks,
        scan_user_run=True,
        report=report,
    )


def merge_consecutive_user_messages(messages: list) -> list:
    """
    Collapse runs of adjacent user messages into one message.

    Runs of length one are kept as they are; merged messages always carry a
    block list.
    """
    merged: list = []
    run: list[dict] = []

    def flush() -> None:
        if len(run) == 1:
            merged.append(run[0])
        elif run:
            content: list = []
            for msg in run:
                content.extend(_blocks(msg))
            merged.append({**run[0], "content": content})
        run.clear()

    for message in messages:
        if role_of(message) == "user":
            run.append(message)
            continue
        flush()
        merged.append(message)
    flush()
    return merged


def sanitize_empty_text_blocks(messages: list) -> list:
    """
    Drop text blocks with empty or whitespace-only text.

    Interrupted streaming can leave such blocks behind.  Messages left with
    no content are dropped.
    """
    cleaned: list = []
    for message in messages:
        if not isinstance(message, dict):
            cleaned.append(message)
            continue
        content = message.get("content")
        if isinstance(content, str):
            if content.strip():
                cleaned.append(message)
            continue
        if not isinstance(content, list):
            cleaned.append(message)
            continue
        blocks = [
            block
            for block in content
            if not (_of_type(block, "text") and not str(block.get("text") or "").strip())
        ]
        if blocks:
            cleaned.append({**message, "content": blocks})
    return cleaned


def validate_tool_definitions(tools: list | None) -> None:
    """
    Check that every tool has a name and an object-typed input schema.

    Raises
    ------
    ToolSchemaError
        On the first invalid definition.
    """
    for tool in tools or []:
        name = tool.get("name", "?") if isinstance(tool, dict) else "?"
        try:
            jsonschema.validate(instance=tool, schema=TOOL_DEFINITION_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ToolSchemaError(str(name), e.message) from e


def render_tool_result(block: dict) -> str:
    content = block.get("content")
    if isinstance(content, str):
        return content
    parts = []
    for item in content or []:
        if _of_type(item, "text"):
            parts.append(str(item.get("text", "")))
        elif isinstance(item, dict):
            parts.append(f"[{item.get('type', 'content')}]")
    return "\n".join(parts)


class ClaudeDialect(Dialect):
    history_is_list = False

    @property
    def name(self) -> str:
        return "claude"

    def classify_block(self, block: Any) -> BlockMatch | None:
        return match_claude_block(block)

    def text_fields_of(self, message: Any) -> list[str]:
        return [
            block["text"]
            for block in _blocks(message)
            if _of_type(block, "text") and isinstance(block.get("text"), str)
        ]

    def tool_blocks_of(self, message: Any) -> tuple[int, int]:
        blocks = _blocks(message)
        return (
            sum(1 for b in blocks if _of_type(b, "tool_use")),
            sum(1 for b in blocks if _of_type(b, "tool_result")),
        )

    def merge_system(self, existing: Any, incoming: Any) -> list:
        def as_list(system: Any) -> list:
            if isinstance(system, str):
                return [{"type": "text", "text": system}] if system else []
            return list(system or [])

        return as_list(existing) + as_list(incoming)

    def repair_messages(
        self, messages: list, *, report: PipelineReport | None = None
    ) -> list:
        return fix_orphaned_tool_use(messages, report=report)

    def response_to_prompt(self, response: Any) -> dict:
        """
        Accept an ``anthropic.types.Message``, its ``model_dump()`` form, or
        an already prompt-shaped dict.
        """
        if isinstance(response, AnthropicMessage):
            content = [block.model_dump(exclude_none=True) for block in response.content]
            role = response.role
        elif isinstance(response, dict) and "messages" in response:
            return {
                "messages": list(response.get("messages") or []),
                "system": self.merge_system(None, response.get("system")),
            }
        elif isinstance(response, dict):
            content = _blocks(response)
            role = response.get("role", "assistant")
        else:
            return self.empty()
        return {"messages": [{"role": role, "content": content}], "system": []}

    def convert_tool_blocks_to_text(self, messages: list) -> list:
        converted = []
        for message in messages:
            if not isinstance(message, dict) or not isinstance(message.get("content"), list):
                converted.append(message)
                continue
            blocks = []
            for block in message["content"]:
                if _of_type(block, "tool_use"):
                    blocks.append({
                        "type": "text",
                        "text": tool_call_text(block.get("name", "unknown"), block.get("input")),
                    })
                elif _of_type(block, "tool_result"):
                    blocks.append({
                        "type": "text",
                        "text": tool_result_text(render_tool_result(block)),
                    })
                else:
                    blocks.append(block)
            converted.append({**message, "content": blocks})
        return converted

    def prepare_request(self, conversation: Any, tools: list | None = None) -> Any:
        validate_tool_definitions(tools)
        messages = sanitize_empty_text_blocks(self.messages_of(conversation))
        messages = merge_consecutive_user_messages(messages)
        messages = fix_orphaned_tool_use(messages)
        if not tools and self.has_tool_blocks(messages):
            logger.debug("No tools configured; converting tool blocks to text")
            messages = self.convert_tool_blocks_to_text(messages)
            messages = merge_consecutive_user_messages(messages)
        return self.with_messages(conversation, messages)
