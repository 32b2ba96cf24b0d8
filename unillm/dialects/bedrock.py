"""
Bedrock Converse conversations.

History shape::

    {"messages": [{"role": "user", "content": [{"text": "..."}]}, ...],
     "system": [{"text": "..."}]}

Media blocks carry raw bytes (``{"image": {"source": {"bytes": b"..."}}}``),
which is why Bedrock history must go through binary stripping before it is
JSON-encoded.
"""

from __future__ import annotations

import json
from typing import Any

from unillm.conversation.classify import BlockMatch, match_bedrock_block
from unillm.dialects.base import (
    Dialect,
    interrupted_tool_text,
    repair_orphaned_tool_use,
    tool_call_text,
    tool_result_text,
)
from unillm.types import PipelineReport


def _blocks(message: Any) -> list:
    content = message.get("content") if isinstance(message, dict) else None
    return list(content) if isinstance(content, list) else []


def _tool_uses(message: dict) -> list[tuple[str, str]]:
    uses = []
    for block in _blocks(message):
        tool_use = block.get("toolUse") if isinstance(block, dict) else None
        if isinstance(tool_use, dict) and tool_use.get("toolUseId"):
            uses.append((tool_use["toolUseId"], tool_use.get("name", "unknown")))
    return uses


def _tool_result_ids(message: dict) -> set[str]:
    ids = set()
    for block in _blocks(message):
        result = block.get("toolResult") if isinstance(block, dict) else None
        if isinstance(result, dict) and result.get("toolUseId"):
            ids.add(result["toolUseId"])
    return ids


def _synthetic_result(tool_use_id: str, name: str) -> dict:
    return {
        "toolResult": {
            "toolUseId": tool_use_id,
            "content": [{"text": interrupted_tool_text(name)}],
            "status": "error",
        }
    }


def fix_orphaned_tool_use(
    messages: list, *, report: PipelineReport | None = None
) -> list:
    """Synthesize ``toolResult`` blocks for ``toolUse`` blocks left unanswered."""
    return repair_orphaned_tool_use(
        messages,
        tool_uses=_tool_uses,
        tool_result_ids=_tool_result_ids,
        synthesize=_synthetic_result,
        blocks_of=_blocks,
        report=report,
    )


def render_tool_result(result: dict) -> str:
    parts: list[str] = []
    for item in result.get("content") or []:
        if not isinstance(item, dict):
            continue
        if isinstance(item.get("text"), str):
            parts.append(item["text"])
        elif "json" in item:
            parts.append(json.dumps(item["json"], default=str))
        else:
            kind = next(iter(item), "content")
            parts.append(f"[{kind}]")
    return "\n".join(parts)


class BedrockDialect(Dialect):
    history_is_list = False

    @property
    def name(self) -> str:
        return "bedrock"

    def classify_block(self, block: Any) -> BlockMatch | None:
        return match_bedrock_block(block)

    def classify_binary_block(self, block: Any) -> BlockMatch | None:
        return match_bedrock_block(block)

    def classify_base64_block(self, block: Any) -> BlockMatch | None:
        return None

    def text_fields_of(self, message: Any) -> list[str]:
        return [
            block["text"]
            for block in _blocks(message)
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        ]

    def tool_blocks_of(self, message: Any) -> tuple[int, int]:
        calls = results = 0
        for block in _blocks(message):
            if isinstance(block, dict):
                calls += "toolUse" in block
                results += "toolResult" in block
        return calls, results

    def repair_messages(
        self, messages: list, *, report: PipelineReport | None = None
    ) -> list:
        return fix_orphaned_tool_use(messages, report=report)

    def response_to_prompt(self, response: Any) -> dict:
        """
        Accept a Converse response (``{"output": {"message": ...}}``), a
        bare message dict, or an already prompt-shaped dict.
        """
        if isinstance(response, dict) and "messages" in response:
            return {
                "messages": list(response.get("messages") or []),
                "system": list(response.get("system") or []),
            }
        message = response
        if isinstance(response, dict) and isinstance(response.get("output"), dict):
            message = response["output"].get("message")
        if not isinstance(message, dict):
            return self.empty()
        return {
            "messages": [
                {
                    "role": message.get("role", "assistant"),
                    "content": list(message.get("content") or []),
                }
            ],
            "system": [],
        }

    def convert_tool_blocks_to_text(self, messages: list) -> list:
        converted = []
        for message in messages:
            if not isinstance(message, dict) or not isinstance(message.get("content"), list):
                converted.append(message)
                continue
            blocks = []
            for block in message["content"]:
                if isinstance(block, dict) and isinstance(block.get("toolUse"), dict):
                    tool_use = block["toolUse"]
                    blocks.append({
                        "text": tool_call_text(
                            tool_use.get("name", "unknown"), tool_use.get("input")
                        )
                    })
                elif isinstance(block, dict) and isinstance(block.get("toolResult"), dict):
                    blocks.append({
                        "text": tool_result_text(render_tool_result(block["toolResult"]))
                    })
                else:
                    blocks.append(block)
            converted.append({**message, "content": blocks})
        return converted
