"""
OpenAI chat-completion conversations (also Azure OpenAI / Azure Foundry and
Groq).

History is a bare list of chat messages.  Images travel as data URLs inside
``image_url`` parts.
"""

from __future__ import annotations

from typing import Any

from openai.types.chat import ChatCompletionMessage

from unillm.conversation.classify import BlockMatch, match_openai_block
from unillm.dialects.base import Dialect, tool_call_text, tool_result_text


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
    return ""


class OpenAIDialect(Dialect):
    @property
    def name(self) -> str:
        return "openai"

    def classify_block(self, block: Any) -> BlockMatch | None:
        return match_openai_block(block)

    def text_fields_of(self, message: Any) -> list[str]:
        if not isinstance(message, dict):
            return []
        content = message.get("content")
        if isinstance(content, str):
            return [content]
        if isinstance(content, list):
            return [
                part["text"]
                for part in content
                if isinstance(part, dict) and isinstance(part.get("text"), str)
            ]
        return []

    def tool_blocks_of(self, message: Any) -> tuple[int, int]:
        if not isinstance(message, dict):
            return 0, 0
        calls = len(message.get("tool_calls") or [])
        results = 1 if message.get("role") == "tool" else 0
        return calls, results

    def response_to_prompt(self, response: Any) -> list:
        """
        Accept a ``ChatCompletionMessage``, its dict form, or a list of
        messages.
        """
        if isinstance(response, ChatCompletionMessage):
            response = response.model_dump(exclude_none=True)
        if isinstance(response, list):
            return list(response)
        if not isinstance(response, dict):
            return []
        message: dict = {
            "role": response.get("role", "assistant"),
            "content": response.get("content"),
        }
        if response.get("tool_calls"):
            message["tool_calls"] = list(response["tool_calls"])
        return [message]

    def convert_tool_blocks_to_text(self, messages: list) -> list:
        converted = []
        for message in messages:
            if not isinstance(message, dict):
                converted.append(message)
                continue
            if message.get("role") == "tool":
                converted.append({
                    "role": "user",
                    "content": tool_result_text(_content_text(message.get("content"))),
                })
                continue
            if message.get("tool_calls"):
                lines = [_content_text(message.get("content"))] if message.get("content") else []
                for call in message["tool_calls"]:
                    function = call.get("function") or {}
                    lines.append(
                        tool_call_text(function.get("name", "unknown"), function.get("arguments"))
                    )
                rest = {k: v for k, v in message.items() if k != "tool_calls"}
                converted.append({**rest, "content": "\n".join(lines)})
                continue
            converted.append(message)
        return converted


class GroqDialect(OpenAIDialect):
    """OpenAI dialect without the reasoning fields Groq rejects."""

    @property
    def name(self) -> str:
        return "groq"

    def prepare_request(self, conversation: Any, tools: list | None = None) -> Any:
        return super().prepare_request(sanitize_reasoning(conversation), tools)


def sanitize_reasoning(messages: Any) -> list:
    """Drop ``reasoning`` fields and reasoning content parts from *messages*."""
    cleaned = []
    for message in messages or []:
        if not isinstance(message, dict):
            cleaned.append(message)
            continue
        message = {k: v for k, v in message.items() if k != "reasoning"}
        if isinstance(message.get("content"), list):
            message["content"] = [
                part
                for part in message["content"]
                if not (
                    isinstance(part, dict)
                    and (part.get("type") == "reasoning" or "reasoning" in part)
                )
            ]
        cleaned.append(message)
    return cleaned
