"""
Gemini conversations on Vertex AI.

History is a bare list of ``Content`` objects (``{"role": "user" | "model",
"parts": [...]}``).  Media travels as ``inlineData`` parts holding base64
strings.
"""

from __future__ import annotations

import json
from typing import Any

from unillm.conversation.classify import BlockMatch, match_gemini_block
from unillm.dialects.base import Dialect, tool_call_text, tool_result_text


def _parts(message: Any) -> list:
    parts = message.get("parts") if isinstance(message, dict) else None
    return list(parts) if isinstance(parts, list) else []


class GeminiDialect(Dialect):
    @property
    def name(self) -> str:
        return "gemini"

    def classify_block(self, block: Any) -> BlockMatch | None:
        return match_gemini_block(block)

    def text_fields_of(self, message: Any) -> list[str]:
        return [
            part["text"]
            for part in _parts(message)
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]

    def tool_blocks_of(self, message: Any) -> tuple[int, int]:
        parts = [p for p in _parts(message) if isinstance(p, dict)]
        return (
            sum(1 for p in parts if "functionCall" in p),
            sum(1 for p in parts if "functionResponse" in p),
        )

    def response_to_prompt(self, response: Any) -> list:
        """
        Accept a ``GenerateContentResponse`` dict (first candidate is used),
        a single ``Content`` dict, or a list of contents.
        """
        if isinstance(response, list):
            return list(response)
        if not isinstance(response, dict):
            return []
        if "candidates" in response:
            candidates = response.get("candidates")
            first = candidates[0] if isinstance(candidates, list) and candidates else None
            content = first.get("content") if isinstance(first, dict) else None
            return [content] if isinstance(content, dict) else []
        return [response]

    def convert_tool_blocks_to_text(self, messages: list) -> list:
        converted = []
        for message in messages:
            if not isinstance(message, dict) or not isinstance(message.get("parts"), list):
                converted.append(message)
                continue
            parts = []
            for part in message["parts"]:
                if isinstance(part, dict) and isinstance(part.get("functionCall"), dict):
                    call = part["functionCall"]
                    parts.append({
                        "text": tool_call_text(call.get("name", "unknown"), call.get("args"))
                    })
                elif isinstance(part, dict) and isinstance(part.get("functionResponse"), dict):
                    response = part["functionResponse"].get("response")
                    parts.append({
                        "text": tool_result_text(json.dumps(response, default=str))
                    })
                else:
                    parts.append(part)
            converted.append({**message, "parts": parts})
        return converted
