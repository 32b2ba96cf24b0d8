"""Tests for the Claude dialect."""

from __future__ import annotations

import pytest
from anthropic.types import Message, TextBlock, ToolUseBlock, Usage

from unillm.dialects.claude import (
    ClaudeDialect,
    fix_orphaned_tool_use,
    merge_consecutive_user_messages,
    sanitize_empty_text_blocks,
    validate_tool_definitions,
)
from unillm.errors import ToolSchemaError


def _tool_use(tid: str = "toolu_1", name: str = "search") -> dict:
    return {"type": "tool_use", "id": tid, "name": name, "input": {"q": "x"}}


class TestMergeConsecutiveUsers:
    def test_string_contents_become_text_blocks(self):
        merged = merge_consecutive_user_messages([
            {"role": "user", "content": "first"},
            {"role": "user", "content": [{"type": "text", "text": "second"}]},
            {"role": "assistant", "content": "reply"},
        ])
        assert merged == [
            {
                "role": "user",
                "content": [{"type": "text", "text": "first"}, {"type": "text", "text": "second"}],
            },
            {"role": "assistant", "content": "reply"},
        ]

    def test_single_user_message_unchanged(self):
        messages = [{"role": "user", "content": "only"}]
        assert merge_consecutive_user_messages(messages) == messages


class TestSanitize:
    def test_drops_empty_text_blocks_and_messages(self):
        cleaned = sanitize_empty_text_blocks([
            {"role": "user", "content": [{"type": "text", "text": "  "}, {"type": "text", "text": "ok"}]},
            {"role": "assistant", "content": [{"type": "text", "text": ""}]},
            {"role": "user", "content": ""},
        ])
        assert cleaned == [{"role": "user", "content": [{"type": "text", "text": "ok"}]}]


class TestOrphanRepair:
    def test_string_user_content_converted(self):
        repaired = fix_orphaned_tool_use([
            {"role": "assistant", "content": [_tool_use()]},
            {"role": "user", "content": "stop"},
        ])
        content = repaired[1]["content"]
        assert content[0]["type"] == "tool_result"
        assert content[0]["tool_use_id"] == "toolu_1"
        assert content[0]["is_error"] is True
        assert "interrupted" in content[0]["content"]
        assert content[1] == {"type": "text", "text": "stop"}

    def test_results_split_across_user_messages(self):
        messages = [
            {"role": "assistant", "content": [_tool_use("a"), _tool_use("b")]},
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "a", "content": "1"}]},
            {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "b", "content": "2"}]},
        ]
        assert fix_orphaned_tool_use(messages) == messages


class TestValidateTools:
    def test_valid_tool(self):
        validate_tool_definitions([
            {"name": "search", "input_schema": {"type": "object", "properties": {}}}
        ])

    @pytest.mark.parametrize(
        "tool",
        [
            {"input_schema": {"type": "object"}},
            {"name": "", "input_schema": {"type": "object"}},
            {"name": "bad", "input_schema": {"type": "array"}},
            {"name": "bad"},
        ],
    )
    def test_invalid_tools_raise(self, tool):
        with pytest.raises(ToolSchemaError, match="Invalid tool definition"):
            validate_tool_definitions([tool])

    def test_tool_schema_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_tool_definitions([{"name": "bad", "input_schema": {"type": "string"}}])


class TestClaudeDialect:
    def test_response_to_prompt_from_sdk_message(self):
        message = Message(
            id="msg_1",
            type="message",
            role="assistant",
            model="claude-test",
            content=[
                TextBlock(type="text", text="Looking"),
                ToolUseBlock(type="tool_use", id="toolu_1", name="search", input={"q": "x"}),
            ],
            stop_reason="tool_use",
            usage=Usage(input_tokens=1, output_tokens=1),
        )
        prompt = ClaudeDialect().response_to_prompt(message)
        assert prompt["system"] == []
        content = prompt["messages"][0]["content"]
        assert content[0]["text"] == "Looking"
        assert content[1]["type"] == "tool_use"
        assert content[1]["id"] == "toolu_1"

    def test_merge_system_accepts_string(self):
        merged = ClaudeDialect().update_conversation(
            {"messages": [], "system": "Be brief."},
            {"messages": [], "system": [{"type": "text", "text": "Cite sources."}]},
        )
        assert merged["system"] == [
            {"type": "text", "text": "Be brief."},
            {"type": "text", "text": "Cite sources."},
        ]

    def test_prepare_request_pipeline(self):
        conversation = {
            "messages": [
                {"role": "user", "content": "search please"},
                {"role": "assistant", "content": [{"type": "text", "text": ""}, _tool_use()]},
                {"role": "user", "content": [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "found"}]},
                {"role": "user", "content": "thanks"},
            ],
            "system": [],
        }
        prepared = ClaudeDialect().prepare_request(conversation)
        msgs = prepared["messages"]
        assert [m["role"] for m in msgs] == ["user", "assistant", "user"]
        assert msgs[1]["content"] == [{"type": "text", "text": '[Tool call: search({"q": "x"})]'}]
        assert msgs[2]["content"] == [
            {"type": "text", "text": "[Tool result: found]"},
            {"type": "text", "text": "thanks"},
        ]

    def test_prepare_request_validates_tools(self):
        with pytest.raises(ToolSchemaError):
            ClaudeDialect().prepare_request({"messages": [], "system": []}, tools=[{"name": "x"}])
