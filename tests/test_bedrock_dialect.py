"""Tests for the Bedrock Converse dialect."""

from __future__ import annotations

from unillm.dialects.bedrock import BedrockDialect, fix_orphaned_tool_use
from unillm.types import PipelineReport
from tests.samples import bedrock_conversation, bedrock_tool_exchange


class TestOrphanRepair:
    def test_synthetic_result_prepended(self):
        repaired = fix_orphaned_tool_use(bedrock_tool_exchange())
        first = repaired[2]["content"][0]["toolResult"]
        assert first["toolUseId"] == "abc"
        assert first["status"] == "error"
        assert "interrupted" in first["content"][0]["text"]
        assert "search" in first["content"][0]["text"]
        assert repaired[2]["content"][1] == {"text": "never mind"}

    def test_answered_tool_use_left_alone(self):
        messages = bedrock_tool_exchange()
        messages[2]["content"].insert(
            0, {"toolResult": {"toolUseId": "abc", "content": [{"text": "3 cats"}]}}
        )
        assert fix_orphaned_tool_use(messages) == messages

    def test_user_message_inserted_when_missing(self):
        messages = bedrock_tool_exchange()[:2] + [
            {"role": "assistant", "content": [{"text": "follow-up"}]}
        ]
        repaired = fix_orphaned_tool_use(messages)
        assert len(repaired) == 4
        assert repaired[2]["role"] == "user"
        assert repaired[2]["content"][0]["toolResult"]["toolUseId"] == "abc"

    def test_trailing_tool_use_not_repaired(self):
        messages = bedrock_tool_exchange()[:2]
        assert fix_orphaned_tool_use(messages) == messages

    def test_report_counts_synthesized_results(self):
        report = PipelineReport()
        fix_orphaned_tool_use(bedrock_tool_exchange(), report=report)
        assert report.tool_results_synthesized == 1

    def test_only_the_next_user_message_answers_tool_use(self):
        def use(tid):
            return {"toolUse": {"toolUseId": tid, "name": "search", "input": {}}}

        def result(tid):
            return {"toolResult": {"toolUseId": tid, "content": [{"text": "ok"}]}}

        messages = [
            {"role": "assistant", "content": [use("a"), use("b")]},
            {"role": "user", "content": [result("a")]},
            {"role": "user", "content": [result("b")]},
        ]
        repaired = fix_orphaned_tool_use(messages)
        first_user = repaired[1]["content"]
        assert [b["toolResult"]["toolUseId"] for b in first_user] == ["b", "a"]
        assert first_user[0]["toolResult"]["status"] == "error"
        assert repaired[2] == messages[2]


class TestBedrockDialect:
    def test_update_conversation_merges_messages_and_system(self):
        dialect = BedrockDialect()
        incoming = {"messages": [{"role": "user", "content": [{"text": "more"}]}], "system": [{"text": "extra"}]}
        merged = dialect.update_conversation(bedrock_conversation(), incoming)
        assert len(merged["messages"]) == 3
        assert merged["system"] == [{"text": "You are helpful."}, {"text": "extra"}]

    def test_update_conversation_from_empty(self):
        dialect = BedrockDialect()
        merged = dialect.update_conversation(None, {"messages": [{"role": "user", "content": [{"text": "hi"}]}]})
        assert merged == {"messages": [{"role": "user", "content": [{"text": "hi"}]}], "system": []}

    def test_update_conversation_accepts_message_list(self):
        dialect = BedrockDialect()
        prompt = [{"role": "user", "content": [{"text": "hi"}]}]
        merged = dialect.update_conversation(bedrock_conversation(), prompt)
        assert merged["messages"][-1] == prompt[0]
        assert merged["system"] == [{"text": "You are helpful."}]

    def test_update_conversation_repairs(self):
        dialect = BedrockDialect()
        existing = {"messages": bedrock_tool_exchange()[:2], "system": []}
        incoming = {"messages": [bedrock_tool_exchange()[2]], "system": []}
        merged = dialect.update_conversation(existing, incoming)
        assert "toolResult" in merged["messages"][2]["content"][0]

    def test_response_to_prompt_from_converse_output(self):
        response = {
            "output": {"message": {"role": "assistant", "content": [{"text": "done"}]}},
            "stopReason": "end_turn",
        }
        assert BedrockDialect().response_to_prompt(response) == {
            "messages": [{"role": "assistant", "content": [{"text": "done"}]}],
            "system": [],
        }

    def test_prepare_request_without_tools_converts_blocks(self):
        messages = bedrock_tool_exchange()
        messages[2]["content"].insert(
            0, {"toolResult": {"toolUseId": "abc", "content": [{"text": "3 cats"}, {"json": {"n": 3}}]}}
        )
        prepared = BedrockDialect().prepare_request({"messages": messages, "system": []})
        assistant = prepared["messages"][1]["content"]
        assert assistant[1] == {"text": '[Tool call: search({"q": "cats"})]'}
        assert prepared["messages"][2]["content"][0] == {"text": '[Tool result: 3 cats\n{"n": 3}]'}

    def test_prepare_request_with_tools_keeps_blocks(self):
        conv = {"messages": bedrock_tool_exchange(), "system": []}
        prepared = BedrockDialect().prepare_request(conv, tools=[{"toolSpec": {"name": "search"}}])
        assert "toolUse" in prepared["messages"][1]["content"][1]

    def test_tool_text_is_clipped(self):
        messages = [
            {"role": "assistant", "content": [{"toolUse": {"toolUseId": "x", "name": "big", "input": {"q": "a" * 2000}}}]},
        ]
        text = BedrockDialect().convert_tool_blocks_to_text(messages)[0]["content"][0]["text"]
        assert text.endswith("...)]")
        assert len(text) < 700

    def test_media_classification_is_bedrock_only(self):
        dialect = BedrockDialect()
        image = bedrock_conversation()["messages"][0]["content"][1]
        assert dialect.classify_binary_block(image).kind == "image"
        assert dialect.classify_base64_block(image) is None
        assert dialect.placeholder_for(dialect.classify_block(image)) == {
            "text": "[Image removed from conversation history]"
        }
