"""Tests for the Gemini dialect."""

from __future__ import annotations

from unillm.dialects.gemini import GeminiDialect
from tests.samples import gemini_conversation


class TestGeminiDialect:
    def test_response_to_prompt_from_candidates(self):
        response = {
            "candidates": [{"content": {"role": "model", "parts": [{"text": "Hi"}]}}],
            "usageMetadata": {"totalTokenCount": 3},
        }
        assert GeminiDialect().response_to_prompt(response) == [
            {"role": "model", "parts": [{"text": "Hi"}]}
        ]

    def test_response_without_candidates(self):
        assert GeminiDialect().response_to_prompt({"candidates": []}) == []

    def test_malformed_candidates_give_empty_prompt(self):
        dialect = GeminiDialect()
        assert dialect.response_to_prompt({"candidates": [None]}) == []
        assert dialect.response_to_prompt({"candidates": "oops"}) == []
        assert dialect.response_to_prompt({"candidates": [{"content": "text"}]}) == []

    def test_convert_function_parts(self):
        messages = [
            {"role": "model", "parts": [{"functionCall": {"name": "lookup", "args": {"id": 7}}}]},
            {"role": "user", "parts": [{"functionResponse": {"name": "lookup", "response": {"ok": True}}}]},
        ]
        converted = GeminiDialect().convert_tool_blocks_to_text(messages)
        assert converted[0]["parts"] == [{"text": '[Tool call: lookup({"id": 7})]'}]
        assert converted[1]["parts"] == [{"text": '[Tool result: {"ok": true}]'}]

    def test_prepare_request_converts_without_tools(self):
        messages = [{"role": "model", "parts": [{"functionCall": {"name": "f", "args": {}}}]}]
        prepared = GeminiDialect().prepare_request(messages)
        assert prepared[0]["parts"] == [{"text": "[Tool call: f({})]"}]

    def test_media_classification(self):
        dialect = GeminiDialect()
        inline = gemini_conversation()[0]["parts"][1]
        assert dialect.classify_base64_block(inline).kind == "image"
        assert dialect.classify_binary_block(inline) is None
        assert dialect.text_fields_of(gemini_conversation()[0]) == ["Look"]
