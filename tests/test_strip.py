"""Tests for turn-gated media stripping."""

from __future__ import annotations

import json

import pytest

from unillm.conversation import codec
from unillm.conversation.classify import (
    DOCUMENT_PLACEHOLDER,
    IMAGE_PLACEHOLDER,
    match_bedrock_block,
)
from unillm.conversation.meta import META_KEY
from unillm.conversation.strip import strip_base64_images, strip_binary
from unillm.types import PipelineReport, RetentionPolicy
from tests.samples import (
    PNG_BYTES,
    bedrock_conversation,
    bedrock_document_block,
    claude_conversation,
    claude_document_block,
    gemini_conversation,
    openai_conversation,
    openai_data_url_block,
    openai_http_image_block,
)

FORCED = RetentionPolicy.forced()


def _has_numeric_key_blob(node) -> bool:
    if isinstance(node, list):
        return any(_has_numeric_key_blob(item) for item in node)
    if isinstance(node, dict):
        if len(node) > 10 and all(k.isdigit() for k in node):
            return True
        return any(_has_numeric_key_blob(v) for v in node.values())
    return False


class TestStripBinary:
    def test_document_placeholder(self):
        out = strip_binary([bedrock_document_block(b"\x00\x01\x02\x03")], FORCED)
        assert out == [{"text": DOCUMENT_PLACEHOLDER}]

    def test_default_policy_boxes_bytes(self):
        out = strip_binary(bedrock_conversation())
        image = out["messages"][0]["content"][1]["image"]
        assert image["source"]["bytes"] == codec.box(PNG_BYTES)
        assert image["format"] == "png"

    @pytest.mark.parametrize("policy", [RetentionPolicy.never(), FORCED, RetentionPolicy(2, current_turn=1)])
    def test_output_is_json_safe(self, policy):
        tree = {"blob": bytes(64), "messages": bedrock_conversation()["messages"]}
        out = strip_binary(tree, policy)
        assert not codec.contains_binary(out)
        assert not _has_numeric_key_blob(json.loads(json.dumps(out)))

    def test_bare_bytes_stripped_to_image_placeholder(self):
        assert strip_binary({"data": b"xyz"}, FORCED) == {"data": IMAGE_PLACEHOLDER}

    def test_custom_placeholder(self):
        out = strip_binary(
            [bedrock_document_block(b"\x00\x01")],
            FORCED,
            placeholder=lambda match: {"text": f"<{match.kind} dropped>"},
        )
        assert out == [{"text": "<document dropped>"}]

    def test_forced_strip_is_idempotent(self):
        once = strip_binary(bedrock_conversation(), FORCED)
        assert strip_binary(once, FORCED) == once

    def test_boxed_blocks_are_stripped_after_reload(self):
        stored = codec.serialize(bedrock_conversation())
        out = strip_binary(stored, FORCED)
        assert out["messages"][0]["content"][1] == {"text": IMAGE_PLACEHOLDER}

    def test_turn_gate_boundary(self):
        doc = [bedrock_document_block()]
        assert strip_binary(doc, RetentionPolicy(3, current_turn=3)) == [{"text": DOCUMENT_PLACEHOLDER}]
        kept = strip_binary(doc, RetentionPolicy(3, current_turn=2))
        assert match_bedrock_block(kept[0]).kind == "document"

    def test_turn_from_conversation_meta(self):
        conv = {**bedrock_conversation(), META_KEY: {"turnNumber": 2}}
        out = strip_binary(conv, RetentionPolicy(2))
        assert out["messages"][0]["content"][1] == {"text": IMAGE_PLACEHOLDER}
        assert out[META_KEY] == {"turnNumber": 2}

    def test_report_counts(self):
        report = PipelineReport()
        strip_binary(bedrock_conversation(), FORCED, report=report)
        assert report.binary_stripped == 1
        assert report.binary_boxed == 0

    def test_input_not_mutated(self):
        conv = bedrock_conversation()
        strip_binary(conv, FORCED)
        assert conv == bedrock_conversation()


class TestStripBase64:
    def test_http_url_never_stripped(self):
        block = openai_http_image_block()
        assert strip_base64_images([block], FORCED) == [block]

    def test_data_url_stripped(self):
        assert strip_base64_images([openai_data_url_block()], FORCED) == [
            {"type": "text", "text": IMAGE_PLACEHOLDER}
        ]

    def test_openai_conversation(self):
        out = strip_base64_images(openai_conversation(), FORCED)
        parts = out[1]["content"]
        assert parts[1] == {"type": "text", "text": IMAGE_PLACEHOLDER}
        assert parts[2] == openai_http_image_block()

    def test_gemini_uses_untyped_placeholder(self):
        out = strip_base64_images(gemini_conversation(), FORCED)
        assert out[0]["parts"][1] == {"text": IMAGE_PLACEHOLDER}

    def test_claude_document(self):
        out = strip_base64_images([claude_document_block()], FORCED)
        assert out == [{"type": "text", "text": DOCUMENT_PLACEHOLDER}]

    def test_retained_blocks_untouched(self):
        conv = claude_conversation()
        assert strip_base64_images(conv, RetentionPolicy(5, current_turn=4)) == conv

    def test_classifier_restricts_dialect(self):
        # Only Claude shapes are considered; the OpenAI block is left alone.
        from unillm.conversation.classify import match_claude_block

        tree = [openai_data_url_block(), claude_document_block()]
        out = strip_base64_images(tree, FORCED, classify=match_claude_block)
        assert out[0] == openai_data_url_block()
        assert out[1]["text"] == DOCUMENT_PLACEHOLDER

    def test_custom_placeholder(self):
        out = strip_base64_images(
            [openai_data_url_block()],
            FORCED,
            placeholder=lambda match: {"type": "text", "text": f"<{match.kind} dropped>"},
        )
        assert out == [{"type": "text", "text": "<image dropped>"}]

    def test_meta_preserved(self):
        conv = {**claude_conversation(), META_KEY: {"turnNumber": 9}}
        assert strip_base64_images(conv, FORCED)[META_KEY] == {"turnNumber": 9}

    def test_idempotent(self):
        once = strip_base64_images(openai_conversation(), FORCED)
        assert strip_base64_images(once, FORCED) == once
