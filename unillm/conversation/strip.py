"""
Turn-gated removal of media payloads from conversation trees.

Two passes share the same walk:

* :func:`strip_binary` handles blocks carrying raw bytes (Bedrock image,
  document and video blocks).  Retained blocks have their bytes boxed so the
  tree stays JSON-safe; stripped blocks are replaced whole by a text block.
* :func:`strip_base64_images` handles blocks carrying base64 strings
  (OpenAI data URLs, Gemini inline data, Claude base64 sources).  Retained
  blocks are left as they are.

A whole block is replaced rather than just its payload field: a media block
with its bytes removed is rejected by the provider when the history is sent
back.
"""

from __future__ import annotations

from typing import Any

from unillm.conversation import codec
from unillm.conversation.classify import (
    IMAGE_PLACEHOLDER,
    BlockClassifier,
    PlaceholderFactory,
    match_base64_block,
    match_binary_block,
    placeholder_block,
)
from unillm.conversation.meta import META_KEY, get_meta
from unillm.types import PipelineReport, RetentionPolicy


def strip_binary(
    tree: Any,
    policy: RetentionPolicy | None = None,
    *,
    classify: BlockClassifier | None = None,
    placeholder: PlaceholderFactory | None = None,
    report: PipelineReport | None = None,
) -> Any:
    """
    Replace or box every binary media payload in *tree*.

    The default policy never strips, which still boxes all bytes.
    *placeholder* builds the replacement block for a stripped match.
    """
    policy = policy or RetentionPolicy.never()
    retain = policy.retains(get_meta(tree).turn_number)
    return _BinaryWalk(
        retain, classify or match_binary_block, placeholder or placeholder_block, report
    ).walk(tree)


def strip_base64_images(
    tree: Any,
    policy: RetentionPolicy | None = None,
    *,
    classify: BlockClassifier | None = None,
    placeholder: PlaceholderFactory | None = None,
    report: PipelineReport | None = None,
) -> Any:
    """Replace base64 media blocks with placeholders once *policy* expires."""
    policy = policy or RetentionPolicy.never()
    retain = policy.retains(get_meta(tree).turn_number)
    return _Base64Walk(
        retain, classify or match_base64_block, placeholder or placeholder_block, report
    ).walk(tree)


class _BinaryWalk:
    def __init__(
        self,
        retain: bool,
        classify: BlockClassifier,
        placeholder: PlaceholderFactory,
        report: PipelineReport | None,
    ) -> None:
        self.retain = retain
        self.classify = classify
        self.placeholder = placeholder
        self.report = report

    def walk(self, node: Any) -> Any:
        if codec.is_binary(node):
            if self.retain:
                self._count(boxed=1)
                return codec.box(node)
            self._count(stripped=1)
            return IMAGE_PLACEHOLDER
        if isinstance(node, (list, tuple)):
            return [self.walk(item) for item in node]
        if isinstance(node, dict):
            match = self.classify(node)
            if match is not None:
                if self.retain:
                    self._count(boxed=1)
                    return codec.serialize(node)
                self._count(stripped=1)
                return self.placeholder(match)
            return {
                key: value if key == META_KEY else self.walk(value)
                for key, value in node.items()
            }
        return node

    def _count(self, *, boxed: int = 0, stripped: int = 0) -> None:
        if self.report is not None:
            self.report.binary_boxed += boxed
            self.report.binary_stripped += stripped


class _Base64Walk:
    def __init__(
        self,
        retain: bool,
        classify: BlockClassifier,
        placeholder: PlaceholderFactory,
        report: PipelineReport | None,
    ) -> None:
        self.retain = retain
        self.classify = classify
        self.placeholder = placeholder
        self.report = report

    def walk(self, node: Any) -> Any:
        if isinstance(node, (list, tuple)):
            return [self.walk(item) for item in node]
        if isinstance(node, dict):
            match = self.classify(node)
            if match is not None:
                if self.retain:
                    return dict(node)
                if self.report is not None:
                    self.report.base64_stripped += 1
                return self.placeholder(match)
            return {
                key: value if key == META_KEY else self.walk(value)
                for key, value in node.items()
            }
        return node
