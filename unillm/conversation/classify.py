"""
Shape predicates for media content blocks across provider dialects.

Every predicate inspects only the presence and type of nested fields.  A
block loaded back from storage carries boxed bytes (``{"_base64": ...}``)
where the live block carried ``bytes``; both forms must match.  Anything
unrecognised answers ``False`` and is left alone by the callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from unillm.conversation.codec import is_binary, is_boxed_binary

IMAGE_PLACEHOLDER = "[Image removed from conversation history]"
DOCUMENT_PLACEHOLDER = "[Document removed from conversation history]"
VIDEO_PLACEHOLDER = "[Video removed from conversation history]"

PLACEHOLDERS = {
    "image": IMAGE_PLACEHOLDER,
    "document": DOCUMENT_PLACEHOLDER,
    "video": VIDEO_PLACEHOLDER,
}

# Gemini inline data carries no type tag distinguishing an image payload
# from a short inline string, so small payloads are never considered.
MIN_INLINE_DATA_LENGTH = 1000

BEDROCK_MEDIA_KINDS = ("image", "document", "video")


@dataclass(frozen=True)
class BlockMatch:
    """
    A recognised media block.

    *kind* is ``image``, ``document`` or ``video``.  *typed* is ``True`` for
    dialects whose text blocks carry ``"type": "text"`` (OpenAI, Claude).
    """

    kind: str
    typed: bool = False

    @property
    def placeholder(self) -> str:
        return PLACEHOLDERS[self.kind]


BlockClassifier = Callable[[Any], "BlockMatch | None"]
PlaceholderFactory = Callable[["BlockMatch"], dict]


def placeholder_block(match: BlockMatch) -> dict[str, str]:
    if match.typed:
        return {"type": "text", "text": match.placeholder}
    return {"text": match.placeholder}


def _get(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


# ---------------------------------------------------------------------------
# Bedrock Converse
# ---------------------------------------------------------------------------


def _is_bedrock_media(block: Any, kind: str) -> bool:
    payload = _get(block, kind, "source", "bytes")
    return is_binary(payload) or is_boxed_binary(payload)


def is_bedrock_image_block(block: Any) -> bool:
    return _is_bedrock_media(block, "image")


def is_bedrock_document_block(block: Any) -> bool:
    return _is_bedrock_media(block, "document")


def is_bedrock_video_block(block: Any) -> bool:
    return _is_bedrock_media(block, "video")


def bedrock_media_kind(block: Any) -> str | None:
    for kind in BEDROCK_MEDIA_KINDS:
        if _is_bedrock_media(block, kind):
            return kind
    return None


# ---------------------------------------------------------------------------
# OpenAI chat
# ---------------------------------------------------------------------------


def is_image_data_url(value: Any) -> bool:
    return (
        isinstance(value, str)
        and value.startswith("data:image/")
        and ";base64," in value
    )


def is_openai_base64_image_block(block: Any) -> bool:
    if not isinstance(block, dict) or block.get("type") != "image_url":
        return False
    return is_image_data_url(_get(block, "image_url", "url"))


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


def is_gemini_inline_data_block(block: Any) -> bool:
    data = _get(block, "inlineData", "data")
    return isinstance(data, str) and len(data) > MIN_INLINE_DATA_LENGTH


def gemini_media_kind(block: Any) -> str:
    mime = _get(block, "inlineData", "mimeType")
    if isinstance(mime, str):
        if mime.startswith("image/"):
            return "image"
        if mime.startswith("video/"):
            return "video"
        return "document"
    return "image"


# ---------------------------------------------------------------------------
# Anthropic / Claude
# ---------------------------------------------------------------------------


def is_claude_base64_block(block: Any) -> bool:
    if not isinstance(block, dict) or block.get("type") not in ("image", "document"):
        return False
    source = block.get("source")
    return (
        isinstance(source, dict)
        and source.get("type") == "base64"
        and isinstance(source.get("data"), str)
    )


# ---------------------------------------------------------------------------
# Composite matchers
# ---------------------------------------------------------------------------


def match_bedrock_block(block: Any) -> BlockMatch | None:
    kind = bedrock_media_kind(block)
    return BlockMatch(kind) if kind else None


def match_openai_block(block: Any) -> BlockMatch | None:
    if is_openai_base64_image_block(block):
        return BlockMatch("image", typed=True)
    return None


def match_gemini_block(block: Any) -> BlockMatch | None:
    if is_gemini_inline_data_block(block):
        return BlockMatch(gemini_media_kind(block))
    return None


def match_claude_block(block: Any) -> BlockMatch | None:
    if is_claude_base64_block(block):
        return BlockMatch(block["type"], typed=True)
    return None


def match_binary_block(block: Any) -> BlockMatch | None:
    """Match a media block carrying raw or boxed bytes (Bedrock)."""
    return match_bedrock_block(block)


def match_base64_block(block: Any) -> BlockMatch | None:
    """Match a media block carrying a base64 string in any dialect."""
    return (
        match_openai_block(block)
        or match_gemini_block(block)
        or match_claude_block(block)
    )
