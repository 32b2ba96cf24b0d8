from unillm.dialects.base import Dialect
from unillm.dialects.bedrock import BedrockDialect
from unillm.dialects.claude import ClaudeDialect
from unillm.dialects.gemini import GeminiDialect
from unillm.dialects.openai import GroqDialect, OpenAIDialect
from unillm.dialects.registry import DialectRouter

__all__ = [
    "BedrockDialect",
    "ClaudeDialect",
    "Dialect",
    "DialectRouter",
    "GeminiDialect",
    "GroqDialect",
    "OpenAIDialect",
]
