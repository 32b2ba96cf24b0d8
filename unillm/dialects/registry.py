"""
Dialect router -- maps provider names to conversation dialects.

The provider a caller declares decides which dialect handles the history.
Several provider names share one dialect (Claude on Vertex AI and the
Anthropic API speak the same wire format, Azure deployments speak OpenAI).
"""

from __future__ import annotations

import logging

from unillm.dialects.base import Dialect
from unillm.dialects.bedrock import BedrockDialect
from unillm.dialects.claude import ClaudeDialect
from unillm.dialects.gemini import GeminiDialect
from unillm.dialects.openai import GroqDialect, OpenAIDialect

logger = logging.getLogger(__name__)

BUILTIN_PROVIDERS: dict[str, str] = {
    "bedrock": "bedrock",
    "vertexai-claude": "claude",
    "claude": "claude",
    "anthropic": "claude",
    "vertexai-gemini": "gemini",
    "gemini": "gemini",
    "openai": "openai",
    "azure_foundry": "openai",
    "azure_openai": "openai",
    "groq": "groq",
}


class DialectRouter:
    """
    Resolves provider names to ``Dialect`` instances.
    """

    def __init__(self, *, builtins: bool = True) -> None:
        self._dialects: dict[str, Dialect] = {}
        self._providers: dict[str, str] = {}
        if builtins:
            for dialect in (
                BedrockDialect(),
                ClaudeDialect(),
                GeminiDialect(),
                OpenAIDialect(),
                GroqDialect(),
            ):
                self.register_dialect(dialect)
            for provider, dialect_name in BUILTIN_PROVIDERS.items():
                self.register_provider(provider, dialect_name)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_dialect(self, dialect: Dialect) -> None:
        """Register *dialect* under its own name.  Overwrites any existing entry."""
        self._dialects[dialect.name] = dialect
        self._providers.setdefault(dialect.name, dialect.name)

    def register_provider(self, provider: str, dialect_name: str) -> None:
        """
        Route *provider* to the dialect called *dialect_name*.

        Raises ``KeyError`` if the dialect has not been registered.
        """
        if dialect_name not in self._dialects:
            raise KeyError(
                f"Unknown dialect {dialect_name!r}. "
                f"Registered: {list(self._dialects)}"
            )
        self._providers[provider] = dialect_name
        logger.debug("Routing provider %s to dialect %s", provider, dialect_name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, provider: str) -> Dialect:
        """
        Return the dialect for *provider*.

        Raises ``KeyError`` if *provider* is not known.
        """
        dialect_name = self._providers.get(provider)
        if dialect_name is None:
            raise KeyError(
                f"Unknown provider {provider!r}. "
                f"Registered: {self.provider_names}"
            )
        return self._dialects[dialect_name]

    def __contains__(self, provider: object) -> bool:
        return provider in self._providers

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    @property
    def dialect_names(self) -> list[str]:
        return list(self._dialects)
