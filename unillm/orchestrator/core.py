"""
Turn orchestrator -- the per-turn lifecycle that ties everything together.

For one round trip the orchestrator:
1. Splits the stored conversation into bare history and ``TurnContext``
2. Appends the prompt (and, once it arrives, the response), repairing
   orphaned tool calls on every merge
3. Increments the turn
4. Strips or boxes media (binary and base64)
5. Truncates oversized text
6. Removes stale heartbeats
7. Re-attaches the turn context for storage

The orchestrator keeps no state between calls.  The caller persists
``TurnResult.conversation`` and passes it back on the next turn.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from unillm.conversation.heartbeat import strip_heartbeats
from unillm.conversation.meta import attach_meta, detach_meta
from unillm.conversation.strip import strip_base64_images, strip_binary
from unillm.conversation.truncate import truncate_conversation
from unillm.dialects.base import Dialect
from unillm.dialects.registry import DialectRouter
from unillm.types import (
    PipelineReport,
    RetentionPolicy,
    TruncationOptions,
    TurnContext,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationOptions:
    """
    Retention settings applied when a turn completes.

    Parameters
    ----------
    strip_images_after_turns : float
        Media is kept while the turn number is below this value.  ``inf``
        keeps media forever (bytes are still boxed).
    strip_text_max_tokens : int | None
        Token budget per text field; ``None`` or ``0`` disables truncation.
    strip_heartbeats_after_turns : float
        Heartbeat messages are kept while the turn number is below this.
    chars_per_token : int
        Characters per token used to turn the budget into a length.
    """

    strip_images_after_turns: float = math.inf
    strip_text_max_tokens: int | None = None
    strip_heartbeats_after_turns: float = 1
    chars_per_token: int = 4


@dataclass
class TurnResult:
    """Outcome of a completed turn."""

    conversation: Any
    turn: TurnContext
    report: PipelineReport = field(default_factory=PipelineReport)


class TurnOrchestrator:
    """
    Runs the turn lifecycle for any registered provider.

    Parameters
    ----------
    router : DialectRouter
        Provider-to-dialect mapping.  Defaults to the built-in providers.
    options : ConversationOptions
        Default retention settings; each call may override them.
    """

    def __init__(
        self,
        router: DialectRouter | None = None,
        options: ConversationOptions | None = None,
    ) -> None:
        self.router = router or DialectRouter()
        self.options = options or ConversationOptions()

    def dialect_for(self, provider: str) -> Dialect:
        return self.router.resolve(provider)

    # ------------------------------------------------------------------
    # Request side
    # ------------------------------------------------------------------

    def begin_turn(
        self,
        provider: str,
        conversation: Any,
        prompt: Any,
        tools: list | None = None,
    ) -> tuple[Any, TurnContext]:
        """
        Build the working conversation to send for this turn.

        Returns the request-ready history and the turn context it was
        loaded with.  The stored conversation is not modified.
        """
        dialect = self.dialect_for(provider)
        history, ctx = self._load(dialect, conversation)
        working = dialect.update_conversation(history, prompt)
        return dialect.prepare_request(working, tools), ctx

    # ------------------------------------------------------------------
    # Response side
    # ------------------------------------------------------------------

    def complete_turn(
        self,
        provider: str,
        conversation: Any,
        prompt: Any,
        response: Any,
        options: ConversationOptions | None = None,
    ) -> TurnResult:
        """
        Merge *prompt* and *response* into *conversation* and produce the
        conversation to persist.

        *response* may be a provider SDK object or its dict form; see each
        dialect's ``response_to_prompt``.
        """
        dialect = self.dialect_for(provider)
        report = PipelineReport()
        history, ctx = self._load(dialect, conversation)

        merged = dialect.update_conversation(history, prompt, report=report)
        if response is not None:
            merged = dialect.update_conversation(
                merged, dialect.response_to_prompt(response), report=report
            )
        logger.debug(
            "Merged %s turn %d (%d messages)",
            dialect.name, ctx.turn_number, len(dialect.messages_of(merged)),
        )
        return self._finish(dialect, merged, ctx, options, report)

    def finalize(
        self,
        provider: str,
        history: Any,
        ctx: TurnContext,
        options: ConversationOptions | None = None,
    ) -> TurnResult:
        """
        Run the post-merge stages on a history the caller merged itself.

        Used when the response was accumulated elsewhere, e.g. from a
        stream.
        """
        dialect = self.dialect_for(provider)
        if history is None:
            history = dialect.empty()
        return self._finish(dialect, history, ctx, options, PipelineReport())

    def clean(
        self,
        provider: str,
        conversation: Any,
        options: ConversationOptions | None = None,
        *,
        turn: int | None = None,
    ) -> TurnResult:
        """
        Apply the retention stages to a stored conversation without
        advancing its turn.

        *turn* overrides the turn the policies are evaluated at.
        """
        dialect = self.dialect_for(provider)
        history, ctx = self._load(dialect, conversation)
        report = PipelineReport()
        current = ctx.turn_number if turn is None else turn
        result = self._apply_retention(dialect, history, current, options, report)
        return TurnResult(attach_meta(result, ctx), ctx, report)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(self, dialect: Dialect, conversation: Any) -> tuple[Any, TurnContext]:
        history, ctx = detach_meta(conversation)
        if history is None:
            history = dialect.empty()
        return history, ctx

    def _finish(
        self,
        dialect: Dialect,
        history: Any,
        ctx: TurnContext,
        options: ConversationOptions | None,
        report: PipelineReport,
    ) -> TurnResult:
        ctx = ctx.next()
        result = self._apply_retention(dialect, history, ctx.turn_number, options, report)
        logger.info(
            "Completed %s turn %d: %d media stripped, %d texts truncated, "
            "%d heartbeats removed, %d tool results synthesized",
            dialect.name,
            ctx.turn_number,
            report.binary_stripped + report.base64_stripped,
            report.texts_truncated,
            report.heartbeats_removed,
            report.tool_results_synthesized,
        )
        return TurnResult(attach_meta(result, ctx), ctx, report)

    def _apply_retention(
        self,
        dialect: Dialect,
        history: Any,
        turn: int,
        options: ConversationOptions | None,
        report: PipelineReport,
    ) -> Any:
        opts = options or self.options

        media_policy = RetentionPolicy(opts.strip_images_after_turns, current_turn=turn)
        result = strip_binary(
            history,
            media_policy,
            classify=dialect.classify_binary_block,
            placeholder=dialect.placeholder_for,
            report=report,
        )
        result = strip_base64_images(
            result,
            media_policy,
            classify=dialect.classify_base64_block,
            placeholder=dialect.placeholder_for,
            report=report,
        )
        logger.debug(
            "Turn %d media: %d stripped, %d boxed",
            turn, report.binary_stripped + report.base64_stripped, report.binary_boxed,
        )

        result = truncate_conversation(
            result,
            TruncationOptions(opts.strip_text_max_tokens, opts.chars_per_token),
            report=report,
        )
        logger.debug("Turn %d truncated %d text fields", turn, report.texts_truncated)

        result = strip_heartbeats(
            result,
            RetentionPolicy(opts.strip_heartbeats_after_turns, current_turn=turn),
            report=report,
        )
        logger.debug("Turn %d removed %d heartbeats", turn, report.heartbeats_removed)
        return result
