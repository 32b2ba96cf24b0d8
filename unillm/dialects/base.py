"""Abstract base class for provider conversation dialects."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from unillm.conversation.classify import BlockMatch, placeholder_block
from unillm.types import PipelineReport

TOOL_TEXT_MAX_CHARS = 500


def clip(text: str, limit: int = TOOL_TEXT_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def tool_call_text(name: str, arguments: Any) -> str:
    """Render a tool call as plain text, e.g. ``[Tool call: search({...})]``."""
    if isinstance(arguments, str):
        args = arguments
    else:
        args = json.dumps(arguments if arguments is not None else {}, default=str)
    return f"[Tool call: {name}({clip(args)})]"


def tool_result_text(content: str) -> str:
    return f"[Tool result: {clip(content)}]"


def interrupted_tool_text(name: str) -> str:
    return (
        f"[Tool interrupted: '{name}' did not complete because the user "
        "stopped the execution]"
    )


def role_of(message: Any) -> str | None:
    return message.get("role") if isinstance(message, dict) else None


def repair_orphaned_tool_use(
    messages: list,
    *,
    tool_uses: Callable[[dict], list[tuple[str, str]]],
    tool_result_ids: Callable[[dict], set[str]],
    synthesize: Callable[[str, str], dict],
    blocks_of: Callable[[dict], list],
    scan_user_run: bool = False,
    report: PipelineReport | None = None,
) -> list:
    """
    Give every unanswered tool call a synthetic result.

    An assistant message whose tool calls have no matching result in the
    user message directly after it was interrupted before the tools
    finished.  With *scan_user_run* the results may be spread over the whole
    run of consecutive user messages that follows.  Placeholder results are prepended to the next user message,
    or a new user message is inserted when the next message is not a user
    message.  A trailing assistant message is left alone: its results are
    still expected.
    """
    repaired = list(messages)
    i = 0
    while i < len(repaired) - 1:
        msg = repaired[i]
        uses = tool_uses(msg) if role_of(msg) == "assistant" else []
        if uses:
            answered: set[str] = set()
            j = i + 1
            while j < len(repaired) and role_of(repaired[j]) == "user":
                answered |= tool_result_ids(repaired[j])
                if not scan_user_run:
                    break
                j += 1

            missing = [(tid, name) for tid, name in uses if tid not in answered]
            if missing:
                synthetic = [synthesize(tid, name) for tid, name in missing]
                nxt = repaired[i + 1]
                if role_of(nxt) == "user":
                    repaired[i + 1] = {**nxt, "content": synthetic + blocks_of(nxt)}
                else:
                    repaired.insert(i + 1, {"role": "user", "content": synthetic})
                if report is not None:
                    report.tool_results_synthesized += len(synthetic)
        i += 1
    return repaired


class Dialect(ABC):
    """
    Conversation handling for one provider wire format.

    A dialect is chosen from the provider the caller declares; nothing is
    sniffed from the data.  Subclasses supply block classification, text
    extraction, the tool-block conversions and any structural repair the
    provider needs.

    List-shaped dialects store history as a bare list of messages.
    Prompt-shaped dialects store ``{"messages": [...], "system": [...]}``.
    """

    #: ``True`` when the history is a bare list of messages.
    history_is_list: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Dialect name (e.g. ``"bedrock"``)."""
        ...

    # ------------------------------------------------------------------
    # Capability interface used by the tree walks
    # ------------------------------------------------------------------

    @abstractmethod
    def classify_block(self, block: Any) -> BlockMatch | None:
        """Return a match for a strippable media block of this dialect."""
        ...

    def classify_binary_block(self, block: Any) -> BlockMatch | None:
        """Match media blocks whose payload is raw (or boxed) bytes."""
        return None

    def classify_base64_block(self, block: Any) -> BlockMatch | None:
        """Match media blocks whose payload is a base64 string."""
        return self.classify_block(block)

    def placeholder_for(self, match: BlockMatch) -> dict:
        """Build the block that replaces a stripped media block."""
        return placeholder_block(match)

    @abstractmethod
    def text_fields_of(self, message: Any) -> list[str]:
        """Return the text strings carried by *message*."""
        ...

    @abstractmethod
    def tool_blocks_of(self, message: Any) -> tuple[int, int]:
        """Return ``(tool_calls, tool_results)`` carried by *message*."""
        ...

    # ------------------------------------------------------------------
    # History shape
    # ------------------------------------------------------------------

    def empty(self) -> Any:
        if self.history_is_list:
            return []
        return {"messages": [], "system": []}

    def messages_of(self, history: Any) -> list:
        if history is None:
            return []
        if isinstance(history, list):
            return history
        if isinstance(history, dict):
            return list(history.get("messages") or [])
        return []

    def with_messages(self, history: Any, messages: list) -> Any:
        if self.history_is_list:
            return list(messages)
        base = history if isinstance(history, dict) else self.empty()
        return {**base, "messages": list(messages)}

    # ------------------------------------------------------------------
    # Merge and repair
    # ------------------------------------------------------------------

    def update_conversation(
        self,
        existing: Any,
        incoming: Any,
        *,
        report: PipelineReport | None = None,
    ) -> Any:
        """Append *incoming* to *existing* and repair the merged messages."""
        if self.history_is_list:
            merged = self.messages_of(existing) + self.messages_of(incoming)
            return self.repair_messages(merged, report=report)

        base = existing if isinstance(existing, dict) else self.empty()
        # A bare message list is accepted as a prompt with no system part.
        new_system = incoming.get("system") if isinstance(incoming, dict) else None
        return {
            **base,
            "messages": self.repair_messages(
                self.messages_of(base) + self.messages_of(incoming), report=report
            ),
            "system": self.merge_system(base.get("system"), new_system),
        }

    def merge_system(self, existing: Any, incoming: Any) -> list:
        return list(existing or []) + list(incoming or [])

    def repair_messages(
        self, messages: list, *, report: PipelineReport | None = None
    ) -> list:
        """Structural repair applied after every merge.  No-op by default."""
        return messages

    @abstractmethod
    def response_to_prompt(self, response: Any) -> Any:
        """Convert a materialised provider response into an incoming prompt."""
        ...

    # ------------------------------------------------------------------
    # Request-side cleanup
    # ------------------------------------------------------------------

    def has_tool_blocks(self, messages: Iterable) -> bool:
        return any(sum(self.tool_blocks_of(m)) for m in messages)

    @abstractmethod
    def convert_tool_blocks_to_text(self, messages: list) -> list:
        """Replace structured tool calls and results with descriptive text."""
        ...

    def prepare_request(self, conversation: Any, tools: list | None = None) -> Any:
        """
        Return the conversation as it should be sent with *tools*.

        When no tools are configured, tool blocks left in history are turned
        into text because providers reject tool blocks without a tool
        configuration.
        """
        messages = self.messages_of(conversation)
        if not tools and self.has_tool_blocks(messages):
            messages = self.convert_tool_blocks_to_text(messages)
        return self.with_messages(conversation, messages)
