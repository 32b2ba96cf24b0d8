import math
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TurnContext:
    turn_number: int = 0

    def next(self) -> "TurnContext":
        return TurnContext(self.turn_number + 1)

    def to_dict(self) -> dict:
        return {"turnNumber": self.turn_number}


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Decides whether turn-gated content is kept or stripped.

    Content is retained while ``turn < keep_for_turns``.  ``turn`` is
    ``current_turn`` when set, otherwise the turn recorded in the
    conversation being walked.
    """

    keep_for_turns: float = math.inf
    current_turn: int | None = None

    def retains(self, default_turn: int = 0) -> bool:
        turn = self.current_turn if self.current_turn is not None else default_turn
        return turn < self.keep_for_turns

    @classmethod
    def forced(cls) -> "RetentionPolicy":
        return cls(keep_for_turns=0)

    @classmethod
    def never(cls) -> "RetentionPolicy":
        return cls(keep_for_turns=math.inf)


@dataclass(frozen=True)
class TruncationOptions:
    text_max_tokens: int | None = None
    chars_per_token: int = 4

    @property
    def max_chars(self) -> int:
        if not self.text_max_tokens:
            return 0
        return int(self.text_max_tokens) * self.chars_per_token


@dataclass
class PipelineReport:
    binary_stripped: int = 0
    binary_boxed: int = 0
    base64_stripped: int = 0
    texts_truncated: int = 0
    heartbeats_removed: int = 0
    tool_results_synthesized: int = 0

    def merge(self, other: "PipelineReport") -> None:
        self.binary_stripped += other.binary_stripped
        self.binary_boxed += other.binary_boxed
        self.base64_stripped += other.base64_stripped
        self.texts_truncated += other.texts_truncated
        self.heartbeats_removed += other.heartbeats_removed
        self.tool_results_synthesized += other.tool_results_synthesized


@dataclass
class ConversationStats:
    turn_number: int
    message_count: int
    roles: dict[str, int] = field(default_factory=dict)
    binary_blocks: int = 0
    base64_blocks: int = 0
    heartbeats: int = 0
    tool_calls: int = 0
    tool_results: int = 0
