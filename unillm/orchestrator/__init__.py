"""Turn lifecycle orchestration."""

from unillm.orchestrator.core import ConversationOptions, TurnOrchestrator, TurnResult

__all__ = ["ConversationOptions", "TurnOrchestrator", "TurnResult"]
