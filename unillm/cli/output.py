"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from unillm.types import ConversationStats, PipelineReport

ROLE_COLORS = {
    "user": "blue",
    "assistant": "green",
    "model": "green",
    "system": "magenta",
    "tool": "yellow",
}


class OutputFormatter:
    """Rich-based output formatting for the unillm CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_stats(self, stats: ConversationStats, provider: str) -> None:
        roles = ", ".join(
            f"[{ROLE_COLORS.get(role, 'white')}]{role}[/]: {count}"
            for role, count in sorted(stats.roles.items())
        )
        self.console.print(Panel(
            f"[dim]Turn:[/dim] {stats.turn_number}\n"
            f"[dim]Messages:[/dim] {stats.message_count} ({roles or 'none'})\n"
            f"[dim]Binary media blocks:[/dim] {stats.binary_blocks}\n"
            f"[dim]Base64 media blocks:[/dim] {stats.base64_blocks}\n"
            f"[dim]Heartbeats:[/dim] {stats.heartbeats}\n"
            f"[dim]Tool calls / results:[/dim] {stats.tool_calls} / {stats.tool_results}",
            title=f"Conversation ({provider})",
        ))

    def format_report(self, report: PipelineReport) -> None:
        table = Table(title="Cleanup")
        table.add_column("Stage", style="cyan", no_wrap=True)
        table.add_column("Count", justify="right")
        table.add_row("Binary media stripped", str(report.binary_stripped))
        table.add_row("Binary media boxed", str(report.binary_boxed))
        table.add_row("Base64 media stripped", str(report.base64_stripped))
        table.add_row("Texts truncated", str(report.texts_truncated))
        table.add_row("Heartbeats removed", str(report.heartbeats_removed))
        table.add_row("Tool results synthesized", str(report.tool_results_synthesized))
        self.console.print(table)

    def format_conversation_list(self, conversations: list[dict]) -> None:
        if not conversations:
            self.console.print("[dim]No conversations found.[/dim]")
            return

        table = Table(title="Conversations")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Provider", no_wrap=True)
        table.add_column("Turn", justify="right")
        table.add_column("Updated", no_wrap=True)

        for c in conversations:
            table.add_row(
                c.get("conversation_id", "?"),
                c.get("provider", "?"),
                str(c.get("turn_number", 0)),
                c.get("updated_at", "?"),
            )

        self.console.print(table)

    def format_json(self, data: Any) -> None:
        self.console.print(Syntax(json.dumps(data, indent=2, default=str), "json", theme="monokai"))

    def format_config(self, config: dict) -> None:
        self.format_json(config)
