"""
Main CLI application for unillm-core.

Usage:
    unillm inspect FILE --provider NAME
    unillm clean FILE --provider NAME [--images-after N] [--max-tokens N]
                 [--heartbeats-after N] [--turn N] [--output OUT]
    unillm store list|show|import|delete
    unillm config show
    unillm version

Conversation files are JSON in stored form (binary boxed as
``{"_base64": ...}``).
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from unillm import __version__
from unillm.config import UnillmConfig, load_config

app = typer.Typer(name="unillm", help="unillm - conversation history tooling")
store_app = typer.Typer(help="Stored conversation management")
config_app = typer.Typer(help="Configuration management")

app.add_typer(store_app, name="store")
app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "unillm.yaml",
        Path.cwd() / "unillm.yml",
        Path.home() / ".config" / "unillm" / "config.yaml",
        Path.home() / ".unillm" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _load(cli_overrides: dict[str, Any] | None = None) -> UnillmConfig:
    cfg = load_config(_get_config_path(), cli_overrides=cli_overrides)
    logging.basicConfig(
        level=cfg.logging.level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    return cfg


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(1)


def _resolve(cfg: UnillmConfig, provider: str):
    router = cfg.router()
    try:
        return router, router.resolve(provider)
    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def inspect(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    provider: str = typer.Option(..., "--provider", "-p", help="Provider name"),
):
    """Summarise a stored conversation."""
    from unillm.cli.output import OutputFormatter
    from unillm.conversation.inspect import describe

    cfg = _load()
    _, dialect = _resolve(cfg, provider)
    stats = describe(_read_json(file), dialect)
    OutputFormatter(console).format_stats(stats, provider)


@app.command()
def clean(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    provider: str = typer.Option(..., "--provider", "-p", help="Provider name"),
    images_after: Optional[float] = typer.Option(
        None, "--images-after", help="Strip media once the turn reaches this value"
    ),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", help="Token budget per text field (0 disables)"
    ),
    heartbeats_after: Optional[float] = typer.Option(
        None, "--heartbeats-after", help="Strip heartbeats once the turn reaches this value"
    ),
    turn: Optional[int] = typer.Option(
        None, "--turn", help="Evaluate policies at this turn instead of the stored one"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write result here"),
):
    """Apply retention policies to a stored conversation."""
    from unillm.cli.output import OutputFormatter
    from unillm.orchestrator.core import TurnOrchestrator

    overrides: dict[str, Any] = {}
    if images_after is not None:
        overrides["conversation.strip_images_after_turns"] = images_after
    if max_tokens is not None:
        overrides["conversation.strip_text_max_tokens"] = max_tokens
    if heartbeats_after is not None:
        overrides["conversation.strip_heartbeats_after_turns"] = heartbeats_after

    cfg = _load(overrides)
    router, _ = _resolve(cfg, provider)
    orchestrator = TurnOrchestrator(router, cfg.conversation_options())
    result = orchestrator.clean(provider, _read_json(file), turn=turn)

    formatter = OutputFormatter(console)
    if output is not None:
        output.write_text(json.dumps(result.conversation, indent=2), encoding="utf-8")
        formatter.format_report(result.report)
        console.print(f"Wrote {output}")
    else:
        formatter.format_json(result.conversation)


@store_app.command("list")
def store_list():
    """List stored conversations."""

    async def _run():
        from unillm.cli.output import OutputFormatter
        from unillm.conversation.store import ConversationStore

        cfg = _load()
        async with ConversationStore(cfg.store.db_path) as store:
            conversations = await store.list_conversations()
        OutputFormatter(console).format_conversation_list(conversations)

    asyncio.run(_run())


@store_app.command("show")
def store_show(conversation_id: str = typer.Argument(..., help="Conversation ID")):
    """Show a stored conversation."""

    async def _run():
        from unillm.cli.output import OutputFormatter
        from unillm.conversation.store import ConversationStore

        cfg = _load()
        async with ConversationStore(cfg.store.db_path) as store:
            conversation = await store.load(conversation_id)
        if conversation is None:
            console.print(f"[red]Conversation not found:[/red] {conversation_id}")
            raise typer.Exit(1)
        OutputFormatter(console).format_json(conversation)

    asyncio.run(_run())


@store_app.command("import")
def store_import(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    conversation_id: str = typer.Option(..., "--id", help="Conversation ID"),
    provider: str = typer.Option(..., "--provider", "-p", help="Provider name"),
):
    """Save a conversation file into the store."""

    async def _run():
        from unillm.conversation.store import ConversationStore

        cfg = _load()
        _resolve(cfg, provider)
        conversation = _read_json(file)
        async with ConversationStore(cfg.store.db_path) as store:
            turn = await store.save(conversation_id, provider, conversation)
        console.print(f"Saved conversation: {conversation_id} (turn {turn})")

    asyncio.run(_run())


@store_app.command("delete")
def store_delete(conversation_id: str = typer.Argument(..., help="Conversation ID")):
    """Delete a stored conversation."""

    async def _run():
        from unillm.conversation.store import ConversationStore

        cfg = _load()
        async with ConversationStore(cfg.store.db_path) as store:
            deleted = await store.delete(conversation_id)
        if not deleted:
            console.print(f"[red]Conversation not found:[/red] {conversation_id}")
            raise typer.Exit(1)
        console.print(f"Deleted conversation: {conversation_id}")

    asyncio.run(_run())


@config_app.command("show")
def config_show():
    """Show effective config."""
    from unillm.cli.output import OutputFormatter

    cfg = _load()
    OutputFormatter(console).format_config(cfg.to_dict())


@app.command()
def version():
    """Show version."""
    console.print(f"unillm-core v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
