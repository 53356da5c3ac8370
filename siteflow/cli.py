"""CLI commands for the siteflow inventory assistant.

Provides a demonstration host for the assistant pipeline.

Commands:
    siteflow parse TEXT   - Interpret one request and show the intent
    siteflow chat         - Interactive session with persistent memory
    siteflow status       - Show configuration and remote provider status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import AIMode, AssistantConfig
from .core.assistant import AssistantSession
from .core.backends import BackendError, GenerationBridge, create_backend
from .core.catalog import CatalogSnapshot
from .core.intent.remote import RemoteFailure
from .core.memory import ConversationMemory, JsonFileStore, restore_memory, save_memory
from .core.permissions import Role
from .core.responses import AssistantResponse

console = Console()

MEMORY_KEY = "conversation"
EXIT_WORDS = {"quit", "exit", "bye"}


def setup_logging(project_path: Path) -> Path:
    """Configure rotating file logging under <project>/.siteflow/logs.

    Uses INFO level by default; set SITEFLOW_DEBUG=1 for DEBUG level.

    Returns:
        Path of the log file
    """
    log_dir = project_path / ".siteflow" / "logs"
    log_file = log_dir / "siteflow.log"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = logging.DEBUG if os.environ.get("SITEFLOW_DEBUG") else logging.INFO

    # 5 MB max, keep 3 backups
    handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)
    return log_file


def load_config(args: argparse.Namespace) -> AssistantConfig:
    config = AssistantConfig.load(Path(args.project_path).resolve())
    if getattr(args, "mode", None):
        config.ai_mode = AIMode(args.mode)
    return config


def build_bridge(config: AssistantConfig) -> GenerationBridge | None:
    """Create the remote bridge when the config asks for one."""
    if config.ai_mode == AIMode.LOCAL or not config.remote.enabled:
        return None
    try:
        return create_backend(config.remote)
    except BackendError as e:
        console.print(f"[yellow]Remote AI disabled:[/yellow] {e}")
        return None


def notify_remote_failure(failure: RemoteFailure) -> None:
    console.print(f"[yellow]⚠ {failure.message}[/yellow]")


def warn_memory_capacity(length: int, capacity: int) -> None:
    console.print(
        f"[yellow]Conversation memory is at {length}/{capacity} turns. "
        f'Type "clear" to start fresh.[/yellow]'
    )


def build_session(
    args: argparse.Namespace,
    config: AssistantConfig,
    memory: ConversationMemory | None = None,
) -> AssistantSession:
    catalog = CatalogSnapshot.load(Path(args.catalog))
    return AssistantSession(
        catalog,
        role=args.role,
        generation_bridge=build_bridge(config),
        config=config,
        memory=memory,
        on_remote_failure=notify_remote_failure,
    )


def render_intent(response: AssistantResponse) -> Table:
    """Tabulate the intent behind a response."""
    intent = response.intent
    table = Table(title="Intent")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    if intent is None:
        table.add_row("action", "-")
        return table

    table.add_row("action", intent.action.value)
    table.add_row("confidence", f"{intent.confidence:.2f}")
    table.add_row("source", intent.source)
    for key, value in intent.parameters.items():
        table.add_row(f"  {key}", str(value))
    table.add_row(
        "missing",
        ", ".join(intent.missing_parameters) if intent.missing_parameters else "-",
    )
    return table


def print_response(response: AssistantResponse) -> None:
    style = "green" if response.success else "yellow"
    console.print(f"[{style}]{response.message}[/{style}]")

    action = response.suggested_action
    if action is not None and action.data:
        console.print(f"[dim]→ {action.type.value}: {action.data}[/dim]")


def parse_text(args: argparse.Namespace) -> int:
    """Interpret one request.

    Args:
        args: Parsed arguments (text, catalog, role, mode)

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    session = build_session(args, config)

    async def run() -> AssistantResponse:
        try:
            return await session.process_input(" ".join(args.text))
        finally:
            await session.close()

    response = asyncio.run(run())

    console.print(render_intent(response))
    print_response(response)
    return 0


def chat(args: argparse.Namespace) -> int:
    """Interactive session.

    Memory is restored from .siteflow/memory on start and saved after every
    turn. Type "clear" to forget the conversation, "quit" to leave.

    Args:
        args: Parsed arguments (catalog, role, mode)

    Returns:
        Exit code (0 for success)
    """
    config = load_config(args)
    store = JsonFileStore(config.memory_path)
    memory = restore_memory(
        store,
        MEMORY_KEY,
        ConversationMemory(
            config.memory_capacity,
            config.memory_warning_ratio,
            on_capacity_warning=warn_memory_capacity,
        ),
    )
    session = build_session(args, config, memory)

    console.print(f"[bold]siteflow[/bold] ({session.role}, {config.ai_mode.value} mode)")
    if len(memory):
        console.print(f"[dim]Restored {len(memory)} earlier turns.[/dim]")

    async def loop() -> None:
        try:
            while True:
                try:
                    text = input("> ").strip()
                except EOFError:
                    break
                if not text:
                    continue
                if text.lower() in EXIT_WORDS:
                    break
                if text.lower() == "clear":
                    session.clear_conversation()
                    store.remove(MEMORY_KEY)
                    console.print("[dim]Conversation cleared.[/dim]")
                    continue

                response = await session.process_input(text)
                print_response(response)
                save_memory(session.memory, store, MEMORY_KEY)
        finally:
            await session.close()

    asyncio.run(loop())
    return 0


def show_status(args: argparse.Namespace) -> int:
    """Show configuration and probe the remote provider.

    Returns:
        Exit code (0 for success, 1 if the remote provider is unavailable)
    """
    config = load_config(args)

    table = Table(title="siteflow")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("project", str(config.project_path))
    table.add_row("ai_mode", config.ai_mode.value)
    table.add_row("memory_capacity", str(config.memory_capacity))
    table.add_row("remote.provider", config.remote.provider)
    table.add_row("remote.enabled", str(config.remote.enabled))
    console.print(table)

    bridge = build_bridge(config)
    if bridge is None:
        console.print("[dim]Remote AI not in use.[/dim]")
        return 0

    async def probe():
        try:
            return await bridge.status()
        finally:
            await bridge.close()

    status = asyncio.run(probe())
    if status.available:
        console.print("[green]✓[/green] Remote AI provider configured and reachable")
        return 0
    console.print(f"[red]✗[/red] Remote AI not reachable: {status.error}")
    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="siteflow",
        description="siteflow: natural-language inventory assistant",
    )
    parser.add_argument(
        "--project",
        "-p",
        dest="project_path",
        default=".",
        help="Path to project directory (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_session_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--catalog",
            "-c",
            required=True,
            help="Catalog snapshot file (JSON or YAML)",
        )
        p.add_argument(
            "--role",
            "-r",
            default=Role.ADMIN.value,
            help="User role (default: admin)",
        )
        p.add_argument(
            "--mode",
            "-m",
            choices=[m.value for m in AIMode],
            help="Override the configured AI mode",
        )

    # =========================================================================
    # parse command
    # =========================================================================
    parse_parser = subparsers.add_parser("parse", help="Interpret a single request")
    parse_parser.add_argument("text", nargs="+", help="Request text")
    add_session_args(parse_parser)
    parse_parser.set_defaults(func=parse_text)

    # =========================================================================
    # chat command
    # =========================================================================
    chat_parser = subparsers.add_parser("chat", help="Start an interactive session")
    add_session_args(chat_parser)
    chat_parser.set_defaults(func=chat)

    # =========================================================================
    # status command
    # =========================================================================
    status_parser = subparsers.add_parser("status", help="Show configuration status")
    status_parser.set_defaults(func=show_status)

    return parser


def run_cli(args: list[str] | None = None, configure_logging: bool = False) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])
        configure_logging: Set up file logging under the selected project

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if configure_logging:
        setup_logging(Path(parsed.project_path).resolve())

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


def main() -> None:
    """Entry point for the siteflow command."""
    import sys

    sys.exit(run_cli(configure_logging=True))


__all__ = [
    "build_bridge",
    "chat",
    "create_parser",
    "main",
    "parse_text",
    "render_intent",
    "run_cli",
    "show_status",
]
