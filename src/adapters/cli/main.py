"""
adapters.cli.main - CLI adapter for the UX Architect agent.

Uses the same ServiceFactory and ConversationOrchestrator as any other
adapter, so thread handling and tool behaviour are identical.

Commands
--------
  threads    List threads, most recently active first
  new        Create a new thread and make it the current one
  show       Print a thread's messages
  rename     Change a thread's title
  delete     Delete a thread and all its messages
  ask        One-shot message on the current (or given) thread
  chat       Interactive chat session

Usage
-----
  python run_cli.py new --title "Checkout redesign"
  python run_cli.py ask "Design a login form"
  python run_cli.py chat --thread <thread-id>
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# ── Ensure src/ is on the path when run as a script ──
_SRC = Path(__file__).resolve().parent.parent.parent
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from adapters.cli.session import CliSession, load_session, save_session
from agent.orchestrator import ConversationOrchestrator
from domain.entities import Message
from domain.exceptions import DomainError, ThreadNotFoundError, UpstreamError
from factory import ServiceFactory
from infrastructure.config import Settings
from infrastructure.logging_config import setup_logging

__version__ = "0.1.0"

console = Console()
app = typer.Typer(
    help="UX Architect agent CLI",
    add_completion=False,
    no_args_is_help=True,
)

_ROLE_STYLES = {
    "user": ("You", "cyan"),
    "assistant": ("UX Architect", "green"),
    "tool": ("Tool", "yellow"),
    "system": ("System", "magenta"),
}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    config = Settings.from_env()
    setup_logging(config.log_level)
    factory = ServiceFactory(config)
    await factory.initialize()
    return factory


def _fmt_ts(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _print_message(msg: Message) -> None:
    label, style = _ROLE_STYLES.get(msg.role, (msg.role, "white"))
    body = msg.content
    if msg.tool_calls:
        calls = "\n".join(f"- `{c.name}` {c.arguments}" for c in msg.tool_calls)
        body = f"{body}\n\n**Tool calls**\n{calls}".strip()
    if msg.tool_call_id:
        label = f"{label} ({msg.tool_call_id})"
    console.print(Panel(Markdown(body or "_(empty)_"), title=label, border_style=style))


async def _select_thread(
    orchestrator: ConversationOrchestrator, thread_id: Optional[str],
) -> None:
    """Load the requested thread, else the remembered one if it still exists."""
    if thread_id:
        if not await orchestrator.load_thread(thread_id):
            console.print(f"[bold red]Thread {thread_id} not found.[/bold red]")
            raise typer.Exit(code=1)
        return
    remembered = load_session().thread_id
    if remembered:
        await orchestrator.load_thread(remembered)


def _remember(thread_id: Optional[str]) -> None:
    save_session(CliSession(thread_id=thread_id))


async def _turn(orchestrator: ConversationOrchestrator, text: str) -> bool:
    """Run one chat turn and print the reply. Returns False on failure."""
    try:
        with console.status("[bold cyan]Thinking…", spinner="dots"):
            result = await orchestrator.chat(text)
    except UpstreamError as e:
        console.print(f"[bold red]The model call failed:[/bold red] {e}")
        return False
    except DomainError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return False
    _remember(result.thread_id)
    console.print()
    console.print(Panel(Markdown(result.response), title="UX Architect", border_style="green"))
    return True


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ux-architect v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Threads
# ---------------------------------------------------------------------------

@app.command()
def threads() -> None:
    """List all threads, most recently active first."""
    async def _run() -> None:
        factory = await _make_factory()
        items = await factory.create_thread_service().list_threads()
        if not items:
            console.print("[dim]No threads yet. Run [bold]new[/bold] or [bold]ask[/bold].[/dim]")
            return
        current = load_session().thread_id
        t = Table(box=box.SIMPLE, padding=(0, 2))
        t.add_column("", width=1)
        t.add_column("Thread", style="bold")
        t.add_column("Title")
        t.add_column("Updated", style="dim")
        for th in items:
            marker = "*" if th.id == current else ""
            t.add_row(marker, th.id, th.title or "[dim]untitled[/dim]", _fmt_ts(th.updated_at))
        console.print(t)

    asyncio.run(_run())


@app.command()
def new(
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Thread title."),
) -> None:
    """Create a new thread and make it the current one."""
    async def _run() -> None:
        factory = await _make_factory()
        thread_id = await factory.create_thread_service().create_thread(title)
        _remember(thread_id)
        console.print(f"[green]Created thread[/green] [bold]{thread_id}[/bold]")

    asyncio.run(_run())


@app.command()
def show(thread_id: str = typer.Argument(..., help="Thread id.")) -> None:
    """Print every message of a thread."""
    async def _run() -> None:
        factory = await _make_factory()
        service = factory.create_thread_service()
        thread = await service.get_thread(thread_id)
        if thread is None:
            console.print(f"[bold red]Thread {thread_id} not found.[/bold red]")
            raise typer.Exit(code=1)
        console.print(
            f"[bold]{thread.title or 'untitled'}[/bold] "
            f"[dim]({thread.id}, updated {_fmt_ts(thread.updated_at)})[/dim]"
        )
        for msg in await service.get_messages(thread_id):
            _print_message(msg)

    asyncio.run(_run())


@app.command()
def rename(
    thread_id: str = typer.Argument(..., help="Thread id."),
    title: str = typer.Argument(..., help="New title."),
) -> None:
    """Change a thread's title."""
    async def _run() -> None:
        factory = await _make_factory()
        try:
            await factory.create_thread_service().rename_thread(thread_id, title)
        except ThreadNotFoundError:
            console.print(f"[bold red]Thread {thread_id} not found.[/bold red]")
            raise typer.Exit(code=1)
        console.print("[green]Renamed.[/green]")

    asyncio.run(_run())


@app.command()
def delete(
    thread_id: str = typer.Argument(..., help="Thread id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a thread and all its messages."""
    if not yes and not typer.confirm(f"Delete thread {thread_id}?"):
        raise typer.Exit()

    async def _run() -> None:
        factory = await _make_factory()
        if not await factory.create_thread_service().delete_thread(thread_id):
            console.print(f"[bold red]Thread {thread_id} not found.[/bold red]")
            raise typer.Exit(code=1)
        if load_session().thread_id == thread_id:
            _remember(None)
        console.print("[green]Deleted.[/green]")

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Chat
# ---------------------------------------------------------------------------

@app.command()
def ask(
    message: str = typer.Argument(..., help="Your message."),
    thread: Optional[str] = typer.Option(None, "--thread", help="Thread id to continue."),
) -> None:
    """Send one message on the current (or given) thread."""
    async def _run() -> None:
        factory = await _make_factory()
        orchestrator = factory.create_orchestrator()
        await _select_thread(orchestrator, thread)
        if not await _turn(orchestrator, message):
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def chat(
    thread: Optional[str] = typer.Option(None, "--thread", help="Thread id to continue."),
) -> None:
    """Start an interactive chat session.

    In-chat commands: /new, /threads, /load <id>, exit.
    """
    async def _run() -> None:
        factory = await _make_factory()
        orchestrator = factory.create_orchestrator()
        await _select_thread(orchestrator, thread)

        active = orchestrator.session.active_thread_id
        console.print(Panel(
            "[bold]UX Architect Chat[/bold]\n"
            f"Thread: [bold]{active or 'new'}[/bold]\n"
            "Type your message, [bold]/new[/bold], [bold]/threads[/bold], "
            "[bold]/load <id>[/bold], or [bold]exit[/bold] to stop.",
            border_style="cyan",
        ))
        for msg in orchestrator.history:
            _print_message(msg)

        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                console.print("\n[dim]Goodbye![/dim]")
                break

            text = user_input.strip()
            if text.lower() in ("exit", "quit", "q", "bye"):
                console.print("[dim]Goodbye![/dim]")
                break
            if not text:
                continue

            if text == "/new":
                thread_id = await orchestrator.create_thread()
                _remember(thread_id)
                console.print(f"[green]New thread[/green] [bold]{thread_id}[/bold]")
            elif text == "/threads":
                for th in await orchestrator.list_threads():
                    console.print(f"  {th.id}  {th.title or '[dim]untitled[/dim]'}")
            elif text.startswith("/load "):
                thread_id = text[len("/load "):].strip()
                if await orchestrator.load_thread(thread_id):
                    _remember(thread_id)
                    console.print(f"[green]Loaded[/green] {len(orchestrator.history)} message(s).")
                else:
                    console.print(f"[bold red]Thread {thread_id} not found.[/bold red]")
            else:
                await _turn(orchestrator, text)

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global version option
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """UX Architect agent CLI"""


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
