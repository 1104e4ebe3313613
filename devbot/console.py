"""Console front end for Devbot. For the HTTP API, use: devbot serve."""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.styles import Style
from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.status import Status as Spinner
from rich.text import Text

from .config import Settings, get_settings
from .resolvers import LocalRuleResolver, RemoteServiceResolver
from .session import ConversationSession, Message, Role, Status
from .shell import ChatShell


EXIT_COMMANDS = {"/exit", "/quit"}
HISTORY_COMMAND = "/history"

LineReader = Callable[[], Awaitable[Optional[str]]]


def render_message(message: Message) -> RenderableType:
    if message.role is Role.USER:
        text = Text("👤 You: ", style="bold blue")
        text.append(message.content)
        return text

    body = Text(message.content)
    if message.reference_url:
        body.append("\n\n関連ページ：\n", style="dim")
        body.append(message.reference_url, style=f"blue underline link {message.reference_url}")
    return Panel(body, title="🤖 Devbot", title_align="left", border_style="green")


class ConsoleRenderer:
    """Prints transcript entries as they appear and spins while a reply is pending."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self._shown: List[Message] = []
        self._spinner: Optional[Spinner] = None

    @property
    def typing(self) -> bool:
        return self._spinner is not None

    def __call__(self, session: ConversationSession) -> None:
        waiting = session.status is Status.AWAITING_REPLY
        if not waiting and self._spinner is not None:
            self._spinner.stop()
            self._spinner = None

        transcript = list(session.transcript)
        if transcript[: len(self._shown)] != self._shown:
            # Transcript was replaced by a history load; show it again from the top
            self.console.rule("[dim]保存チャット[/dim]")
            self._shown = []
        for message in transcript[len(self._shown):]:
            self.console.print(render_message(message))
        self._shown = transcript

        if waiting and self._spinner is None:
            self._spinner = self.console.status("[bold green]Devbot is typing...", spinner="dots")
            self._spinner.start()


class PromptReader:
    """Reads one line with history and editing support; None on EOF or Ctrl-C."""

    def __init__(self) -> None:
        self._session: PromptSession = PromptSession(
            history=InMemoryHistory(), enable_history_search=True
        )
        self._style = Style.from_dict({"username": "#00aaff bold"})

    async def __call__(self) -> Optional[str]:
        try:
            return await self._session.prompt_async(
                FormattedText([("class:username", "You: ")]), style=self._style
            )
        except (KeyboardInterrupt, EOFError):
            return None


def build_shell(settings: Settings, on_change=None) -> ChatShell:
    session = ConversationSession()
    if settings.resolver_mode == "remote":
        if not settings.backend_base_url:
            raise RuntimeError(
                "Missing required environment variables for the remote resolver: DEVBOT_BACKEND_URL"
            )
        remote = RemoteServiceResolver(
            settings.backend_base_url, timeout=settings.request_timeout_seconds
        )
        return ChatShell(session, remote, history_source=remote, on_change=on_change)
    local = LocalRuleResolver(delay_seconds=settings.reply_delay_seconds)
    return ChatShell(session, local, on_change=on_change)


async def run_console(
    shell: ChatShell,
    console: Optional[Console] = None,
    read: Optional[LineReader] = None,
) -> None:
    """Read lines until EOF or an exit command, sending each one to the shell."""
    console = console or Console()
    read = read or PromptReader()
    while True:
        line = await read()
        if line is None or line.strip().lower() in EXIT_COMMANDS:
            console.print("[dim]Session ended.[/dim]")
            return
        if line.strip().lower() == HISTORY_COMMAND:
            await shell.request_history()
            continue

        shell.type(line)
        if shell.session.can_submit():
            await shell.send()


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO))
    # Keep request logging from third-party HTTP libs out of the chat output
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="devbot", description="Devbot chat client and server")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Chat with Devbot in the terminal")
    chat.add_argument("--mode", choices=["local", "remote"], help="Reply resolver to use")
    chat.add_argument("--backend-url", help="Base URL of the remote chat backend")

    serve = sub.add_parser("serve", help="Run the /api/chat HTTP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("devbot.api:app", host=args.host, port=args.port)
        return

    settings = get_settings()
    if args.backend_url:
        settings = replace(settings, backend_base_url=args.backend_url)
    if args.mode:
        settings = replace(settings, resolver_mode=args.mode)
    if settings.resolver_mode == "remote" and not settings.backend_base_url:
        parser.error("--backend-url (or DEVBOT_BACKEND_URL) is required in remote mode")

    _configure_logging(settings.log_level)
    console = Console()
    renderer = ConsoleRenderer(console)
    shell = build_shell(settings, on_change=renderer)
    console.print("[bold cyan]💬 Devbot chat started![/bold cyan]")
    console.print("[dim]Type /history for saved chats, /exit to quit.[/dim]")
    console.print()
    renderer(shell.session)
    asyncio.run(run_console(shell, console))


if __name__ == "__main__":
    main()
