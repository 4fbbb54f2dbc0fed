#!/usr/bin/env python3
"""Avatar Shell - Terminal client for the avatar chat backend.

Connects to the backend for chat and transcription, opens a streaming
avatar session, and speaks each reply through the avatar sentence by
sentence while the text streams in.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.text import Text

from .config import Settings, get_settings
from .heygen import HeyGenClient, HeyGenError
from .pipeline import (
    ConversationLog,
    HeyGenSpeechSink,
    HttpChatSource,
    SpeechSession,
    SpeechTurn,
    TurnError,
    TurnEvent,
    TurnGuard,
)
from .schemas.avatar import NewSessionRequest, VoiceSettings

# Styles
USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
SPOKEN_STYLE = Style(color="yellow")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")


class AvatarShell:
    """Terminal stand-in for the avatar chat page."""

    def __init__(
        self,
        server_url: str,
        settings: Settings,
        *,
        heygen: Optional[HeyGenClient] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.settings = settings
        self.console = Console()
        self.running = True
        self.history = ConversationLog(settings.history_max_entries)
        self.heygen = heygen or HeyGenClient(settings)
        self.guard = TurnGuard()
        self.token: Optional[str] = None
        self.session: Optional[SpeechSession] = None
        self.turn: Optional[SpeechTurn] = None

    def _debug(self, message: str) -> None:
        """Show a message in the debug line."""
        self.console.print(f"[dim]debug:[/dim] {message}", style=ERROR_STYLE)

    async def _check_health(self) -> bool:
        """Check if backend is reachable."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self.server_url}/health")
                if resp.status_code == 200:
                    data = resp.json()
                    self.console.print(
                        f"[dim]Connected to backend. Chat model: {data.get('chat_model', 'unknown')}[/dim]"
                    )
                    return True
                self._debug(f"Health check failed with status {resp.status_code}")
        except httpx.HTTPError as e:
            self._debug(f"Cannot connect to backend: {e}")
        return False

    async def _fetch_access_token(self) -> Optional[str]:
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                resp = await client.post(f"{self.server_url}/api/get-access-token")
        except httpx.HTTPError as e:
            self._debug(f"Error fetching access token: {e}")
            return None
        if resp.status_code != 200:
            self._debug(f"Error fetching access token: {resp.text}")
            return None
        return resp.text

    async def _start_session(self) -> bool:
        """Create and start the avatar session used for every turn."""
        with self.console.status("Starting avatar session..."):
            token = await self._fetch_access_token()
            if not token:
                return False

            request = NewSessionRequest(
                quality=self.settings.heygen_quality,
                avatar_name=self.settings.heygen_avatar_id,
                voice=VoiceSettings(voice_id=self.settings.heygen_voice_id),
            )
            try:
                data = await self.heygen.new_session(token, request)
                await self.heygen.start_session(token, data.session_id)
            except HeyGenError as e:
                self._debug(f"There was an error starting the session: {e.detail}")
                return False

        self.token = token
        self.session = SpeechSession(
            session_id=data.session_id,
            url=data.url,
            access_token=data.access_token,
        )
        self.turn = SpeechTurn(
            HttpChatSource(self.server_url),
            HeyGenSpeechSink(self.heygen, token, self.settings.heygen_task_type),
            guard=self.guard,
        )
        self.console.print(
            f"[info]Avatar session {data.session_id} started[/info]", style=INFO_STYLE
        )
        if data.url:
            self.console.print(f"[dim]Video stream: {data.url}[/dim]")
        return True

    async def _end_session(self) -> None:
        if self.session is None or self.token is None:
            return
        session = self.session
        session.active = False
        self.session = None
        try:
            await self.heygen.stop_session(self.token, session.session_id)
        except HeyGenError as e:
            self._debug(f"Error stopping session: {e.detail}")
        finally:
            await self.heygen.aclose()

    async def _handle_chat(self, text: str) -> None:
        """Run one turn: stream the reply and speak it sentence by sentence."""
        if self.turn is None or self.session is None or not text.strip():
            self._debug("Avatar API not initialized or empty input")
            return

        reply = Text(style=ASSISTANT_STYLE)
        spoken: list[str] = []

        def on_fragment(fragment: str) -> None:
            reply.append(fragment)

        def on_sentence(event: TurnEvent) -> None:
            spoken.append(event.sentence)

        try:
            with Live(reply, console=self.console, refresh_per_second=10):
                result = await self.turn.run(
                    text,
                    self.session,
                    self.history.messages(),
                    on_sentence=on_sentence,
                    on_fragment=on_fragment,
                )
        except TurnError as e:
            self._debug(f"Error processing chat request: {e}")
            if spoken:
                self.console.print(
                    f"[dim]Spoken before the error: {len(spoken)} sentence(s)[/dim]"
                )
            return

        self.history.append("user", text)
        self.history.append("assistant", result.text)
        self.console.print(
            f"[dim]Spoke {len(result.sentences)} sentence(s)[/dim]", style=SPOKEN_STYLE
        )

    async def _transcribe(self, path: Path) -> Optional[str]:
        """Send a recording to the backend and return the transcript."""
        if not path.is_file():
            self._debug(f"No such audio file: {path}")
            return None

        try:
            async with httpx.AsyncClient(timeout=None) as client:
                with path.open("rb") as audio:
                    resp = await client.post(
                        f"{self.server_url}/api/transcribe",
                        files={"file": (path.name, audio, "audio/wav")},
                    )
        except httpx.HTTPError as e:
            self._debug(f"Error transcribing audio: {e}")
            return None

        if resp.status_code != 200:
            self._debug(
                f"Transcription failed with status {resp.status_code}: {resp.text}"
            )
            return None

        text = resp.json().get("text")
        if not text:
            self._debug("No transcription text received")
            return None
        return text

    def _show_history(self) -> None:
        entries = self.history.messages()
        if not entries:
            self.console.print("[dim]No conversation history yet[/dim]")
            return
        for entry in entries:
            style = USER_STYLE if entry.role == "user" else ASSISTANT_STYLE
            self.console.print(Text(f"{entry.role}: {entry.content}", style=style))

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = """
[bold]Commands:[/bold]
  /help              Show this help message
  /listen <file>     Transcribe an audio recording and send it
  /history           Show the conversation history
  /clear             Clear the conversation history
  /quit              End the avatar session and exit

[bold]Shortcuts:[/bold]
  Ctrl+D             Exit avatar-shell
"""
        self.console.print(
            Panel(help_text.strip(), title="Avatar Shell Help", border_style="blue")
        )

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=1)
        if not parts:
            return False

        command = parts[0].lower()

        if command == "/help":
            self._show_help()
            return True
        elif command == "/quit":
            self.running = False
            return True
        elif command == "/history":
            self._show_history()
            return True
        elif command == "/clear":
            self.history.clear()
            self.console.print("[info]History cleared[/info]", style=INFO_STYLE)
            return True
        elif command == "/listen":
            if len(parts) < 2:
                self.console.print("[dim]Usage: /listen <audio-file>[/dim]")
                return True
            text = await self._transcribe(Path(parts[1]).expanduser())
            if text:
                self.console.print(Text(f"You (transcribed): {text}", style=USER_STYLE))
                await self._handle_chat(text)
            return True

        return False

    async def run(self) -> None:
        """Main chat loop."""
        if not await self._check_health():
            return
        if not await self._start_session():
            return

        self.console.print()
        self.console.print(
            "[bold]Avatar Shell[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self.console.print()

        try:
            while self.running:
                try:
                    user_input = Prompt.ask("[bold blue]You[/bold blue]")
                    if not user_input.strip():
                        continue

                    if user_input.startswith("/"):
                        if await self._handle_command(user_input):
                            continue

                    self.console.print()
                    await self._handle_chat(user_input)
                    self.console.print()

                except EOFError:
                    self.console.print("\n[dim]Goodbye![/dim]")
                    break
        finally:
            await self._end_session()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Avatar Shell - Terminal client for the avatar chat backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  avatar-chat                           Connect to localhost:8000
  avatar-chat --server http://pi:8000   Connect to remote server

Environment Variables:
  AVATAR_CHAT_SERVER    Default server URL
""",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("AVATAR_CHAT_SERVER", "http://localhost:8000"),
        help="Backend server URL (default: http://localhost:8000)",
    )
    args = parser.parse_args()

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    shell = AvatarShell(server_url=args.server, settings=get_settings())
    try:
        asyncio.run(shell.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
