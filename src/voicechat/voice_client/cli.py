"""Voice Chat CLI - terminal client that speaks the gateway's answers.

Streams ``/api/chat/stream`` over SSE, shows the text live, and voices it
through a client-held ElevenLabs socket with strictly sequential playback.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.text import Text

from ..bridge import StreamError, UpstreamProtocol, normalize_stream
from .duplex import ChannelError, DuplexSynthesisChannel
from .playback import AudioPlayer, CommandPlayer, FilePlayer, PlaybackQueue
from .session import DEFAULT_FINAL_TIMEOUT, VoiceSession

# Styles
USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

DEFAULT_PLAYER = "ffplay -autoexit -nodisp -loglevel quiet -"


class VoiceChatCLI:
    """Terminal voice chat client for the gateway."""

    def __init__(
        self,
        server_url: str,
        player: Optional[AudioPlayer] = None,
        use_inverso: bool = False,
        speak: bool = True,
        final_timeout: float = DEFAULT_FINAL_TIMEOUT,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_url = f"{self.server_url}/api"
        self.player = player
        self.use_inverso = use_inverso
        self.speak = speak and player is not None
        self.final_timeout = final_timeout
        self.console = Console()
        self.running = True

    async def _check_health(self) -> bool:
        """Check if backend is reachable."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self.server_url}/health")
                if resp.status_code == 200:
                    data = resp.json()
                    model = data.get("chat_model", "unknown")
                    self.console.print(f"[dim]Connected to backend. Chat model: {model}[/dim]")
                    return True
        except httpx.HTTPError as e:
            self.console.print(f"[error]Cannot connect to backend: {e}[/error]", style=ERROR_STYLE)
        return False

    async def _fetch_config(self) -> Optional[dict[str, Any]]:
        """Get synthesis credentials from the gateway."""
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.get(f"{self.api_url}/elevenlabs-config")
        except httpx.HTTPError as e:
            self.console.print(f"[error]Failed to get voice config: {e}[/error]", style=ERROR_STYLE)
            return None

        data = resp.json()
        if resp.status_code != 200:
            self.console.print(
                f"[error]{data.get('error', 'Failed to get voice config')}[/error]",
                style=ERROR_STYLE,
            )
            return None
        return data

    async def _transcribe(self, path: Path) -> Optional[str]:
        """Upload an audio file to ``/api/speech-to-text``."""
        if not path.is_file():
            self.console.print(f"[error]No such file: {path}[/error]", style=ERROR_STYLE)
            return None
        try:
            async with httpx.AsyncClient(timeout=60.0) as client:
                resp = await client.post(
                    f"{self.api_url}/speech-to-text",
                    files={"file": (path.name, path.read_bytes())},
                )
        except httpx.HTTPError as e:
            self.console.print(f"[error]Transcription failed: {e}[/error]", style=ERROR_STYLE)
            return None

        data = resp.json()
        if resp.status_code != 200:
            self.console.print(f"[error]{data.get('error')}[/error]", style=ERROR_STYLE)
            return None
        text = data.get("text", "")
        self.console.print(f"[dim]Transcribed:[/dim] {text}")
        return text

    async def _open_session(self, config: dict[str, Any]) -> Optional[VoiceSession]:
        channel = DuplexSynthesisChannel(config["apiKey"], config["voiceId"])
        session = VoiceSession(
            channel,
            PlaybackQueue(self.player),
            threshold=int(config.get("chunkThreshold") or 50),
            final_timeout=self.final_timeout,
        )
        try:
            await session.start()
        except ChannelError as e:
            self.console.print(f"[error]{e}[/error]", style=ERROR_STYLE)
            return None
        return session

    async def _ask(self, message: str) -> None:
        """Stream one answer and voice it while it arrives."""
        session: Optional[VoiceSession] = None
        if self.speak or self.use_inverso:
            config = await self._fetch_config()
            if config is None:
                return
            if self.use_inverso and not config.get("inversoApiKey"):
                self.console.print(
                    "[error]INVERSO_API_KEY is not defined in environment variables[/error]",
                    style=ERROR_STYLE,
                )
                return
            if self.speak:
                session = await self._open_session(config)

        params = {"message": message, "useInverso": str(self.use_inverso).lower()}
        full_response = ""
        completed = False
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0)) as client:
                async with client.stream(
                    "GET",
                    f"{self.api_url}/chat/stream",
                    params=params,
                    headers={"Accept": "text/event-stream"},
                ) as response:
                    if response.status_code != 200:
                        error = await response.aread()
                        self.console.print(
                            f"[error]Error {response.status_code}: {error.decode()}[/error]",
                            style=ERROR_STYLE,
                        )
                        return

                    with Live(console=self.console, refresh_per_second=10) as live:
                        deltas = normalize_stream(
                            response.aiter_bytes(), UpstreamProtocol.CANONICAL
                        )
                        async for delta in deltas:
                            full_response += delta.text
                            live.update(Text(full_response, style=ASSISTANT_STYLE))
                            if session is not None:
                                await session.on_delta(delta.text)
            completed = True

            if session is not None:
                with self.console.status("[dim]Speaking...[/dim]"):
                    await session.finish()
        except StreamError as e:
            self.console.print(f"[error]Stream error: {e}[/error]", style=ERROR_STYLE)
        except ChannelError as e:
            self.console.print(f"[error]Voice channel error: {e}[/error]", style=ERROR_STYLE)
        except httpx.ReadTimeout:
            self.console.print("[error]Request timed out[/error]", style=ERROR_STYLE)
        except httpx.HTTPError as e:
            self.console.print(f"[error]Error: {e}[/error]", style=ERROR_STYLE)
        except asyncio.CancelledError:
            self.console.print("\n[dim]Request cancelled[/dim]")
        finally:
            if session is not None:
                if not completed:
                    await session.playback.close()
                await session.close()

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = """
[bold]Commands:[/bold]
  /help              Show this help message
  /inverso on|off    Route questions through the secondary backend
  /voice on|off      Speak answers aloud
  /file <path>       Transcribe an audio file and ask it
  /quit              Exit voice-chat

[bold]Shortcuts:[/bold]
  Ctrl+C             Cancel current request
  Ctrl+D             Exit voice-chat
"""
        self.console.print(Panel(help_text.strip(), title="Voice Chat Help", border_style="blue"))

    @staticmethod
    def _parse_toggle(value: str) -> Optional[bool]:
        value = value.lower()
        if value in ("on", "enable", "true", "1"):
            return True
        if value in ("off", "disable", "false", "0"):
            return False
        return None

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=1)
        if not parts:
            return False

        command = parts[0].lower()
        argument = parts[1] if len(parts) > 1 else ""

        if command == "/help":
            self._show_help()
            return True
        elif command == "/quit":
            self.running = False
            return True
        elif command in ("/inverso", "/voice"):
            toggle = self._parse_toggle(argument)
            if toggle is None:
                self.console.print(f"[dim]Usage: {command} on|off[/dim]")
                return True
            if command == "/inverso":
                self.use_inverso = toggle
            elif toggle and self.player is None:
                self.console.print("[dim]No audio player configured[/dim]")
                return True
            else:
                self.speak = toggle
            state = "on" if toggle else "off"
            self.console.print(f"[info]{command[1:]} {state}[/info]", style=INFO_STYLE)
            return True
        elif command == "/file":
            if not argument:
                self.console.print("[dim]Usage: /file <path>[/dim]")
                return True
            text = await self._transcribe(Path(argument).expanduser())
            if text:
                self.console.print()
                await self._ask(text)
            return True

        return False

    async def run(self, initial_file: Optional[Path] = None) -> None:
        """Main chat loop."""
        if not await self._check_health():
            return

        self.console.print()
        self.console.print(
            "[bold]Voice Chat[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self.console.print()

        if initial_file is not None:
            text = await self._transcribe(initial_file)
            if text:
                await self._ask(text)
                self.console.print()

        while self.running:
            try:
                user_input = Prompt.ask("[bold blue]You[/bold blue]")
                if not user_input.strip():
                    continue

                if user_input.startswith("/"):
                    handled = await self._handle_command(user_input)
                    if handled:
                        continue

                self.console.print()
                await self._ask(user_input)
                self.console.print()

            except EOFError:
                # Ctrl+D
                self.console.print("\n[dim]Goodbye![/dim]")
                break
            except KeyboardInterrupt:
                self.console.print()
                continue


def _build_player(args: argparse.Namespace) -> Optional[AudioPlayer]:
    if args.mute:
        return None
    if args.save_dir:
        return FilePlayer(Path(args.save_dir).expanduser())
    return CommandPlayer(args.player)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Voice Chat - speak the gateway's answers in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voice-chat                              Connect to localhost:8000
  voice-chat --server http://pi:8000      Connect to remote server
  voice-chat --save-dir ./audio           Write segments to files instead of playing
  voice-chat --file question.webm         Transcribe a recording and ask it

Environment Variables:
  VOICECHAT_SERVER    Default server URL
  VOICECHAT_PLAYER    Default player command
""",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("VOICECHAT_SERVER", "http://localhost:8000"),
        help="Backend server URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--player",
        default=os.environ.get("VOICECHAT_PLAYER", DEFAULT_PLAYER),
        help="Command that plays MP3 from stdin",
    )
    parser.add_argument("--save-dir", default=None, help="Write audio segments to this directory")
    parser.add_argument("--mute", action="store_true", help="Show text only")
    parser.add_argument("--inverso", action="store_true", help="Use the secondary chat backend")
    parser.add_argument("--file", "-f", default=None, help="Audio file to transcribe and ask first")
    parser.add_argument(
        "--final-timeout",
        type=float,
        default=DEFAULT_FINAL_TIMEOUT,
        help="Seconds to wait for the last audio segment",
    )
    parser.add_argument("--debug", action="store_true", help="Log to stderr at DEBUG level")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    cli = VoiceChatCLI(
        server_url=args.server,
        player=_build_player(args),
        use_inverso=args.inverso,
        final_timeout=args.final_timeout,
    )
    initial_file = Path(args.file).expanduser() if args.file else None
    try:
        asyncio.run(cli.run(initial_file))
    except KeyboardInterrupt:
        print("\nExiting...")


if __name__ == "__main__":
    main()
