"""
Manages the Rich-based now-playing display for spotiwidget.
"""
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from spotiwidget.api.models import NowPlaying
from spotiwidget.utils.logger import get_logger


class NowPlayingDisplay:
    """
    Renders NowPlaying snapshots in a single Rich panel.
    """
    def __init__(self, console: Optional[Console] = None):
        self.logger = get_logger(__name__)

        self.info_text = Text(no_wrap=True)
        self.panel = Panel(self.info_text, title="Now Playing", border_style="green", width=80)

        self.console = console or Console(color_system="auto")
        self.live: Optional[Live] = None
        self.last_snapshot: Optional[NowPlaying] = None

    @staticmethod
    def render_lines(now_playing: NowPlaying) -> str:
        """Markup lines for a snapshot."""
        if not now_playing.track_name:
            return "[dim]Nothing playing[/]"

        lines = [f"[bold]Track:[/] {escape(now_playing.track_name)}"]
        lines.append(f"[bold]Artist:[/] {escape(now_playing.display_artists or 'Unknown Artist')}")
        if now_playing.album:
            lines.append(f"[bold]Album:[/] {escape(now_playing.album)}")
        if now_playing.artwork_url:
            lines.append(f"[bold]Artwork:[/] {escape(now_playing.artwork_url)}")
        elif now_playing.artwork_path:
            lines.append(f"[bold]Artwork (local):[/] {escape(str(now_playing.artwork_path))}")

        status = "[green]Playing[/]" if now_playing.is_playing else "[yellow]Paused[/]"
        lines.append(f"[bold]Status:[/] {status}")
        return "\n".join(lines)

    def update(self, now_playing: NowPlaying) -> None:
        """
        Show a new snapshot.

        Args:
            now_playing: Snapshot published by the poller
        """
        self.last_snapshot = now_playing
        self.panel.renderable = Text.from_markup(self.render_lines(now_playing))
        if self.live and self.live.is_started:
            self.live.refresh()

    def show_message(self, message: str, style: str = "yellow") -> None:
        """Replace the panel content with a status message."""
        self.panel.renderable = Text(message, style=style)
        if self.live and self.live.is_started:
            self.live.refresh()

    def start_display(self, initial_message: str = "Waiting for Spotify...") -> None:
        """Starts the live display."""
        self.info_text.plain = initial_message
        self.panel.renderable = self.info_text
        if self.live is None:
            self.live = Live(self.panel, console=self.console, auto_refresh=False, transient=False)
        if not self.live.is_started:
            self.live.start(refresh=True)
        self.logger.debug("Rich Live display started.")

    def stop_display(self) -> None:
        """Stops the live display if it's active."""
        if self.live and self.live.is_started:
            self.live.stop()
            self.logger.debug("Rich Live display stopped.")
        self.live = None

    def print_snapshot(self, now_playing: NowPlaying) -> None:
        """Print a snapshot once, outside the live display."""
        self.console.print(Panel(Text.from_markup(self.render_lines(now_playing)), title="Now Playing", border_style="green", width=80))
