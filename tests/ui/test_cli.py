from io import StringIO
from unittest.mock import AsyncMock

import pytest
from rich.console import Console

from spotiwidget.api.models import NowPlaying
from spotiwidget.core.context import AppContext
from spotiwidget.core.settings import Settings
from spotiwidget.core.token_store import TokenStore
from spotiwidget.ui.cli import CLI
from spotiwidget.ui.now_playing_display import NowPlayingDisplay


@pytest.fixture
def cli(tmp_path):
    settings = Settings()
    store = TokenStore(settings, token_path=tmp_path / "token.json", settings_path=tmp_path / "settings.json")
    display = NowPlayingDisplay(console=Console(file=StringIO(), width=100))
    return CLI(settings, context=AppContext(settings, store=store), display=display)


def test_render_lines():
    lines = NowPlayingDisplay.render_lines(NowPlaying(
        is_playing=True, track_name="Song One", artists=["A", "B"], album="The Album",
        artwork_path="/music/cover.jpg",
    ))
    assert "Song One" in lines
    assert "A, B" in lines
    assert "/music/cover.jpg" in lines
    assert "Playing" in lines
    assert NowPlayingDisplay.render_lines(NowPlaying.empty()) == "[dim]Nothing playing[/]"


def test_bracketed_names_are_shown_literally():
    display = NowPlayingDisplay(console=Console(file=StringIO(), width=100))
    snapshot = NowPlaying(
        is_playing=True, track_name="Song [feat. X]", artists=["[/]Odd"], album="Live [Remastered]",
    )

    display.update(snapshot)
    rendered = display.panel.renderable.plain

    assert "Song [feat. X]" in rendered
    assert "[/]Odd" in rendered
    assert "Live [Remastered]" in rendered


@pytest.mark.asyncio
async def test_show_library_without_root(cli, capsys):
    assert await cli.start(show_library=True) == 0
    assert "No library root configured" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_set_library_root(cli, tmp_path, capsys):
    library = tmp_path / "Music"
    library.mkdir()

    assert await cli.start(library=str(library)) == 0

    assert f"Library root set to {library}" in capsys.readouterr().out
    assert cli.context.store.load_library_root() == library


@pytest.mark.asyncio
async def test_invalid_library_root(cli, tmp_path, capsys):
    assert await cli.start(library=str(tmp_path / "missing")) == 1
    assert "Not a directory" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_missing_client_id_is_reported(cli, capsys):
    assert await cli.start(once=True) == 1
    assert "SPOTIFY_CLIENT_ID" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_once_prints_snapshot(cli):
    cli.auth_manager.restore = AsyncMock(return_value=True)
    cli.auth_manager.get_current_playing = AsyncMock(return_value=NowPlaying(
        is_playing=True, track_name="Song One", artists=["Artist A"],
    ))

    assert await cli.start(once=True) == 0
    assert "Song One" in cli.display.console.file.getvalue()


@pytest.mark.asyncio
async def test_auth_lost_ends_watch(cli):
    cli.auth_manager.restore = AsyncMock(return_value=True)
    cli.display.start_display = lambda *args, **kwargs: cli._on_auth_lost(None)

    assert await cli.start() == 1
