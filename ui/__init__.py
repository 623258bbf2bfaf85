"""
UI package for spotiwidget.

This package provides the console host for the application.
"""

from spotiwidget.ui.cli import CLI
from spotiwidget.ui.now_playing_display import NowPlayingDisplay

__all__ = [
    'CLI',
    'NowPlayingDisplay',
]
