"""
API package for spotiwidget.

This package provides classes and functions for interacting with the Spotify Web API.
"""

from spotiwidget.api.client import (
    SpotifyClient, SpotifyError, ConfigurationError, AuthenticationError,
    APIError, ConnectionError, NotConnectedError
)
from spotiwidget.api.models import (
    Image, Artist, Album, Show, Track, Episode, CurrentlyPlaying, NowPlaying, Token
)

__all__ = [
    'SpotifyClient',
    'SpotifyError',
    'ConfigurationError',
    'AuthenticationError',
    'APIError',
    'ConnectionError',
    'NotConnectedError',
    'Image',
    'Artist',
    'Album',
    'Show',
    'Track',
    'Episode',
    'CurrentlyPlaying',
    'NowPlaying',
    'Token',
]
