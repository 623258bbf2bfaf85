"""
spotiwidget - the backend of a Spotify "now playing" desktop widget.

This package provides functionality for:
- OAuth2 authorization code flow with PKCE and a loopback redirect listener
- Silent session restore and token refresh from a cached token
- A cancellable background poller publishing the current track or episode
- A local library index and artwork resolver for tracks without remote artwork
- A minimal console host rendering the now-playing snapshot
"""

__version__ = "0.1.0"
__author__ = "spotiwidget contributors"
__license__ = "MIT"

# Package metadata
__all__ = ["__version__", "__author__", "__license__"]
