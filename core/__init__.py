"""
Core package for spotiwidget.

This package provides core functionality for the application.
"""

from spotiwidget.core.settings import Settings, load_settings, save_settings
from spotiwidget.core.token_store import TokenStore, TokenStoreError
from spotiwidget.core.events import EventBus, NOW_PLAYING_UPDATE, AUTH_LOST
from spotiwidget.core.session import SessionState, SessionStatus

__all__ = [
    'Settings',
    'load_settings',
    'save_settings',
    'TokenStore',
    'TokenStoreError',
    'EventBus',
    'NOW_PLAYING_UPDATE',
    'AUTH_LOST',
    'SessionState',
    'SessionStatus',
]
