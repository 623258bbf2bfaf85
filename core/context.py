"""
Application context for spotiwidget.

A single AppContext is created at startup and handed to every component, so
shared state is explicitly owned rather than global. Each logical resource
group (session, library) carries its own lock.
"""

from typing import Optional

from spotiwidget.core.events import EventBus
from spotiwidget.core.library_index import LibraryState
from spotiwidget.core.session import SessionState
from spotiwidget.core.settings import Settings
from spotiwidget.core.token_store import TokenStore


class AppContext:
    """Everything the commands, the poller and the indexer share."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[TokenStore] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize the context.

        Args:
            settings: Application settings
            store: Token store (one using the default data paths if omitted)
            events: Event bus (a new one if omitted)
        """
        self.settings = settings
        self.store = store or TokenStore(settings)
        self.events = events or EventBus()
        self.session = SessionState()
        self.library = LibraryState()
