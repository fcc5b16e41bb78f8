"""Application container wiring one of each service around a shared event bus."""

import logging
from typing import Optional

import requests

from .ai.client import ChatClient
from .ai.conversation import TabConversation
from .ai.rate_limiter import RateLimiter
from .config import Settings
from .core.navigation import NavigationCoordinator
from .core.persistence import ImmediatePersister, ScheduledPersister
from .core.renderer import HttpRenderer, Renderer
from .core.session_store import SessionStore
from .events import Event, EventBus, EventType
from .storage.manager import StorageManager

logger = logging.getLogger(__name__)


class Browser:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[StorageManager] = None,
        renderer: Optional[Renderer] = None,
        persister=None,
        http: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.settings = settings = settings or Settings()
        self.bus = EventBus()
        self.storage = storage or StorageManager(
            settings.data_dir,
            history_max_entries=settings.history_max_entries,
            history_retention_days=settings.history_retention_days,
            bookmarks_max_per_folder=settings.bookmarks_max_per_folder,
        )
        if persister is None:
            if settings.persistence == "immediate":
                persister = ImmediatePersister(self.storage.save_tabs)
            else:
                persister = ScheduledPersister(self.storage.save_tabs)
        self.persister = persister
        self.sessions = SessionStore(
            self.bus,
            persister,
            max_tabs=settings.max_tabs,
            max_history=settings.max_history_per_tab,
            max_recently_closed=settings.max_recently_closed,
            new_tab_url=settings.new_tab_url,
            default_title=settings.default_title,
        )
        self.navigation = NavigationCoordinator(
            self.bus,
            self.sessions,
            renderer or HttpRenderer(),
            storage=self.storage,
            timeout_ms=settings.navigation_timeout_ms,
        )
        self.chat = ChatClient(settings, self.bus, self.storage.kv, http, rate_limiter)
        self.conversation = TabConversation(self.chat, self.sessions, self.storage)
        self.started = False

    def start(self) -> "Browser":
        if self.started:
            return self
        logger.info("Starting %s %s", self.settings.app_name, self.settings.version)
        self.storage.init()
        start = getattr(self.persister, "start", None)
        if start is not None:
            start()
        self.chat.init()
        self.bus.on(EventType.ERROR, self._log_error)
        self.navigation.attach()
        self.sessions.load(self.storage.load_tabs())
        active = self.sessions.get_active_tab()
        if active is not None and self.navigation.current_page(active.id) is None:
            self.sessions.activate_tab(active.id)
        self.started = True
        return self

    def shutdown(self) -> None:
        if not self.started:
            return
        self.navigation.detach()
        self.persister.shutdown()
        # written after queued saves drain so an older snapshot cannot land last
        self.storage.save_tabs(self.sessions.snapshot())
        close = getattr(self.navigation.renderer, "close", None)
        if close is not None:
            close()
        self.started = False
        logger.info("%s stopped", self.settings.app_name)

    @staticmethod
    def _log_error(event: Event) -> None:
        logger.warning("%s", event.data.get("message"))
