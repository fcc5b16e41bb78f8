"""Resolves tab addresses into internal pages, sandboxed loads or error pages."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..errors import NavigationError, NavigationFailed, NavigationRejected
from ..events import Event, EventBus, EventType
from ..models import HistoryRecord
from . import pages, urls
from .renderer import LoadRequest, Renderer
from .session_store import SessionStore

logger = logging.getLogger(__name__)

LOAD_TIMEOUT_MS = 10_000


class NavigationCoordinator:
    def __init__(
        self,
        bus: EventBus,
        sessions: SessionStore,
        renderer: Renderer,
        storage=None,
        timeout_ms: int = LOAD_TIMEOUT_MS,
    ) -> None:
        self.bus = bus
        self.sessions = sessions
        self.renderer = renderer
        self.storage = storage
        self.timeout_ms = timeout_ms
        self.pages: Dict[str, pages.RenderedPage] = {}
        self._unsubscribe: List[Callable[[], None]] = []

    def attach(self) -> None:
        if self._unsubscribe:
            return
        self._unsubscribe = [
            self.bus.on(EventType.TAB_NAVIGATE, self._on_navigate),
            self.bus.on(EventType.TAB_RELOAD, self._on_reload),
            self.bus.on(EventType.TAB_ACTIVATED, self._on_activated),
            self.bus.on(EventType.TAB_CLOSED, self._on_closed),
        ]

    def detach(self) -> None:
        for off in self._unsubscribe:
            off()
        self._unsubscribe = []

    def _on_navigate(self, event: Event) -> None:
        self.load_url(event.tab.id, event.url)

    def _on_reload(self, event: Event) -> None:
        self.reload(event.tab.id)

    def _on_activated(self, event: Event) -> None:
        self.load_url(event.tab.id, event.tab.url)

    def _on_closed(self, event: Event) -> None:
        self.pages.pop(event.tab.id, None)

    def current_page(self, tab_id: str) -> Optional[pages.RenderedPage]:
        return self.pages.get(tab_id)

    def reload(self, tab_id: str) -> Optional[pages.RenderedPage]:
        tab = self.sessions.get_tab(tab_id)
        if tab is None:
            return None
        return self.load_url(tab_id, tab.url)

    def load_url(self, tab_id: str, url: str) -> Optional[pages.RenderedPage]:
        if self.sessions.get_tab(tab_id) is None:
            return None
        self.sessions.set_loading(tab_id, True)
        try:
            page = self._resolve(tab_id, url)
        finally:
            self.sessions.set_loading(tab_id, False)
        self.pages[tab_id] = page
        return page

    def _resolve(self, tab_id: str, url: str) -> pages.RenderedPage:
        if urls.is_internal(url):
            return self._internal_page(tab_id, url)

        if urls.is_dangerous(url):
            return self._error(tab_id, url, NavigationRejected("This URL is not allowed for security reasons."))

        normalized = urls.normalize_url(url)
        if normalized is None:
            query = (url or "").strip()
            page = pages.search_page(query)
            self.sessions.update_tab(tab_id, title=page.title)
            return page

        if not urls.validate_csp(normalized):
            return self._error(tab_id, normalized, NavigationRejected("This URL is not allowed for security reasons."))

        request = LoadRequest(url=normalized, sandbox_capabilities=urls.SANDBOX_CAPABILITIES,
                              timeout_ms=self.timeout_ms)
        try:
            result = self.renderer.load(request)
            if not result.success:
                raise NavigationFailed(result.error or "Failed to load page")
        except NavigationError as exc:
            return self._error(tab_id, normalized, exc)

        # cross-origin documents may not expose a title
        title = result.title or urls.get_url_domain(normalized)
        self.sessions.update_tab(tab_id, url=normalized, title=title,
                                 favicon=urls.get_favicon_url(normalized))
        self._record_visit(normalized, title)
        return pages.RenderedPage(kind="content", url=normalized, title=title,
                                  sandbox=urls.SANDBOX_CAPABILITIES)

    def _internal_page(self, tab_id: str, url: str) -> pages.RenderedPage:
        address = url.strip().lower()
        if address == urls.NEW_TAB:
            page = pages.new_tab_page(address)
        elif address == urls.HISTORY:
            page = pages.view_page("history", address)
            self.bus.emit(EventType.VIEW_HISTORY, tab_id=tab_id)
        elif address == urls.BOOKMARKS:
            page = pages.view_page("bookmarks", address)
            self.bus.emit(EventType.VIEW_BOOKMARKS, tab_id=tab_id)
        elif address == urls.SETTINGS:
            page = pages.view_page("settings", address)
            self.bus.emit(EventType.VIEW_SETTINGS, tab_id=tab_id)
        else:
            page = pages.blank_page(address)
        self.sessions.update_tab(tab_id, title=page.title)
        return page

    def _error(self, tab_id: str, url: str, exc: NavigationError) -> pages.RenderedPage:
        logger.warning("Navigation to %s failed: %s", url, exc)
        page = pages.error_page(url, exc.title, str(exc))
        self.sessions.update_tab(tab_id, title=page.title)
        return page

    def _record_visit(self, url: str, title: str) -> None:
        if self.storage is None:
            return
        try:
            self.storage.add_history(HistoryRecord(url=url, title=title))
        except Exception:
            logger.exception("Could not record history for %s", url)
