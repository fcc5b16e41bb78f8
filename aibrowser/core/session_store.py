"""Ordered tab collection with per-tab history, pinning and closed-tab recovery.

Every mutation runs under one re-entrant lock, and each mutating call hands a
snapshot of the whole collection to the persister. Events are emitted after
the lock is released, so listeners that load pages never hold it. The
in-memory state here is authoritative for the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional, Protocol

from ..errors import CapacityExceeded
from ..events import EventBus, EventType
from ..models import ChatTurn, ClosedTab, Tab, now_ms

logger = logging.getLogger(__name__)

NEW_TAB_URL = "about:newtab"
DEFAULT_TITLE = "New Tab"
MAX_TABS = 20
MAX_HISTORY_PER_TAB = 50
MAX_RECENTLY_CLOSED = 20

# fields callers may change through update_tab
UPDATABLE_FIELDS = {"url", "title", "favicon", "loading", "scroll_position"}


class Persister(Protocol):
    def schedule_save(self, snapshot: List[dict]) -> None: ...


class SessionStore:
    def __init__(
        self,
        bus: EventBus,
        persister: Optional[Persister] = None,
        max_tabs: int = MAX_TABS,
        max_history: int = MAX_HISTORY_PER_TAB,
        max_recently_closed: int = MAX_RECENTLY_CLOSED,
        new_tab_url: str = NEW_TAB_URL,
        default_title: str = DEFAULT_TITLE,
    ) -> None:
        self.bus = bus
        self.persister = persister
        self.max_tabs = max_tabs
        self.max_history = max_history
        self.max_recently_closed = max_recently_closed
        self.new_tab_url = new_tab_url
        self.default_title = default_title
        self.lock = threading.RLock()
        self.tabs: List[Tab] = []
        self.active_tab_id: Optional[str] = None
        self.recently_closed: List[ClosedTab] = []

    # ----- lifecycle -----

    def load(self, records: Optional[List[dict]] = None) -> List[Tab]:
        """Restore persisted tabs, or start with one default tab."""
        restored: List[Tab] = []
        for rec in records or []:
            try:
                restored.append(Tab.from_record(rec, self.max_history))
            except Exception:
                logger.warning("Skipping unreadable tab record %r", rec.get("id"), exc_info=True)
        restored = restored[: self.max_tabs]
        with self.lock:
            self.tabs = []
            if restored:
                self.tabs = restored
                self._sort()
                self.active_tab_id = self.tabs[0].id
                created = None
            else:
                created = self._open_default()
                self.save()
            tabs = list(self.tabs)
        if created is not None:
            self._announce_new(created)
        self.bus.emit(EventType.TABS_LOADED, tabs=tabs)
        return self.tabs

    # ----- queries -----

    def get_tab(self, tab_id: Optional[str]) -> Optional[Tab]:
        with self.lock:
            for tab in self.tabs:
                if tab.id == tab_id:
                    return tab
        return None

    def get_active_tab(self) -> Optional[Tab]:
        return self.get_tab(self.active_tab_id)

    def all_tabs(self) -> List[Tab]:
        with self.lock:
            return list(self.tabs)

    def can_go_back(self, tab_id: str) -> bool:
        tab = self.get_tab(tab_id)
        return tab is not None and tab.history_index >= 0

    def can_go_forward(self, tab_id: str) -> bool:
        tab = self.get_tab(tab_id)
        return tab is not None and tab.history_index < len(tab.history) - 1

    # ----- tab lifecycle -----

    def create_tab(self, url: Optional[str] = None, *, title: Optional[str] = None,
                   favicon: Optional[str] = None, pinned: bool = False) -> Tab:
        with self.lock:
            full = len(self.tabs) >= self.max_tabs
            if not full:
                tab = Tab(
                    url=url or self.new_tab_url,
                    title=title or self.default_title,
                    favicon=favicon,
                    pinned=pinned,
                )
                self._insert(tab)
                self.active_tab_id = tab.id
                self.save()
        if full:
            self.bus.emit(EventType.ERROR, message=f"Maximum {self.max_tabs} tabs allowed")
            raise CapacityExceeded(self.max_tabs)
        self._announce_new(tab)
        return tab

    def close_tab(self, tab_id: str) -> bool:
        with self.lock:
            index = self._index_of(tab_id)
            if index == -1:
                return False
            tab = self.tabs.pop(index)
            snapshot = ClosedTab(**tab.model_dump(), closed_at=now_ms())
            self.recently_closed.insert(0, snapshot)
            del self.recently_closed[self.max_recently_closed:]

            successor: Optional[Tab] = None
            replacement: Optional[Tab] = None
            if not self.tabs:
                # the collection is never left empty
                replacement = self._open_default()
            elif self.active_tab_id == tab_id:
                successor = self.tabs[index if index < len(self.tabs) else index - 1]
                self.active_tab_id = successor.id
            self.save()
        self.bus.emit(EventType.TAB_CLOSED, tab=tab)

        if replacement is not None:
            self._announce_new(replacement)
        elif successor is not None:
            self.bus.emit(EventType.TAB_ACTIVATED, tab=successor)
        return True

    def restore_closed_tab(self) -> Optional[Tab]:
        with self.lock:
            if not self.recently_closed:
                return None
            if len(self.tabs) >= self.max_tabs:
                raise CapacityExceeded(self.max_tabs)
            closed = self.recently_closed.pop(0)
            data = closed.model_dump(exclude={"closed_at"})
            data.update(loading=False, timestamp=now_ms())
            tab = Tab(**data)
            self._insert(tab)
            self.active_tab_id = tab.id
            self.save()
        self._announce_new(tab)
        return tab

    def toggle_pin(self, tab_id: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return False
            tab.pinned = not tab.pinned
            self._sort()
            self.save()
        self.bus.emit(EventType.TAB_UPDATED, tab=tab)
        return True

    def activate_tab(self, tab_id: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return False
            self.active_tab_id = tab_id
            self.save()
        self.bus.emit(EventType.TAB_ACTIVATED, tab=tab)
        return True

    def update_tab(self, tab_id: str, **updates: Any) -> bool:
        unknown = set(updates) - UPDATABLE_FIELDS
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return False
            if unknown:
                raise ValueError(f"Cannot update tab fields: {sorted(unknown)}")
            for name, value in updates.items():
                setattr(tab, name, value)
            self.save()
        self.bus.emit(EventType.TAB_UPDATED, tab=tab)
        return True

    def set_loading(self, tab_id: str, loading: bool) -> bool:
        return self.update_tab(tab_id, loading=loading)

    # ----- navigation -----

    def navigate(self, tab_id: str, url: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return False
            if tab.url and tab.url != url:
                # navigating away drops any forward entries
                del tab.history[tab.history_index + 1:]
                tab.history.append(tab.url)
                tab.history_index = len(tab.history) - 1
                if len(tab.history) > self.max_history:
                    del tab.history[0]
                    tab.history_index -= 1
            tab.url = url
            tab.loading = True
            self.save()
        self.bus.emit(EventType.TAB_NAVIGATE, tab=tab, url=url)
        return True

    def go_back(self, tab_id: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None or tab.history_index < 0:
                return False
            i = tab.history_index
            # the page we leave takes the slot of the one we return to
            tab.url, tab.history[i] = tab.history[i], tab.url
            tab.history_index = i - 1
            url = tab.url
            self.save()
        self.bus.emit(EventType.TAB_NAVIGATE, tab=tab, url=url)
        return True

    def go_forward(self, tab_id: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None or tab.history_index >= len(tab.history) - 1:
                return False
            i = tab.history_index + 1
            tab.url, tab.history[i] = tab.history[i], tab.url
            tab.history_index = i
            url = tab.url
            self.save()
        self.bus.emit(EventType.TAB_NAVIGATE, tab=tab, url=url)
        return True

    def reload(self, tab_id: str) -> bool:
        tab = self.get_tab(tab_id)
        if tab is None:
            return False
        self.bus.emit(EventType.TAB_RELOAD, tab=tab)
        return True

    # ----- per-tab AI context -----

    def add_chat_turn(self, tab_id: str, role: str, content: str = "") -> Optional[ChatTurn]:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return None
            turn = ChatTurn(role=role, content=content)
            tab.ai_context.append(turn)
            self.save()
        return turn

    def extend_last_turn(self, tab_id: str, fragment: str) -> bool:
        """Append streamed text to the tab's in-progress assistant turn."""
        with self.lock:
            tab = self._find(tab_id)
            if tab is None or not tab.ai_context or tab.ai_context[-1].role != "assistant":
                return False
            tab.ai_context[-1].content += fragment
        return True

    def clear_chat(self, tab_id: str) -> bool:
        with self.lock:
            tab = self._find(tab_id)
            if tab is None:
                return False
            tab.ai_context.clear()
            self.save()
        return True

    def chat_context(self, tab_id: str) -> List[ChatTurn]:
        with self.lock:
            tab = self._find(tab_id)
            return list(tab.ai_context) if tab else []

    # ----- internals -----

    def _find(self, tab_id: Optional[str]) -> Optional[Tab]:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def _index_of(self, tab_id: str) -> int:
        for i, tab in enumerate(self.tabs):
            if tab.id == tab_id:
                return i
        return -1

    def _open_default(self) -> Tab:
        tab = Tab(url=self.new_tab_url, title=self.default_title)
        self._insert(tab)
        self.active_tab_id = tab.id
        return tab

    def _announce_new(self, tab: Tab) -> None:
        self.bus.emit(EventType.TAB_CREATED, tab=tab)
        self.bus.emit(EventType.TAB_ACTIVATED, tab=tab)

    def _insert(self, tab: Tab) -> None:
        if tab.pinned:
            first_unpinned = next((i for i, t in enumerate(self.tabs) if not t.pinned), len(self.tabs))
            self.tabs.insert(first_unpinned, tab)
        else:
            self.tabs.append(tab)

    def _sort(self) -> None:
        # sorted() is stable, so equal timestamps keep their current order
        pinned = sorted((t for t in self.tabs if t.pinned), key=lambda t: t.timestamp)
        rest = sorted((t for t in self.tabs if not t.pinned), key=lambda t: t.timestamp)
        self.tabs = pinned + rest

    def snapshot(self) -> List[dict]:
        with self.lock:
            return [t.to_record() for t in self.tabs]

    def save(self) -> None:
        if self.persister is None:
            return
        try:
            self.persister.schedule_save(self.snapshot())
        except Exception:
            logger.exception("Could not queue tab save")
