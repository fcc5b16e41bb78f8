"""Synchronous publish/subscribe bus connecting the session, navigation and UI layers."""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    TAB_CREATED = "tab:created"
    TAB_CLOSED = "tab:closed"
    TAB_ACTIVATED = "tab:activated"
    TAB_UPDATED = "tab:updated"
    TAB_NAVIGATE = "tab:navigate"
    TAB_RELOAD = "tab:reload"
    TABS_LOADED = "tabs:loaded"
    VIEW_HISTORY = "view:history"
    VIEW_BOOKMARKS = "view:bookmarks"
    VIEW_SETTINGS = "view:settings"
    AI_KEY_UPDATED = "ai:key-updated"
    AI_MODEL_CHANGED = "ai:model-changed"
    ERROR = "error"
    SUCCESS = "success"


class Event:
    """A message delivered to every listener of ``type``."""

    def __init__(self, event_type: EventType, **kwargs: Any):
        self.type = event_type
        self.data = kwargs

    def __getattr__(self, name: str) -> Any:
        try:
            return self.__dict__["data"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __repr__(self) -> str:
        return f"Event({self.type.value}, {sorted(self.data)})"


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[EventType, List[Handler]] = {}

    def on(self, event_type: EventType, handler: Handler) -> Callable[[], None]:
        """Subscribe ``handler``; returns a callable that unsubscribes it."""
        self._handlers.setdefault(event_type, []).append(handler)
        return lambda: self.off(event_type, handler)

    def once(self, event_type: EventType, handler: Handler) -> Callable[[], None]:
        def wrapper(event: Event) -> None:
            self.off(event_type, wrapper)
            handler(event)

        return self.on(event_type, wrapper)

    def off(self, event_type: EventType, handler: Handler) -> None:
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event_type]

    def emit(self, event_type: EventType, **data: Any) -> Event:
        event = Event(event_type, **data)
        # snapshot so handlers may subscribe/unsubscribe while we dispatch
        for handler in list(self._handlers.get(event_type, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("Error in event handler for %r", event_type.value)
        return event

    def clear(self, event_type: Optional[EventType] = None) -> None:
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def listener_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, ()))
