"""Best-effort persistence for tabs, history, bookmarks, chats and settings.

Every public method logs and swallows storage failures: in-memory state owned
by the session store is the source of truth and storage is only a cache.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models import Bookmark, ChatMessage, HistoryRecord, now_ms
from . import records
from .kv import DEFAULT_SETTINGS, TABS_KEY, KeyValueStore
from .records import RecordStore

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class StorageManager:
    def __init__(
        self,
        data_dir: str,
        history_max_entries: int = 1000,
        history_retention_days: int = 90,
        bookmarks_max_per_folder: int = 100,
    ) -> None:
        self.records = RecordStore(data_dir)
        self.kv = KeyValueStore(os.path.join(data_dir, "settings.json"), DEFAULT_SETTINGS)
        self.history_max_entries = history_max_entries
        self.history_retention_days = history_retention_days
        self.bookmarks_max_per_folder = bookmarks_max_per_folder
        self.ready = False

    def init(self) -> bool:
        try:
            self.records.open()
            self.ready = True
            logger.info("Storage initialized at %s", self.records.meta_dir)
        except Exception:
            logger.exception("Storage initialization failed")
        return self.ready

    # ----- tabs -----

    def save_tabs(self, tabs: List[Dict[str, Any]]) -> bool:
        ok = True
        try:
            self.records.replace_all(records.TABS, tabs)
        except Exception:
            logger.exception("Error saving tabs")
            ok = False
        try:
            self.kv.set(TABS_KEY, tabs)
        except Exception:
            logger.exception("Error saving tabs to settings fallback")
            ok = False
        return ok

    def load_tabs(self) -> List[Dict[str, Any]]:
        try:
            tabs = self.records.get_all(records.TABS)
            if tabs:
                return tabs
        except Exception:
            logger.exception("Error loading tabs, trying settings fallback")
        try:
            return list(self.kv.get(TABS_KEY, []) or [])
        except Exception:
            logger.exception("Error loading tabs")
            return []

    # ----- history -----

    def add_history(self, entry: HistoryRecord) -> bool:
        try:
            self.records.add(records.HISTORY, entry.model_dump())
            self._prune_history()
            return True
        except Exception:
            logger.exception("Error adding history")
            return False

    def _prune_history(self) -> None:
        entries = self.records.get_all(records.HISTORY)
        cutoff = now_ms() - self.history_retention_days * DAY_MS
        keep = [e for e in entries if int(e.get("timestamp", 0)) >= cutoff]
        keep.sort(key=lambda e: e.get("timestamp", 0), reverse=True)
        keep = keep[: self.history_max_entries]
        if len(keep) != len(entries):
            keep.reverse()
            self.records.replace_all(records.HISTORY, keep)

    def get_history(self, limit: int = 100) -> List[Dict[str, Any]]:
        try:
            entries = self.records.get_all(records.HISTORY)
            entries.sort(key=lambda e: e.get("timestamp", 0), reverse=True)
            return entries[:limit]
        except Exception:
            logger.exception("Error getting history")
            return []

    def search_history(self, query: str) -> List[Dict[str, Any]]:
        q = query.lower()
        try:
            hits = [
                e for e in self.records.get_all(records.HISTORY)
                if q in (e.get("title") or "").lower() or q in (e.get("url") or "").lower()
            ]
            hits.sort(key=lambda e: e.get("timestamp", 0), reverse=True)
            return hits
        except Exception:
            logger.exception("Error searching history")
            return []

    def clear_history(self) -> bool:
        try:
            self.records.clear(records.HISTORY)
            return True
        except Exception:
            logger.exception("Error clearing history")
            return False

    # ----- bookmarks -----

    def add_bookmark(self, bookmark: Bookmark) -> bool:
        try:
            in_folder = self.records.query(records.BOOKMARKS, "folder", bookmark.folder)
            if len(in_folder) >= self.bookmarks_max_per_folder:
                logger.warning("Bookmark folder %r is full", bookmark.folder)
                return False
            self.records.add(records.BOOKMARKS, bookmark.model_dump())
            return True
        except Exception:
            logger.exception("Error adding bookmark")
            return False

    def get_bookmarks(self, folder: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            if folder:
                return self.records.query(records.BOOKMARKS, "folder", folder)
            return self.records.get_all(records.BOOKMARKS)
        except Exception:
            logger.exception("Error getting bookmarks")
            return []

    def delete_bookmark(self, bookmark_id: str) -> bool:
        try:
            self.records.delete(records.BOOKMARKS, bookmark_id)
            return True
        except Exception:
            logger.exception("Error deleting bookmark")
            return False

    def is_bookmarked(self, url: str) -> bool:
        try:
            return any(b.get("url") == url for b in self.records.get_all(records.BOOKMARKS))
        except Exception:
            return False

    # ----- AI chats -----

    def save_chat_message(self, message: ChatMessage) -> bool:
        try:
            self.records.add(records.AI_CHATS, message.model_dump())
            return True
        except Exception:
            logger.exception("Error saving chat message")
            return False

    def get_chat_history(self, tab_id: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            if tab_id:
                return self.records.query(records.AI_CHATS, "tab_id", tab_id)
            return self.records.get_all(records.AI_CHATS)
        except Exception:
            logger.exception("Error getting chat history")
            return []

    def clear_chat_history(self, tab_id: Optional[str] = None) -> bool:
        try:
            if tab_id:
                for chat in self.records.query(records.AI_CHATS, "tab_id", tab_id):
                    self.records.delete(records.AI_CHATS, chat["id"])
            else:
                self.records.clear(records.AI_CHATS)
            return True
        except Exception:
            logger.exception("Error clearing chat history")
            return False

    # ----- settings -----

    def save_setting(self, key: str, value: Any) -> bool:
        try:
            self.records.put(records.SETTINGS, {"key": key, "value": value})
            self.kv.set(key, value)
            return True
        except Exception:
            logger.exception("Error saving setting %s", key)
            return False

    def get_setting(self, key: str, default: Any = None) -> Any:
        try:
            rec = self.records.get(records.SETTINGS, key)
            if rec is not None:
                return rec.get("value")
            value = self.kv.get(key)
            return default if value is None else value
        except Exception:
            logger.warning("Falling back to settings file for %s", key)
            try:
                return self.kv.get(key, default)
            except Exception:
                return default

    def get_all_settings(self) -> Dict[str, Any]:
        try:
            out = dict(DEFAULT_SETTINGS)
            for rec in self.records.get_all(records.SETTINGS):
                out[rec["key"]] = rec.get("value")
            return out
        except Exception:
            logger.exception("Error getting settings")
            return dict(DEFAULT_SETTINGS)

    # ----- export / import -----

    def export_data(self) -> Dict[str, Any]:
        return {
            "tabs": self.load_tabs(),
            "history": self.get_history(self.history_max_entries),
            "bookmarks": self.get_bookmarks(),
            "settings": self.get_all_settings(),
            "export_date": datetime.now(timezone.utc).isoformat(),
        }

    def import_data(self, data: Dict[str, Any]) -> bool:
        try:
            for tab in data.get("tabs") or []:
                self.records.put(records.TABS, tab)
            for entry in data.get("history") or []:
                self.records.put(records.HISTORY, entry)
            for bookmark in data.get("bookmarks") or []:
                self.records.put(records.BOOKMARKS, bookmark)
            for key, value in (data.get("settings") or {}).items():
                self.save_setting(key, value)
            return True
        except Exception:
            logger.exception("Error importing data")
            return False

    def clear_all(self) -> bool:
        try:
            for store in (records.TABS, records.HISTORY, records.BOOKMARKS, records.AI_CHATS):
                self.records.clear(store)
            self.kv.clear()
            return True
        except Exception:
            logger.exception("Error clearing all data")
            return False
