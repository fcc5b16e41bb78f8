import json
import logging
import os
from typing import Any, Dict, Optional

from .atomic import write_text_atomic

logger = logging.getLogger(__name__)

TABS_KEY = "aib_tabs"
API_KEY = "aib_api_key"
MODEL_KEY = "ai_model"
THEME_KEY = "aib_theme"
ACTIVE_TAB_KEY = "aib_active_tab"
SESSION_KEY = "aib_user_session"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "theme": "light",
    "defaultModel": "anthropic/claude-3.5-sonnet",
    "aiMode": "chat",
    "autoSave": True,
    "showBookmarksBar": False,
    "enableAnimations": True,
    "compactMode": False,
}


class KeyValueStore:
    """Small JSON document of settings, written atomically on every change."""

    def __init__(self, path: str, defaults: Optional[Dict[str, Any]] = None) -> None:
        self.path = path
        self.defaults = dict(DEFAULT_SETTINGS if defaults is None else defaults)

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable settings file %s: %s", self.path, exc)
            return {}

    def _save(self, data: Dict[str, Any]) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        write_text_atomic(self.path, json.dumps(data, ensure_ascii=False, indent=2))

    def all(self) -> Dict[str, Any]:
        out = self.defaults.copy()
        out.update(self._load())
        return out

    def get(self, key: str, default: Any = None) -> Any:
        return self.all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def update(self, values: Dict[str, Any]) -> Dict[str, Any]:
        data = self._load()
        data.update(values)
        self._save(data)
        return self.all()

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        self._save({})
