from __future__ import annotations

import time
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# Version 1 records predate pinning and per-tab chat context.
SCHEMA_VERSION = 2


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""


class Tab(BaseModel):
    id: str = Field(default_factory=new_id)
    url: str = "about:newtab"
    title: str = "New Tab"
    favicon: Optional[str] = None
    loading: bool = False
    pinned: bool = False
    history: List[str] = Field(default_factory=list)
    history_index: int = -1
    scroll_position: int = 0
    timestamp: int = Field(default_factory=now_ms)
    ai_context: List[ChatTurn] = Field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        rec = self.model_dump(mode="json")
        rec["schema_version"] = SCHEMA_VERSION
        return rec

    @classmethod
    def from_record(cls, rec: Dict[str, Any], max_history: int = 50) -> "Tab":
        """Build a tab from a persisted record of any schema version.

        Fields missing from older records fall back to their defaults, the
        history is trimmed to ``max_history`` (oldest first) and the cursor is
        clamped into range. ``loading`` never survives a restart.
        """
        data = {k: v for k, v in rec.items() if k in cls.model_fields and v is not None}
        # camelCase keys written by the first browser build
        for legacy, name in (("historyIndex", "history_index"), ("aiContext", "ai_context"),
                             ("scrollPosition", "scroll_position")):
            if legacy in rec and name not in data and rec[legacy] is not None:
                data[name] = rec[legacy]
        if int(rec.get("schema_version") or 1) < 2:
            data.setdefault("pinned", False)
            data.setdefault("ai_context", [])
        data["loading"] = False
        tab = cls.model_validate(data)

        history = list(tab.history)
        index = tab.history_index
        overflow = len(history) - max_history
        if overflow > 0:
            history = history[overflow:]
            index -= overflow
        tab.history = history
        tab.history_index = max(-1, min(index, len(history) - 1))
        return tab


class ClosedTab(Tab):
    closed_at: int = Field(default_factory=now_ms)


class HistoryRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    url: str
    title: str = ""
    timestamp: int = Field(default_factory=now_ms)


class Bookmark(BaseModel):
    id: str = Field(default_factory=new_id)
    url: str
    title: str = ""
    folder: Optional[str] = None
    created_at: int = Field(default_factory=now_ms)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_id)
    tab_id: Optional[str] = None
    role: Literal["user", "assistant", "system"]
    content: str
    model: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)
