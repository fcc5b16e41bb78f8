import json
import os
import time
from typing import Any, Dict, List, Optional

import pandas as pd

from ..errors import StorageUnavailable
from .atomic import read_frame_safe, repair_frame_if_needed, write_frame_atomic

TABS = "tabs"
HISTORY = "history"
BOOKMARKS = "bookmarks"
AI_CHATS = "ai_chats"
SETTINGS = "settings"

# store name -> field holding the record key
STORES: Dict[str, str] = {
    TABS: "id",
    HISTORY: "id",
    BOOKMARKS: "id",
    AI_CHATS: "id",
    SETTINGS: "key",
}

COLUMNS = ["key", "data", "updated_at"]


def _now() -> int:
    return int(time.time() * 1000)


class RecordStore:
    """Keyed JSON records in one parquet table per logical store."""

    def __init__(self, data_dir: str) -> None:
        self.meta_dir = os.path.join(data_dir, "meta")

    def open(self) -> None:
        try:
            os.makedirs(self.meta_dir, exist_ok=True)
            for name in STORES:
                repair_frame_if_needed(self.table_path(name), COLUMNS)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot open storage at {self.meta_dir}: {exc}") from exc

    def table_path(self, store: str) -> str:
        if store not in STORES:
            raise StorageUnavailable(f"Unknown store: {store}")
        return os.path.join(self.meta_dir, f"{store}.parquet")

    def _read(self, store: str) -> pd.DataFrame:
        df = read_frame_safe(self.table_path(store))
        if df.empty:
            return pd.DataFrame(columns=COLUMNS)
        return df

    def _write(self, store: str, df: pd.DataFrame) -> None:
        os.makedirs(self.meta_dir, exist_ok=True)
        write_frame_atomic(self.table_path(store), df.reset_index(drop=True))

    def _key_of(self, store: str, value: Dict[str, Any], key: Optional[str]) -> str:
        if key is not None:
            return str(key)
        field = STORES[store]
        if value.get(field) is None:
            raise KeyError(f"Record for {store!r} has no {field!r}")
        return str(value[field])

    def put(self, store: str, value: Dict[str, Any], key: Optional[str] = None) -> str:
        k = self._key_of(store, value, key)
        df = self._read(store)
        row = {"key": k, "data": json.dumps(value, ensure_ascii=False), "updated_at": _now()}
        hit = df.index[df["key"] == k]
        if len(hit):
            df.loc[hit[0], ["data", "updated_at"]] = [row["data"], row["updated_at"]]
        else:
            df = pd.concat([df, pd.DataFrame([row])], ignore_index=True)
        self._write(store, df)
        return k

    def add(self, store: str, value: Dict[str, Any], key: Optional[str] = None) -> str:
        k = self._key_of(store, value, key)
        if self.get(store, k) is not None:
            raise KeyError(f"Key {k!r} already exists in {store!r}")
        return self.put(store, value, k)

    def get(self, store: str, key: str) -> Optional[Dict[str, Any]]:
        df = self._read(store)
        hit = df[df["key"] == str(key)]
        if hit.empty:
            return None
        return json.loads(hit.iloc[0]["data"])

    def get_all(self, store: str) -> List[Dict[str, Any]]:
        return [json.loads(d) for d in self._read(store)["data"].tolist()]

    def query(self, store: str, field: str, value: Any) -> List[Dict[str, Any]]:
        return [r for r in self.get_all(store) if r.get(field) == value]

    def replace_all(self, store: str, values: List[Dict[str, Any]]) -> None:
        ts = _now()
        rows = [
            {"key": self._key_of(store, v, None), "data": json.dumps(v, ensure_ascii=False), "updated_at": ts}
            for v in values
        ]
        self._write(store, pd.DataFrame(rows, columns=COLUMNS))

    def delete(self, store: str, key: str) -> None:
        df = self._read(store)
        self._write(store, df[df["key"] != str(key)])

    def clear(self, store: str) -> None:
        self._write(store, pd.DataFrame(columns=COLUMNS))
