import os

import pandas as pd
import pytest

from aibrowser.errors import StorageUnavailable
from aibrowser.models import Bookmark, ChatMessage, HistoryRecord, Tab, now_ms
from aibrowser.storage import records
from aibrowser.storage.atomic import read_frame_safe, repair_frame_if_needed, write_frame_atomic
from aibrowser.storage.kv import KeyValueStore
from aibrowser.storage.manager import DAY_MS, StorageManager
from aibrowser.storage.records import RecordStore


@pytest.fixture()
def store(tmp_path):
    rs = RecordStore(str(tmp_path))
    rs.open()
    return rs


def test_put_get_and_upsert(store):
    store.put(records.BOOKMARKS, {"id": "b1", "url": "https://a.com"})
    store.put(records.BOOKMARKS, {"id": "b1", "url": "https://b.com"})
    assert store.get(records.BOOKMARKS, "b1") == {"id": "b1", "url": "https://b.com"}
    assert len(store.get_all(records.BOOKMARKS)) == 1
    assert store.get(records.BOOKMARKS, "missing") is None


def test_add_refuses_existing_key(store):
    store.add(records.HISTORY, {"id": "h1", "url": "https://a.com"})
    with pytest.raises(KeyError):
        store.add(records.HISTORY, {"id": "h1", "url": "https://b.com"})


def test_settings_are_keyed_by_name(store):
    store.put(records.SETTINGS, {"key": "theme", "value": "dark"})
    assert store.get(records.SETTINGS, "theme")["value"] == "dark"


def test_query_delete_replace_clear(store):
    store.put(records.AI_CHATS, {"id": "1", "tab_id": "t1"})
    store.put(records.AI_CHATS, {"id": "2", "tab_id": "t2"})
    assert [r["id"] for r in store.query(records.AI_CHATS, "tab_id", "t2")] == ["2"]
    store.delete(records.AI_CHATS, "1")
    assert [r["id"] for r in store.get_all(records.AI_CHATS)] == ["2"]
    store.replace_all(records.AI_CHATS, [{"id": "3"}, {"id": "4"}])
    assert [r["id"] for r in store.get_all(records.AI_CHATS)] == ["3", "4"]
    store.clear(records.AI_CHATS)
    assert store.get_all(records.AI_CHATS) == []


def test_unknown_store(store):
    with pytest.raises(StorageUnavailable):
        store.get_all("downloads")


def test_corrupt_table_is_restored_from_backup(tmp_path):
    path = str(tmp_path / "t.parquet")
    write_frame_atomic(path, pd.DataFrame({"key": ["a"], "data": ["{}"], "updated_at": [1]}))
    write_frame_atomic(path, pd.DataFrame({"key": ["b"], "data": ["{}"], "updated_at": [2]}))
    with open(path, "wb") as f:
        f.write(b"not parquet")
    assert read_frame_safe(path)["key"].tolist() == ["a"]
    assert repair_frame_if_needed(path, records.COLUMNS)
    assert pd.read_parquet(path)["key"].tolist() == ["a"]


def test_missing_table_is_promoted_from_backup(tmp_path):
    path = str(tmp_path / "t.parquet")
    write_frame_atomic(path, pd.DataFrame({"key": ["a"], "data": ["{}"], "updated_at": [1]}))
    os.replace(path, path + ".bak")
    assert repair_frame_if_needed(path)
    assert os.path.exists(path)


def test_kv_defaults_and_corrupt_file(tmp_path):
    path = tmp_path / "settings.json"
    kv = KeyValueStore(str(path), {"theme": "light"})
    assert kv.get("theme") == "light"
    kv.set("theme", "dark")
    assert KeyValueStore(str(path), {"theme": "light"}).get("theme") == "dark"
    path.write_text("{broken", encoding="utf-8")
    assert kv.get("theme") == "light"


def test_save_tabs_replaces_previous_set(storage):
    a, b = Tab(url="https://a.com"), Tab(url="https://b.com")
    assert storage.save_tabs([a.to_record(), b.to_record()])
    assert storage.save_tabs([b.to_record()])
    assert [t["url"] for t in storage.load_tabs()] == ["https://b.com"]


def test_load_tabs_falls_back_to_settings_file(storage, monkeypatch):
    storage.save_tabs([Tab(url="https://a.com").to_record()])

    def unavailable(store):
        raise StorageUnavailable("gone")

    monkeypatch.setattr(storage.records, "get_all", unavailable)
    assert [t["url"] for t in storage.load_tabs()] == ["https://a.com"]


def test_unusable_data_dir_degrades_quietly(tmp_path):
    blocked = tmp_path / "blocked"
    blocked.write_text("file, not a directory")
    manager = StorageManager(str(blocked))
    assert not manager.init()
    assert not manager.save_tabs([])
    assert manager.load_tabs() == []
    assert manager.get_history() == []


def test_history_newest_first_and_search(storage):
    storage.add_history(HistoryRecord(url="https://a.com", title="Alpha", timestamp=now_ms() - 2000))
    storage.add_history(HistoryRecord(url="https://b.com", title="Beta", timestamp=now_ms() - 1000))
    assert [h["title"] for h in storage.get_history()] == ["Beta", "Alpha"]
    assert [h["url"] for h in storage.search_history("ALPHA")] == ["https://a.com"]
    assert storage.clear_history()
    assert storage.get_history() == []


def test_history_pruned_by_count_and_age(tmp_path):
    manager = StorageManager(str(tmp_path), history_max_entries=2, history_retention_days=1)
    manager.init()
    manager.add_history(HistoryRecord(url="https://old.com", timestamp=now_ms() - 2 * DAY_MS))
    assert manager.get_history() == []
    for i in range(3):
        manager.add_history(HistoryRecord(url=f"https://{i}.com", timestamp=now_ms() + i))
    assert [h["url"] for h in manager.get_history()] == ["https://2.com", "https://1.com"]


def test_bookmark_folder_limit(tmp_path):
    manager = StorageManager(str(tmp_path), bookmarks_max_per_folder=1)
    manager.init()
    assert manager.add_bookmark(Bookmark(url="https://a.com", folder="work"))
    assert not manager.add_bookmark(Bookmark(url="https://b.com", folder="work"))
    assert manager.add_bookmark(Bookmark(url="https://c.com", folder="home"))
    assert manager.is_bookmarked("https://c.com")
    assert not manager.is_bookmarked("https://b.com")
    assert [b["url"] for b in manager.get_bookmarks("work")] == ["https://a.com"]


def test_chat_archive_per_tab(storage):
    storage.save_chat_message(ChatMessage(tab_id="t1", role="user", content="hi"))
    storage.save_chat_message(ChatMessage(tab_id="t2", role="user", content="yo"))
    assert [m["content"] for m in storage.get_chat_history("t1")] == ["hi"]
    storage.clear_chat_history("t1")
    assert storage.get_chat_history("t1") == []
    assert len(storage.get_chat_history()) == 1


def test_settings_merge_defaults(storage):
    assert storage.get_setting("theme") == "light"
    storage.save_setting("theme", "dark")
    assert storage.get_setting("theme") == "dark"
    assert storage.get_all_settings()["theme"] == "dark"
    assert storage.get_all_settings()["autoSave"] is True
    assert storage.get_setting("nonexistent", 5) == 5


def test_export_then_import(storage, tmp_path):
    storage.save_tabs([Tab(url="https://a.com").to_record()])
    storage.add_bookmark(Bookmark(url="https://a.com", title="A"))
    storage.save_setting("theme", "dark")
    dump = storage.export_data()
    assert "export_date" in dump

    other = StorageManager(str(tmp_path / "other"))
    other.init()
    assert other.import_data(dump)
    assert [t["url"] for t in other.load_tabs()] == ["https://a.com"]
    assert other.is_bookmarked("https://a.com")
    assert other.get_setting("theme") == "dark"


def test_clear_all(storage):
    storage.save_tabs([Tab().to_record()])
    storage.add_bookmark(Bookmark(url="https://a.com"))
    assert storage.clear_all()
    assert storage.load_tabs() == []
    assert storage.get_bookmarks() == []
