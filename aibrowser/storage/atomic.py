import logging
import os

import pandas as pd

logger = logging.getLogger(__name__)


def _fsync_file(p: str) -> None:
    try:
        fd = os.open(p, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        pass


def _fsync_dir(p: str) -> None:
    try:
        dfd = os.open(os.path.dirname(p) or ".", os.O_RDONLY)
        try:
            os.fsync(dfd)
        finally:
            os.close(dfd)
    except OSError:
        pass


def _commit(tmp: str, path: str) -> None:
    """Rotate ``path`` to ``path.bak`` and move ``tmp`` into place."""
    bak = path + ".bak"
    if os.path.exists(path):
        try:
            os.replace(path, bak)
        except OSError as exc:
            logger.warning("Could not rotate backup for %s: %s", path, exc)
    os.replace(tmp, path)
    _fsync_file(path)
    _fsync_dir(path)


def write_text_atomic(path: str, content: str) -> None:
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())
    _commit(tmp, path)


def write_frame_atomic(path: str, df: pd.DataFrame) -> None:
    """Atomically replace a parquet table, keeping the previous one as ``.bak``.

    Pattern: write .tmp -> fsync -> rotate .bak -> rename -> fsync dir.
    """
    tmp = path + ".tmp"
    df.to_parquet(tmp, engine="pyarrow", index=False)
    _fsync_file(tmp)
    _commit(tmp, path)


def read_frame_safe(path: str) -> pd.DataFrame:
    if not os.path.exists(path):
        return pd.DataFrame()
    try:
        return pd.read_parquet(path, engine="pyarrow")
    except Exception:
        bak = path + ".bak"
        if os.path.exists(bak):
            logger.warning("Corrupt table %s, reading backup", path)
            return pd.read_parquet(bak, engine="pyarrow")
        raise


def repair_frame_if_needed(path: str, required_columns: list[str] | None = None) -> bool:
    """Promote ``path.bak`` when the main table is missing or unreadable.

    Returns True when a repair happened.
    """
    bak = path + ".bak"
    if not os.path.exists(path):
        if os.path.exists(bak):
            os.replace(bak, path)
            return True
        return False
    try:
        df = pd.read_parquet(path, engine="pyarrow")
        missing = [c for c in (required_columns or []) if c not in df.columns]
        if missing:
            raise ValueError(f"missing columns {missing}")
    except Exception as exc:
        if not os.path.exists(bak):
            logger.error("Table %s is unreadable and has no backup: %s", path, exc)
            return False
        try:
            bdf = pd.read_parquet(bak, engine="pyarrow")
        except Exception:
            logger.error("Backup for %s is unreadable too", path)
            return False
        if any(c not in bdf.columns for c in (required_columns or [])):
            return False
        os.replace(bak, path)
        logger.warning("Restored %s from backup (%s)", path, exc)
        return True
    return False
