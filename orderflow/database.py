# orderflow/database.py
"""
Simple file-backed record store using CSV files as storage.
Provides basic CRUD primitives per table name plus a conditional update used
for optimistic concurrency. Uses file locking so that concurrent writers
(request handlers and the expiration worker) never interleave a
read-modify-write cycle on the same table.

Every value is stored as a string; domain models convert on the way in/out.

Usage:
    from orderflow.database import db
    db.get_record("orders", "id", "abc")
    db.create_record("offers", {"order_id": "abc", "from_id": "u1"})
    db.compare_and_update("orders", "id", "abc", {"state": "submitted"}, {"state": "approved"})
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import uuid

import pandas as pd
from filelock import FileLock

from orderflow.config import settings


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


class FileBackedDB:
    """
    Manages CSV files inside data_dir.
    Table name corresponds to a file name in settings (or you may pass a full filename).
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir if data_dir is not None else settings.DATA_DIR)

    def _file_path(self, table: str) -> Path:
        # allow passing explicit filenames
        if table.endswith(".csv"):
            return self.data_dir / Path(table)

        mapping = {
            "orders": settings.ORDERS_FILE,
            "offers": settings.OFFERS_FILE,
            "expiration_jobs": settings.EXPIRATION_JOBS_FILE,
        }
        filename = mapping.get(table, f"{table}.csv")
        return self.data_dir / Path(filename)

    def _lock_for(self, path: Path) -> FileLock:
        path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(str(path) + ".lock")

    def _read_df(self, table: str) -> pd.DataFrame:
        path = self._file_path(table)
        if not path.exists() or path.stat().st_size == 0:
            return pd.DataFrame()
        return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")

    def _write_df_nolock(self, table: str, df: pd.DataFrame) -> None:
        """
        Write DataFrame for `table` WITHOUT acquiring the file lock.
        Use this only when the caller already holds the lock.
        """
        path = self._file_path(table)
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)

    @staticmethod
    def _row_to_dict(row: pd.Series) -> Dict[str, Any]:
        return {k: (None if pd.isna(v) else v) for k, v in row.to_dict().items()}

    @staticmethod
    def _match(df: pd.DataFrame, criteria: Dict[str, Any]) -> pd.Series:
        mask = pd.Series(True, index=df.index)
        for k, v in criteria.items():
            if k not in df.columns:
                return pd.Series(False, index=df.index)
            mask &= df[k].astype(str) == _cell(v)
        return mask

    @staticmethod
    def _apply(df: pd.DataFrame, mask: pd.Series, updates: Dict[str, Any]) -> None:
        for k, v in updates.items():
            if k not in df.columns:
                df[k] = ""
            df.loc[mask, k] = _cell(v)

    # --- high-level CRUD primitives ---

    def ensure_table(self, table: str) -> Path:
        """Create an empty file for `table` if it does not exist yet."""
        path = self._file_path(table)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.touch()
        return path

    def list_records(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty:
            return []
        if filters:
            df = df[self._match(df, filters)]
        return [self._row_to_dict(row) for _, row in df.iterrows()]

    def get_record(self, table: str, key: str, value: Any) -> Optional[Dict[str, Any]]:
        df = self._read_df(table)
        if df.empty or key not in df.columns:
            return None
        mask = df[key].astype(str) == _cell(value)
        if not mask.any():
            return None
        return self._row_to_dict(df[mask].iloc[0])

    def create_record(self, table: str, data: Dict[str, Any], id_field: str = "id") -> Dict[str, Any]:
        """
        Create a new record. If id_field not present in `data`, one will be generated (uuid4 hex).
        Returns the saved record (with id).
        """
        if not data.get(id_field):
            data[id_field] = uuid.uuid4().hex
        new_row = {k: _cell(v) for k, v in data.items()}
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty:
                df = pd.DataFrame([new_row])
            else:
                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True, sort=False).fillna("")
            self._write_df_nolock(table, df)
        return data

    def update_record(self, table: str, key: str, value: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update rows where df[key] == value with fields in updates. Returns the updated first row dict or None.
        """
        return self.compare_and_update(table, key, value, {}, updates)

    def compare_and_update(self, table: str, key: str, value: Any, expected: Dict[str, Any],
                           updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Atomically apply `updates` to the row where df[key] == value, but only if every
        field in `expected` still holds the given value. The check and the write happen
        under the same lock.

        Returns the updated row, or None when the row is missing or a precondition failed.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(table)
            if df.empty or key not in df.columns:
                return None
            mask = self._match(df, {key: value, **expected})
            if not mask.any():
                return None
            self._apply(df, mask, updates)
            self._write_df_nolock(table, df)
            return self._row_to_dict(df[mask].iloc[0])


# module-level singleton for convenience
db = FileBackedDB()
