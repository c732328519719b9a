import sqlite3
from contextlib import contextmanager
from typing import Optional

from config import CONFIG


def _path(db_path: Optional[str]) -> str:
    return db_path or CONFIG.db_path


def init_db(db_path: Optional[str] = None) -> None:
    conn = sqlite3.connect(_path(db_path))
    try:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS devices (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                ip TEXT NOT NULL,
                port INTEGER NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                password INTEGER DEFAULT 0,
                serialnumber TEXT,
                firmware TEXT,
                platform TEXT,
                device_name TEXT,
                mac TEXT,
                last_error TEXT,
                last_seen TEXT,
                last_download TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS attendance (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                device_id INTEGER,
                user_id TEXT,
                timestamp TEXT,
                status INTEGER,
                punch INTEGER,
                raw_json TEXT,
                FOREIGN KEY(device_id) REFERENCES devices(id)
            )
            """
        )
        # One row per punch per device
        cur.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_att_unique ON attendance(device_id, user_id, timestamp)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_att_user_ts ON attendance(user_id, timestamp)")
        conn.commit()
    finally:
        conn.close()


@contextmanager
def get_conn(db_path: Optional[str] = None):
    conn = sqlite3.connect(_path(db_path))
    try:
        yield conn
    finally:
        conn.close()
