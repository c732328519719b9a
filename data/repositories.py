from typing import List, Optional

from .db import get_conn
from .models import Attendance, Device

_DEVICE_COLS = "id,name,ip,port,enabled,password,serialnumber,firmware,platform,device_name,mac,last_error,last_seen,last_download"


def _device(r) -> Device:
    return Device(id=r[0], name=r[1], ip=r[2], port=r[3], enabled=bool(r[4]), password=int(r[5] or 0),
                  serialnumber=r[6], firmware=r[7], platform=r[8], device_name=r[9], mac=r[10],
                  last_error=r[11], last_seen=r[12], last_download=r[13])


class DeviceRepository:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def list(self) -> List[Device]:
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_DEVICE_COLS} FROM devices ORDER BY id")
            rows = cur.fetchall()
        return [_device(r) for r in rows]

    def get(self, device_id: int) -> Optional[Device]:
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_DEVICE_COLS} FROM devices WHERE id=?", (device_id,))
            r = cur.fetchone()
        if not r:
            return None
        return _device(r)

    def create(self, d: Device) -> Optional[int]:
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO devices(name,ip,port,enabled,password,serialnumber,firmware,platform,device_name,mac,last_error,last_seen,last_download) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?)",
                (d.name, d.ip, d.port, 1 if d.enabled else 0, int(d.password or 0), d.serialnumber, d.firmware, d.platform, d.device_name, d.mac, d.last_error, d.last_seen, d.last_download),
            )
            conn.commit()
            d.id = cur.lastrowid
            return d.id

    def update(self, d: Device) -> None:
        if d.id is None:
            return
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE devices SET name=?, ip=?, port=?, enabled=?, password=?, serialnumber=?, firmware=?, platform=?, device_name=?, mac=?, last_error=?, last_seen=?, last_download=? WHERE id=?",
                (d.name, d.ip, d.port, 1 if d.enabled else 0, int(d.password or 0), d.serialnumber, d.firmware, d.platform, d.device_name, d.mac, d.last_error, d.last_seen, d.last_download, d.id),
            )
            conn.commit()


class AttendanceRepository:
    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path

    def insert_many(self, device_id: int, events: List[Attendance]) -> int:
        """Insert events, ignoring ones already stored. Returns the number inserted."""
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            before = conn.total_changes
            cur.executemany(
                "INSERT OR IGNORE INTO attendance(device_id,user_id,timestamp,status,punch,raw_json) VALUES (?,?,?,?,?,?)",
                [(device_id, e.user_id, e.timestamp, e.status, e.punch, e.raw_json) for e in events]
            )
            conn.commit()
            return conn.total_changes - before

    def list_for_device(self, device_id: int, limit: int = 1000) -> List[Attendance]:
        with get_conn(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute("SELECT id,device_id,user_id,timestamp,status,punch,raw_json FROM attendance WHERE device_id=? ORDER BY timestamp LIMIT ?", (device_id, limit))
            rows = cur.fetchall()
        return [Attendance(id=r[0], device_id=r[1], user_id=r[2], timestamp=r[3], status=r[4], punch=r[5], raw_json=r[6] or "") for r in rows]
