from dataclasses import dataclass
from typing import Optional


@dataclass
class Device:
    id: Optional[int]
    name: str
    ip: str
    port: int = 4370
    enabled: bool = True
    password: int = 0
    serialnumber: Optional[str] = None
    firmware: Optional[str] = None
    platform: Optional[str] = None
    device_name: Optional[str] = None
    mac: Optional[str] = None
    last_error: Optional[str] = None
    last_seen: Optional[str] = None
    last_download: Optional[str] = None


@dataclass
class Attendance:
    id: Optional[int]
    device_id: Optional[int]
    user_id: str
    timestamp: str
    status: int
    punch: int
    raw_json: str = ""
