"""Attendance record layout and decoding.

Each record on the wire is 40 bytes:

    0..8    user identifier, ASCII, zero padded
    24..27  date: year (2 bytes, low byte first), month, day
    28      status code
    29      punch type code
    30..32  time of day: hour, minute, second

Date and time fields are raw byte values, not BCD. Erased log slots carry
zeroed dates; such records keep their raw text and have no timestamp.
"""
import logging
import struct
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

_logger = logging.getLogger(__name__)

RECORD_SIZE = 40
ID_SLICE = slice(0, 9)
DATE_SLICE = slice(24, 28)
STATUS_OFFSET = 28
PUNCH_OFFSET = 29
CLOCK_SLICE = slice(30, 33)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class AttendanceRecord:
    employee_identifier: str
    timestamp: Optional[datetime]
    status: int
    punch_type: int
    raw_timestamp: str = ''

    @property
    def timestamp_text(self) -> str:
        if self.timestamp is not None:
            return self.timestamp.strftime(TIME_FORMAT)
        return self.raw_timestamp

    def as_dict(self) -> Dict[str, Any]:
        return {
            'employee_identifier': self.employee_identifier,
            'timestamp': self.timestamp_text,
            'status': self.status,
            'punch_type': self.punch_type,
        }


def decode_identifier(raw: bytes) -> str:
    return raw.replace(b'\x00', b'').decode('ascii', errors='replace').strip()


def decode_time(raw: bytes) -> str:
    """Render packed date bytes (and optional hour/minute/second bytes) as text.

    Accepts either the 4 date bytes alone, which yields midnight, or those
    followed by 3 time-of-day bytes.
    """
    year = raw[1] << 8 | raw[0]
    month, day = raw[2], raw[3]
    hour = minute = second = 0
    if len(raw) >= 7:
        hour, minute, second = raw[4], raw[5], raw[6]
    return f"{year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d}:{second:02d}"


def parse_timestamp(text: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text, TIME_FORMAT)
    except ValueError:
        _logger.debug("Record timestamp %s is not a calendar date", text)
        return None


def decode_record(raw: bytes) -> Optional[AttendanceRecord]:
    if len(raw) < RECORD_SIZE:
        return None
    text = decode_time(raw[DATE_SLICE] + raw[CLOCK_SLICE])
    return AttendanceRecord(
        employee_identifier=decode_identifier(raw[ID_SLICE]),
        timestamp=parse_timestamp(text),
        status=raw[STATUS_OFFSET],
        punch_type=raw[PUNCH_OFFSET],
        raw_timestamp=text,
    )


def decode_attendance(data: bytes, size: Optional[int] = None) -> List[AttendanceRecord]:
    """Split a transfer buffer into records; a trailing partial record is dropped.

    Every full record is kept, so the result always holds ``size // 40`` entries.
    """
    if size is None:
        size = len(data)
    size = min(size, len(data))
    return [decode_record(data[offset:offset + RECORD_SIZE])
            for offset in range(0, size - RECORD_SIZE + 1, RECORD_SIZE)]


def decode_device_time(raw: bytes) -> datetime:
    """Decode the 4-byte packed device clock returned for GET_TIME."""
    t = struct.unpack('<I', raw[:4])[0]
    second = t % 60
    t //= 60
    minute = t % 60
    t //= 60
    hour = t % 24
    t //= 24
    day = t % 31 + 1
    t //= 31
    month = t % 12 + 1
    t //= 12
    year = t + 2000
    return datetime(year, month, day, hour, minute, second)
