import struct
from typing import List, Optional

import pytest

from config import AppConfig
from protocol.packet import build_header


def reply(command: int, payload: bytes = b'', session_id: int = 0, reply_id: int = 0) -> bytes:
    return build_header(command, 0, session_id, reply_id) + payload


def size_payload(size: int) -> bytes:
    return struct.pack('<I', size)


def make_record(uid: bytes = b'123', year: int = 2024, month: int = 6, day: int = 15,
                hour: int = 8, minute: int = 30, second: int = 0, status: int = 1, punch: int = 0) -> bytes:
    raw = bytearray(40)
    raw[0:len(uid)] = uid
    raw[24:28] = bytes([year & 0xFF, year >> 8, month, day])
    raw[28] = status
    raw[29] = punch
    raw[30:33] = bytes([hour, minute, second])
    return bytes(raw)


class FakeTransport:
    """Scripted transport: each receive() pops the next canned reply (None = timeout)."""

    def __init__(self, replies: Optional[List[Optional[bytes]]] = None, open_error: Optional[Exception] = None,
                 send_error: Optional[Exception] = None):
        self.replies = list(replies or [])
        self.open_error = open_error
        self.send_error = send_error
        self.sent: List[bytes] = []
        self.receive_timeouts: List[Optional[float]] = []
        self.opened = False
        self.closed = False

    def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def close(self):
        self.closed = True

    def send(self, packet: bytes):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(packet)

    def receive(self, timeout=None):
        self.receive_timeouts.append(timeout)
        if self.replies:
            return self.replies.pop(0)
        return None


@pytest.fixture
def fast_config(tmp_path):
    return AppConfig(
        timeout=1.0,
        session_timeout=1.0,
        udp_poll_interval=0.05,
        udp_retry_delay=0.0,
        recovery_delay=0.0,
        db_path=str(tmp_path / 'test.db'),
    )
