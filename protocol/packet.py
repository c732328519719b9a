import struct
from typing import NamedTuple

from zk import const

from .exceptions import ZKErrorResponse

CMD_CONNECT = const.CMD_CONNECT
CMD_EXIT = const.CMD_EXIT
CMD_ENABLEDEVICE = const.CMD_ENABLEDEVICE
CMD_DISABLEDEVICE = const.CMD_DISABLEDEVICE
CMD_PREPARE_DATA = const.CMD_PREPARE_DATA
CMD_DATA = const.CMD_DATA
CMD_ATTLOG = const.CMD_ATTLOG_RRQ
CMD_CLEAR_ATTLOG = const.CMD_CLEAR_ATTLOG
CMD_GET_TIME = const.CMD_GET_TIME
CMD_DEVICE = const.CMD_OPTIONS_RRQ
CMD_AUTH = const.CMD_AUTH

CMD_ACK_OK = const.CMD_ACK_OK
CMD_ACK_ERROR = const.CMD_ACK_ERROR
CMD_ACK_DATA = const.CMD_ACK_DATA
CMD_ACK_UNAUTH = const.CMD_ACK_UNAUTH

HEADER_SIZE = 8
U16_MOD = const.USHRT_MAX + 1

_HEADER = struct.Struct('<4H')
_TCP_TOP = struct.Struct('<HHI')
_SIZE = struct.Struct('<I')


class Header(NamedTuple):
    command: int
    checksum: int
    session_id: int
    reply_id: int


class Reply(NamedTuple):
    header: Header
    payload: bytes

    @property
    def command(self) -> int:
        return self.header.command

    @property
    def ok(self) -> bool:
        return self.header.command == CMD_ACK_OK


def checksum(payload: bytes) -> int:
    """16-bit truncated sum of the payload bytes."""
    return sum(payload) % U16_MOD


def build_header(command: int, checksum: int = 0, session_id: int = 0, reply_id: int = 0) -> bytes:
    return _HEADER.pack(command % U16_MOD, checksum % U16_MOD, session_id % U16_MOD, reply_id % U16_MOD)


def parse_header(data: bytes) -> Header:
    if len(data) < HEADER_SIZE:
        raise ZKErrorResponse(f"Short packet: {len(data)} bytes, need {HEADER_SIZE}")
    return Header(*_HEADER.unpack_from(data))


def parse_reply(data: bytes) -> Reply:
    return Reply(parse_header(data), bytes(data[HEADER_SIZE:]))


def read_size(payload: bytes) -> int:
    """Total transfer size announced by a PREPARE_DATA reply."""
    if len(payload) < _SIZE.size:
        raise ZKErrorResponse("PREPARE_DATA reply carries no size field")
    return _SIZE.unpack_from(payload)[0]


# --- TCP stream envelope ---

TCP_TOP_SIZE = _TCP_TOP.size


def wrap_tcp(packet: bytes) -> bytes:
    return _TCP_TOP.pack(const.MACHINE_PREPARE_DATA_1, const.MACHINE_PREPARE_DATA_2, len(packet)) + packet


def unwrap_tcp_top(top: bytes) -> int:
    """Validate a TCP envelope prefix and return the length of the packet behind it."""
    magic1, magic2, length = _TCP_TOP.unpack(top)
    if magic1 != const.MACHINE_PREPARE_DATA_1 or magic2 != const.MACHINE_PREPARE_DATA_2:
        raise ZKErrorResponse(f"Bad TCP envelope {top.hex()}")
    return length


def hex_dump(data: bytes) -> str:
    return ' '.join(f'{b:02X}' for b in data)
