import logging
import time
from datetime import datetime
from typing import List, Optional

from zk.base import make_commkey

from config import CONFIG, AppConfig
from .exceptions import AuthenticationError, ConnectError, TransferError, ZKError, ZKNetworkError
from .packet import (
    CMD_ACK_UNAUTH, CMD_ATTLOG, CMD_AUTH, CMD_CLEAR_ATTLOG, CMD_CONNECT, CMD_DATA,
    CMD_DEVICE, CMD_DISABLEDEVICE, CMD_ENABLEDEVICE, CMD_EXIT, CMD_GET_TIME, CMD_PREPARE_DATA,
    Reply, build_header, checksum, parse_reply, read_size,
)
from .records import AttendanceRecord, decode_attendance, decode_device_time
from .session import SessionState
from .transport import Endpoint, TransportMode, make_transport

_logger = logging.getLogger(__name__)

# Selector keys understood by the DEVICE (options read) command
DEVICE_INFO_FIELDS = {
    'name': '~DeviceName',
    'serial_number': '~SerialNumber',
    'platform': '~Platform',
    'firmware_version': 'FWVersion',
    'mac': 'MAC',
}


class WireClient:
    """Frames and exchanges ZK protocol packets with one device endpoint.

    The client performs no reconnects, transport fallback or retries beyond
    the bounded UDP connect handshake. Expected negatives (timeouts,
    unexpected reply codes) are returned as ``None``/``False``; only setup
    failures and broken sockets raise.
    """

    def __init__(self, endpoint: Endpoint, config: Optional[AppConfig] = None, transport=None):
        self.endpoint = endpoint
        self.config = config or CONFIG
        self._transport = transport or make_transport(endpoint, self.config.timeout)
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state.connected

    @property
    def session_id(self) -> int:
        return self._state.session_id

    # --- connection lifecycle ---

    def connect(self) -> bool:
        self._state.begin_connect()
        try:
            self._transport.open()
        except OSError as e:
            self._state.reset()
            raise ConnectError(f"Unable to open {self.endpoint}: {e}") from e

        packet = self._packet(CMD_CONNECT, session_id=0, reply_id=0)
        try:
            if self.endpoint.mode is TransportMode.UDP:
                data = self._handshake_udp(packet)
            else:
                data = self._handshake_tcp(packet)
        except ConnectError:
            self._abort_connect()
            raise

        reply = parse_reply(data) if data and len(data) >= 8 else None
        if reply is None:
            _logger.info("No connect reply from %s", self.endpoint)
            self._abort_connect()
            return False

        self._state.mark_connected(reply.header.session_id)
        self._state.record_sent(CMD_CONNECT)
        _logger.info("Connected to %s (session %d)", self.endpoint, self._state.session_id)
        return True

    def _handshake_udp(self, packet: bytes) -> Optional[bytes]:
        cfg = self.config
        for attempt in range(1, cfg.udp_send_retries + 1):
            try:
                self._transport.send(packet)
            except OSError as e:
                _logger.debug("Connect send %d/%d to %s failed: %s", attempt, cfg.udp_send_retries, self.endpoint, e)
                time.sleep(cfg.udp_retry_delay)
                continue
            for _ in range(cfg.udp_receive_polls):
                try:
                    data = self._transport.receive(timeout=cfg.udp_poll_interval)
                except OSError as e:
                    # ICMP port unreachable surfaces here as ConnectionRefusedError
                    _logger.debug("Connect receive from %s failed: %s", self.endpoint, e)
                    break
                if data:
                    return data
            if attempt < cfg.udp_send_retries:
                time.sleep(cfg.udp_retry_delay)
        return None

    def _handshake_tcp(self, packet: bytes) -> Optional[bytes]:
        try:
            self._transport.send(packet)
            return self._transport.receive()
        except (OSError, ZKError) as e:
            raise ConnectError(f"TCP handshake with {self.endpoint} failed: {e}") from e

    def _abort_connect(self) -> None:
        self._transport.close()
        self._state.reset()

    def disconnect(self) -> None:
        try:
            if self._state.connected:
                try:
                    self._transport.send(self._packet(CMD_EXIT))
                except OSError as e:
                    _logger.debug("EXIT to %s not delivered: %s", self.endpoint, e)
        finally:
            self._transport.close()
            self._state.reset()

    # --- packet exchange ---

    def _packet(self, command: int, payload: bytes = b'', session_id: Optional[int] = None,
                reply_id: Optional[int] = None) -> bytes:
        if session_id is None:
            session_id = self._state.session_id
        if reply_id is None:
            reply_id = self._state.reply_id
        chk = checksum(payload) if self.config.sign_packets else 0
        return build_header(command, chk, session_id, reply_id) + payload

    def _send_command(self, command: int, payload: bytes = b'') -> Optional[Reply]:
        packet = self._packet(command, payload)
        try:
            self._transport.send(packet)
            self._state.record_sent(command)
            data = self._transport.receive()
        except OSError as e:
            raise ZKNetworkError(f"Socket error talking to {self.endpoint}: {e}") from e
        if not data or len(data) < 8:
            _logger.debug("No reply to command %d from %s", command, self.endpoint)
            return None
        return parse_reply(data)

    def _simple(self, command: int, payload: bytes = b'') -> bool:
        if not self.is_connected:
            return False
        reply = self._send_command(command, payload)
        return reply is not None and reply.ok

    # --- device commands ---

    def enable_device(self) -> bool:
        return self._simple(CMD_ENABLEDEVICE)

    def disable_device(self) -> bool:
        return self._simple(CMD_DISABLEDEVICE)

    def clear_attendance(self) -> bool:
        return self._simple(CMD_CLEAR_ATTLOG)

    def get_attendance(self) -> Optional[List[AttendanceRecord]]:
        """Read the attendance log.

        Returns None when the device does not announce a data transfer.
        Raises TransferError if the transfer stops part way; partial
        results are never returned.
        """
        if not self.is_connected:
            return None
        reply = self._send_command(CMD_ATTLOG)
        if reply is None or reply.command != CMD_PREPARE_DATA:
            _logger.info("No attendance data announced by %s (reply %s)", self.endpoint,
                         reply.command if reply else None)
            return None
        if len(reply.payload) < 4:
            _logger.info("PREPARE_DATA from %s carries no size field", self.endpoint)
            return None
        size = read_size(reply.payload)
        buf = bytearray()
        while len(buf) < size:
            chunk = self._send_command(CMD_DATA)
            if chunk is None or not chunk.payload:
                raise TransferError(f"Transfer from {self.endpoint} stopped at {len(buf)} of {size} bytes")
            buf += chunk.payload
        records = decode_attendance(bytes(buf), size)
        _logger.debug("Decoded %d records from %d bytes", len(records), size)
        return records

    def get_time(self) -> Optional[datetime]:
        if not self.is_connected:
            return None
        reply = self._send_command(CMD_GET_TIME)
        if reply is None or not reply.ok or len(reply.payload) < 4:
            return None
        return decode_device_time(reply.payload)

    def get_device_info(self, field: str) -> Optional[str]:
        if not self.is_connected:
            return None
        key = DEVICE_INFO_FIELDS.get(field, field)
        reply = self._send_command(CMD_DEVICE, key.encode('ascii') + b'\x00')
        if reply is None or not reply.ok:
            return None
        text = reply.payload.split(b'\x00', 1)[0].decode('ascii', errors='replace')
        if '=' in text:
            text = text.split('=', 1)[1]
        return text.strip() or None

    def get_device_name(self) -> Optional[str]:
        return self.get_device_info('name')

    def get_serialnumber(self) -> Optional[str]:
        return self.get_device_info('serial_number')

    def get_platform(self) -> Optional[str]:
        return self.get_device_info('platform')

    def get_firmware_version(self) -> Optional[str]:
        return self.get_device_info('firmware_version')

    def get_mac(self) -> Optional[str]:
        mac = self.get_device_info('mac')
        if mac and ':' not in mac and len(mac) % 2 == 0:
            mac = ':'.join(mac[i:i + 2] for i in range(0, len(mac), 2))
        return mac

    # --- credential hooks ---

    def check_serial_number(self, serial_number: str) -> bool:
        actual = self.get_serialnumber()
        if actual is None:
            return False
        if actual != serial_number:
            raise AuthenticationError(f"Serial mismatch on {self.endpoint}: expected {serial_number}, got {actual}")
        return True

    def set_device_pin(self, pin: int) -> bool:
        if not self.is_connected:
            return False
        reply = self._send_command(CMD_AUTH, make_commkey(int(pin), self._state.session_id))
        if reply is None:
            return False
        if reply.command == CMD_ACK_UNAUTH:
            raise AuthenticationError(f"Device {self.endpoint} rejected the comm key")
        return reply.ok
