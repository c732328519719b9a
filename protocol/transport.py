import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import ZKNetworkError
from .packet import TCP_TOP_SIZE, hex_dump, unwrap_tcp_top, wrap_tcp

_logger = logging.getLogger(__name__)

DEFAULT_PORT = 4370
UDP_BUFFER_SIZE = 65535


class TransportMode(Enum):
    UDP = 'UDP'
    TCP = 'TCP'


@dataclass(frozen=True)
class Endpoint:
    ip: str
    port: int = DEFAULT_PORT
    mode: TransportMode = TransportMode.UDP

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}/{self.mode.value}"


class _SocketTransport:
    mode: TransportMode
    _kind: int

    def __init__(self, endpoint: Endpoint, timeout: float):
        self.endpoint = endpoint
        self.timeout = timeout
        self._sock: Optional[socket.socket] = None

    @property
    def address(self):
        return (self.endpoint.ip, self.endpoint.port)

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        self._sock = socket.socket(socket.AF_INET, self._kind)
        self._sock.settimeout(self.timeout)

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise ZKNetworkError("Socket is not open")
        return self._sock

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Read one packet, or return None if nothing arrives in time."""
        sock = self._require()
        if timeout is not None:
            sock.settimeout(timeout)
        try:
            data = self._read_packet(sock)
        except socket.timeout:
            return None
        finally:
            if timeout is not None and self._sock is not None:
                self._sock.settimeout(self.timeout)
        if data:
            _logger.debug("[RX %s] %s", self.endpoint, hex_dump(data))
        return data

    def _read_packet(self, sock: socket.socket) -> Optional[bytes]:
        raise NotImplementedError


class UdpTransport(_SocketTransport):
    mode = TransportMode.UDP
    _kind = socket.SOCK_DGRAM

    def send(self, packet: bytes) -> None:
        _logger.debug("[TX %s] %s", self.endpoint, hex_dump(packet))
        self._require().sendto(packet, self.address)

    def _read_packet(self, sock):
        data, _ = sock.recvfrom(UDP_BUFFER_SIZE)
        return data


class TcpTransport(_SocketTransport):
    mode = TransportMode.TCP
    _kind = socket.SOCK_STREAM

    def open(self) -> None:
        super().open()
        try:
            self._sock.connect(self.address)
        except OSError:
            self.close()
            raise

    def send(self, packet: bytes) -> None:
        _logger.debug("[TX %s] %s", self.endpoint, hex_dump(packet))
        self._require().sendall(wrap_tcp(packet))

    def _read_packet(self, sock):
        top = self._read_exact(sock, TCP_TOP_SIZE, first=True)
        return self._read_exact(sock, unwrap_tcp_top(top))

    @staticmethod
    def _read_exact(sock: socket.socket, size: int, first: bool = False) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            try:
                chunk = sock.recv(size - len(buf))
            except socket.timeout:
                if first and not buf:
                    raise
                raise ZKNetworkError(f"Incomplete TCP frame: {len(buf)} of {size} bytes")
            if not chunk:
                raise ZKNetworkError("Connection closed by device")
            buf += chunk
        return bytes(buf)


def make_transport(endpoint: Endpoint, timeout: float):
    if endpoint.mode is TransportMode.TCP:
        return TcpTransport(endpoint, timeout)
    return UdpTransport(endpoint, timeout)
