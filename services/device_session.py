import logging
import socket
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional

from config import CONFIG, AppConfig
from protocol.client import WireClient
from protocol.exceptions import AttendanceFetchError, ConnectError, ZKError
from protocol.records import AttendanceRecord
from protocol.transport import Endpoint, TransportMode

_logger = logging.getLogger(__name__)

NOT_AVAILABLE = 'N/A'

ClientFactory = Callable[[Endpoint, AppConfig], WireClient]


@dataclass(frozen=True)
class Credentials:
    serial_number: Optional[str] = None
    device_pin: Optional[int] = None


@dataclass
class DeviceInfoSummary:
    device_name: str = NOT_AVAILABLE
    serial_number: str = NOT_AVAILABLE
    platform: str = NOT_AVAILABLE
    firmware_version: str = NOT_AVAILABLE
    mac_address: str = NOT_AVAILABLE
    connection_status: str = 'Connected'
    ip_address: str = ''
    port: int = 0
    transport: str = ''

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeviceSession:
    """Connection policy for one device: transport fallback, recovery, cleanup.

    Owns at most one WireClient at a time. Never shared between threads; poll
    several devices by giving each its own DeviceSession.
    """

    def __init__(self, ip: str, port: Optional[int] = None, credentials: Optional[Credentials] = None,
                 config: Optional[AppConfig] = None, client_factory: Optional[ClientFactory] = None):
        self.config = config or CONFIG
        self.ip = ip
        self.port = port or self.config.default_port
        self.credentials = credentials or Credentials()
        self._client_factory = client_factory or WireClient
        self._client: Optional[WireClient] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    @property
    def client(self) -> Optional[WireClient]:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _endpoint(self, mode: TransportMode) -> Endpoint:
        return Endpoint(self.ip, self.port, mode)

    # --- lifecycle ---

    def connect(self, credentials: Optional[Credentials] = None) -> bool:
        if credentials is not None:
            self.credentials = credentials
        if self._client is not None:
            self.disconnect()
            self._client = None
        client_config = replace(self.config, timeout=self.config.session_timeout)
        _logger.info("Attempting connection to %s:%s (serial %s)", self.ip, self.port,
                     self.credentials.serial_number)
        for mode in (TransportMode.UDP, TransportMode.TCP):
            client = self._client_factory(self._endpoint(mode), client_config)
            self._client = client
            try:
                connected = client.connect()
            except ZKError as e:
                _logger.warning("%s connection attempt to %s:%s failed: %s", mode.value, self.ip, self.port, e)
                continue
            if not connected:
                _logger.warning("%s connection attempt to %s:%s got no reply", mode.value, self.ip, self.port)
                continue
            _logger.info("Connection successful to %s:%s over %s", self.ip, self.port, mode.value)
            self._apply_credentials(client)
            try:
                if not client.enable_device():
                    _logger.warning("EnableDevice not acknowledged by %s:%s, continuing", self.ip, self.port)
            except ZKError as e:
                _logger.warning("EnableDevice command failed, but continuing: %s", e)
            return True
        _logger.error("Both UDP and TCP connection attempts to %s:%s failed", self.ip, self.port)
        self._client = None
        return False

    def _apply_credentials(self, client: WireClient) -> None:
        creds = self.credentials
        if creds.serial_number:
            try:
                client.check_serial_number(creds.serial_number)
            except ZKError as e:
                _logger.warning("Serial number check failed: %s", e)
        if creds.device_pin:
            try:
                client.set_device_pin(creds.device_pin)
            except ZKError as e:
                _logger.warning("Device PIN setup failed: %s", e)

    def reconnect(self) -> bool:
        return self.connect()

    def disconnect(self) -> None:
        client = self._client
        if client is None:
            return
        try:
            client.disconnect()
            _logger.info("Disconnected from %s:%s", self.ip, self.port)
        except (ZKError, OSError) as e:
            _logger.error("Error during disconnect from %s:%s: %s", self.ip, self.port, e)

    def _ensure_connected(self) -> WireClient:
        if not self.is_connected and not self.connect():
            raise ConnectError(f"Cannot connect to device {self.ip}:{self.port}")
        return self._client

    # --- operations ---

    @contextmanager
    def _disable_on_exit(self) -> Iterator[WireClient]:
        client = self._ensure_connected()
        try:
            yield client
        finally:
            try:
                if client.is_connected:
                    client.disable_device()
            except (ZKError, OSError) as e:
                _logger.warning("Error during device cleanup: %s", e)

    def _recover(self, client: WireClient) -> None:
        client.disable_device()
        time.sleep(self.config.recovery_delay)
        client.enable_device()

    def get_attendance(self) -> List[AttendanceRecord]:
        """Fetch the attendance log, with one disable/wait/enable recovery cycle.

        The device is disabled again on every exit path. The session stays
        open; disconnecting is up to the caller.
        """
        try:
            with self._disable_on_exit() as client:
                _logger.info("Fetching attendance logs from %s:%s", self.ip, self.port)
                records = client.get_attendance()
                if records is None:
                    _logger.warning("First attempt to get attendance from %s:%s failed, trying recovery",
                                    self.ip, self.port)
                    self._recover(client)
                    records = client.get_attendance()
                    if records is None:
                        raise AttendanceFetchError(
                            f"Failed to get attendance data from {self.ip}:{self.port} even after recovery")
                _logger.info("Successfully fetched %d attendance records from %s:%s", len(records), self.ip, self.port)
                return records
        except ZKError as e:
            _logger.error("Failed to get attendance from %s:%s: %s", self.ip, self.port, e)
            raise

    def clear_attendance(self) -> bool:
        client = self._ensure_connected()
        client.enable_device()
        result = client.clear_attendance()
        if result:
            _logger.info("Cleared attendance logs on %s:%s", self.ip, self.port)
        else:
            _logger.warning("Failed to clear attendance logs on %s:%s", self.ip, self.port)
        return result

    def get_time(self) -> Optional[datetime]:
        return self._ensure_connected().get_time()

    def _query(self, getter: Callable[[], Optional[str]]) -> str:
        try:
            return getter() or NOT_AVAILABLE
        except ZKError as e:
            _logger.warning("Device info query failed on %s:%s: %s", self.ip, self.port, e)
            return NOT_AVAILABLE

    def get_device_info(self) -> DeviceInfoSummary:
        client = self._ensure_connected()
        return DeviceInfoSummary(
            device_name=self._query(client.get_device_name),
            serial_number=self._query(client.get_serialnumber),
            platform=self._query(client.get_platform),
            firmware_version=self._query(client.get_firmware_version),
            mac_address=self._query(client.get_mac),
            ip_address=self.ip,
            port=self.port,
            transport=client.endpoint.mode.value,
        )

    def test_socket(self, timeout: float = 5.0) -> Dict[str, Any]:
        """Plain TCP reachability probe, independent of the protocol."""
        try:
            sock = socket.create_connection((self.ip, self.port), timeout=timeout)
        except OSError as e:
            return {'success': False, 'message': f"Socket connection failed: {e}"}
        sock.close()
        return {'success': True, 'message': "Basic socket connection successful"}
