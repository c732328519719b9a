import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from config import CONFIG, AppConfig
from data.models import Attendance, Device
from data.repositories import AttendanceRepository, DeviceRepository
from protocol.exceptions import ZKError
from protocol.records import AttendanceRecord
from .device_session import Credentials, DeviceInfoSummary, DeviceSession, NOT_AVAILABLE

_logger = logging.getLogger(__name__)

SessionFactory = Callable[..., DeviceSession]


@dataclass
class DownloadSummary:
    total: int = 0
    saved: int = 0
    skipped: int = 0
    cleared: bool = False


class DownloadService:
    def __init__(self, attendance_repo: AttendanceRepository, device_repo: DeviceRepository,
                 config: Optional[AppConfig] = None, session_factory: Optional[SessionFactory] = None):
        self.attendance_repo = attendance_repo
        self.device_repo = device_repo
        self.config = config or CONFIG
        self._session_factory = session_factory or DeviceSession

    def open_session(self, device: Device) -> DeviceSession:
        creds = Credentials(serial_number=device.serialnumber or None, device_pin=device.password or None)
        return self._session_factory(device.ip, device.port, credentials=creds, config=self.config)

    def _now(self) -> str:
        return datetime.now().strftime(self.config.datetime_format)

    def download_events(self, device: Device, clear_after: Optional[bool] = None) -> DownloadSummary:
        if clear_after is None:
            clear_after = self.config.delete_after_download
        session = self.open_session(device)
        cleared = False
        try:
            records = session.get_attendance()
            if clear_after:
                cleared = session.clear_attendance()
        except ZKError as e:
            device.last_error = f"{type(e).__name__}: {e}"
            self.device_repo.update(device)
            raise
        finally:
            session.disconnect()
        summary = self.persist_events(device.id, records)
        summary.cleared = cleared
        device.last_download = device.last_seen = self._now()
        device.last_error = None
        self.device_repo.update(device)
        return summary

    def persist_events(self, device_id: int, records: List[AttendanceRecord]) -> DownloadSummary:
        summary = DownloadSummary(total=len(records))
        valid: List[Attendance] = []
        for r in records:
            if not r.employee_identifier or r.timestamp is None:
                _logger.warning("Invalid log skipped: user=%r timestamp=%s", r.employee_identifier, r.timestamp_text)
                summary.skipped += 1
                continue
            valid.append(Attendance(
                id=None,
                device_id=device_id,
                user_id=r.employee_identifier,
                timestamp=r.timestamp.strftime(self.config.datetime_format),
                status=r.status,
                punch=r.punch_type,
                raw_json=json.dumps(r.as_dict()),
            ))
        size = max(1, self.config.fetch_chunk_size)
        for start in range(0, len(valid), size):
            chunk = valid[start:start + size]
            inserted = self.attendance_repo.insert_many(device_id, chunk)
            summary.saved += inserted
            summary.skipped += len(chunk) - inserted
            _logger.info("Processed log chunk: %d saved, %d already stored", inserted, len(chunk) - inserted)
        _logger.info("Biometric logs processed for device %s: total=%d saved=%d skipped=%d",
                     device_id, summary.total, summary.saved, summary.skipped)
        return summary

    def refresh_device_info(self, device: Device) -> DeviceInfoSummary:
        session = self.open_session(device)
        try:
            info = session.get_device_info()
        finally:
            session.disconnect()

        def known(value: str) -> Optional[str]:
            return None if value == NOT_AVAILABLE else value

        device.device_name = known(info.device_name) or device.device_name
        device.serialnumber = known(info.serial_number) or device.serialnumber
        device.platform = known(info.platform) or device.platform
        device.firmware = known(info.firmware_version) or device.firmware
        device.mac = known(info.mac_address) or device.mac
        device.last_seen = self._now()
        self.device_repo.update(device)
        return info
