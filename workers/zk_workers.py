import time
from dataclasses import asdict
from typing import Optional

from protocol.exceptions import ZKError
from services.device_session import Credentials
from services.diagnostics import run_diagnostic
from services.download_service import DownloadService
from data.models import Device
from workers.base_worker import BaseWorker


class DownloadEventsWorker(BaseWorker):
    """Fetch and persist a device's attendance log, retrying the whole job."""

    def __init__(self, service: DownloadService, device: Device, clear_after: Optional[bool] = None,
                 tries: Optional[int] = None, retry_delay: float = 0.0):
        super().__init__()
        self.service = service
        self.device = device
        self.clear_after = clear_after
        self.tries = tries or service.config.fetch_job_tries
        self.retry_delay = retry_delay

    def thread_name(self) -> str:
        return f"zk-{self.device.ip}:{self.device.port}"

    def run(self):
        label = f"{self.device.name} ({self.device.ip}:{self.device.port})"
        for attempt in range(1, self.tries + 1):
            try:
                self.progress.emit(attempt, label)
                self.log.emit(f"Conectando a {label}, intento {attempt}/{self.tries}", "INFO")
                summary = self.service.download_events(self.device, self.clear_after)
            except ZKError as e:
                if attempt < self.tries:
                    self.log.emit(f"Descarga fallida en {label}: {e}", "WARN")
                    time.sleep(self.retry_delay)
                    continue
                self.log.emit(f"Descarga fallida en {label}: {e}", "ERROR")
                self.error.emit(f"{label}: {e}")
                return
            except Exception as e:
                self.log.emit(f"Error guardando eventos de {label}: {e}", "ERROR")
                self.error.emit(f"{label}: {e}")
                return
            self.log.emit(f"Descargados {summary.total} eventos, {summary.saved} nuevos", "INFO")
            if summary.cleared:
                self.log.emit("Eventos borrados en el dispositivo", "INFO")
            self.result.emit(asdict(summary))
            return


class DeviceInfoWorker(BaseWorker):
    def __init__(self, service: DownloadService, device: Device):
        super().__init__()
        self.service = service
        self.device = device

    def thread_name(self) -> str:
        return f"zk-{self.device.ip}:{self.device.port}"

    def run(self):
        try:
            self.log.emit(f"Leyendo info de {self.device.ip}:{self.device.port}", "INFO")
            info = self.service.refresh_device_info(self.device)
            self.result.emit(info.as_dict())
        except Exception as e:
            self.error.emit(str(e))


class ClearAttendanceWorker(BaseWorker):
    def __init__(self, service: DownloadService, device: Device):
        super().__init__()
        self.service = service
        self.device = device

    def thread_name(self) -> str:
        return f"zk-{self.device.ip}:{self.device.port}"

    def run(self):
        session = None
        try:
            session = self.service.open_session(self.device)
            ok = session.clear_attendance()
            self.log.emit("Eventos borrados en el dispositivo" if ok else "El dispositivo no confirmó el borrado",
                          "INFO" if ok else "WARN")
            self.result.emit({"cleared": ok})
        except Exception as e:
            self.error.emit(str(e))
        finally:
            if session is not None:
                session.disconnect()


class DiagnosticWorker(BaseWorker):
    def __init__(self, ip: str, port: int, credentials: Optional[Credentials] = None):
        super().__init__()
        self.ip = ip
        self.port = port
        self.credentials = credentials

    def thread_name(self) -> str:
        return f"zk-{self.ip}:{self.port}"

    def run(self):
        try:
            self.log.emit(f"Diagnosticando {self.ip}:{self.port}", "INFO")
            report = run_diagnostic(self.ip, self.port, credentials=self.credentials)
            self.result.emit(report)
        except Exception as e:
            self.error.emit(str(e))
