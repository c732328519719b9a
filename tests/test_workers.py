import logging
import sqlite3
import time

from PyQt5 import QtCore

from config import AppConfig
from data.models import Device
from protocol.exceptions import ConnectError
from services.device_session import DeviceInfoSummary
from services.download_service import DownloadSummary
from workers.base_worker import BaseWorker, forward_log, run_in_thread
from workers.zk_workers import ClearAttendanceWorker, DeviceInfoWorker, DiagnosticWorker, DownloadEventsWorker


class FlakyService:
    def __init__(self, failures):
        self.config = AppConfig(fetch_job_tries=3)
        self.failures = failures
        self.calls = 0

    def download_events(self, device, clear_after=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectError('Cannot connect to device')
        return DownloadSummary(total=2, saved=2)

    def refresh_device_info(self, device):
        if self.failures:
            raise ConnectError('Cannot connect to device')
        return DeviceInfoSummary(device_name='K40', ip_address=device.ip, port=device.port)


def collect(worker):
    out = {'result': [], 'error': [], 'log': []}
    worker.result.connect(lambda payload: out['result'].append(payload))
    worker.error.connect(lambda message: out['error'].append(message))
    worker.log.connect(lambda msg, level: out['log'].append(level))
    worker.run()
    return out


DEVICE = Device(id=1, name='Entrada', ip='10.0.0.5', port=4370)


def test_download_retries_until_success():
    service = FlakyService(failures=2)
    out = collect(DownloadEventsWorker(service, DEVICE))
    assert service.calls == 3
    assert out['error'] == []
    assert out['result'] == [{'total': 2, 'saved': 2, 'skipped': 0, 'cleared': False}]
    assert out['log'].count('WARN') == 2


def test_download_reports_device_after_last_try():
    service = FlakyService(failures=5)
    out = collect(DownloadEventsWorker(service, DEVICE))
    assert service.calls == 3
    assert out['result'] == []
    assert out['error'] == ['Entrada (10.0.0.5:4370): Cannot connect to device']


def test_device_info_worker():
    out = collect(DeviceInfoWorker(FlakyService(failures=0), DEVICE))
    assert out['result'][0]['device_name'] == 'K40'
    out = collect(DeviceInfoWorker(FlakyService(failures=1), DEVICE))
    assert out['error'] == ['Cannot connect to device']


class LockedDatabaseService(FlakyService):
    def __init__(self):
        super().__init__(failures=0)

    def download_events(self, device, clear_after=None):
        self.calls += 1
        raise sqlite3.OperationalError('database is locked')

    def refresh_device_info(self, device):
        raise sqlite3.OperationalError('database is locked')

    def open_session(self, device):
        raise sqlite3.OperationalError('database is locked')


def test_download_reports_storage_errors_without_retry():
    service = LockedDatabaseService()
    out = collect(DownloadEventsWorker(service, DEVICE))
    assert service.calls == 1
    assert out['result'] == []
    assert out['error'] == ['Entrada (10.0.0.5:4370): database is locked']
    assert out['log'][-1] == 'ERROR'


def test_info_and_clear_workers_report_storage_errors():
    for worker in (DeviceInfoWorker(LockedDatabaseService(), DEVICE),
                   ClearAttendanceWorker(LockedDatabaseService(), DEVICE)):
        out = collect(worker)
        assert out['result'] == []
        assert out['error'] == ['database is locked']


def test_worker_threads_are_named_after_the_device():
    assert DownloadEventsWorker(FlakyService(0), DEVICE).thread_name() == 'zk-10.0.0.5:4370'
    assert DiagnosticWorker('10.0.0.9', 4371).thread_name() == 'zk-10.0.0.9:4371'


def test_log_signal_reaches_logger(caplog):
    worker = DeviceInfoWorker(FlakyService(failures=0), DEVICE)
    forward_log(worker, logging.getLogger('zk.test'))
    with caplog.at_level(logging.DEBUG, logger='zk.test'):
        worker.log.emit('Intento fallido', 'WARN')
    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [(logging.WARNING, 'Intento fallido')]


class ImmediateWorker(BaseWorker):
    def run(self):
        self.result.emit('done')


def test_event_loop_stops_when_worker_finishes_immediately():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    worker = ImmediateWorker()
    results = []
    worker.result.connect(lambda payload: results.append(payload))
    started = time.monotonic()
    run_in_thread(worker, on_finished=app.quit)
    QtCore.QTimer.singleShot(5000, app.quit)
    app.exec_()
    assert results == ['done']
    assert time.monotonic() - started < 4
