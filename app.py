import argparse
import json
import logging
import sys

from PyQt5 import QtCore

from config import CONFIG
from data.db import init_db
from data.models import Device
from data.repositories import AttendanceRepository, DeviceRepository
from services.device_session import Credentials
from services.download_service import DownloadService
from workers.base_worker import BaseWorker, run_in_thread
from workers.zk_workers import ClearAttendanceWorker, DeviceInfoWorker, DiagnosticWorker, DownloadEventsWorker


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description='ZKTeco attendance terminal client')
    p.add_argument('command', choices=['fetch', 'info', 'diagnose', 'clear'])
    p.add_argument('ip')
    p.add_argument('--port', type=int, default=CONFIG.default_port)
    p.add_argument('--name', default='')
    p.add_argument('--serial', default=None, help='expected device serial number')
    p.add_argument('--pin', type=int, default=0, help='device comm key')
    p.add_argument('--clear', action='store_true', help='clear the device log after fetching')
    p.add_argument('--verbose', '-v', action='store_true')
    return p


def _device(repo: DeviceRepository, args) -> Device:
    for d in repo.list():
        if d.ip == args.ip and d.port == args.port:
            if args.serial:
                d.serialnumber = args.serial
            if args.pin:
                d.password = args.pin
            return d
    d = Device(id=None, name=args.name or f"ZK-{args.ip}", ip=args.ip, port=args.port,
               password=args.pin, serialnumber=args.serial)
    repo.create(d)
    return d


def _build_worker(args, service: DownloadService, device: Device) -> BaseWorker:
    if args.command == 'fetch':
        return DownloadEventsWorker(service, device, clear_after=args.clear or None)
    if args.command == 'info':
        return DeviceInfoWorker(service, device)
    if args.command == 'clear':
        return ClearAttendanceWorker(service, device)
    creds = Credentials(serial_number=args.serial, device_pin=args.pin or None)
    return DiagnosticWorker(args.ip, args.port, creds)


def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    init_db()
    device_repo = DeviceRepository()
    service = DownloadService(AttendanceRepository(), device_repo)
    device = _device(device_repo, args)

    app = QtCore.QCoreApplication(sys.argv[:1])
    worker = _build_worker(args, service, device)
    status = {'code': 0}

    def on_result(payload):
        print(json.dumps(payload, indent=2, default=str))

    def on_error(message):
        print(f"Error: {message}", file=sys.stderr)
        status['code'] = 1

    worker.result.connect(on_result)
    worker.error.connect(on_error)
    run_in_thread(worker, on_finished=app.quit)
    app.exec_()
    return status['code']


if __name__ == '__main__':
    raise SystemExit(main())
