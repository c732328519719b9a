import logging
from typing import Any, Callable, Dict, List, Optional

from config import CONFIG, AppConfig
from protocol.exceptions import ZKError
from .device_session import Credentials, DeviceSession

_logger = logging.getLogger(__name__)


def _step(success: bool, details: Any) -> Dict[str, Any]:
    return {'success': success, 'details': details}


def run_diagnostic(ip: str, port: Optional[int] = None, credentials: Optional[Credentials] = None,
                   config: Optional[AppConfig] = None,
                   session_factory: Optional[Callable[..., DeviceSession]] = None) -> Dict[str, Any]:
    """Staged connectivity check: socket probe, protocol connect, info, log count."""
    config = config or CONFIG
    factory = session_factory or DeviceSession
    session = factory(ip, port, credentials=credentials, config=config)
    results: Dict[str, Dict[str, Any]] = {}

    probe = session.test_socket()
    results['socket_test'] = _step(probe['success'], probe['message'])

    if probe['success']:
        try:
            connected = session.connect()
            results['session_test'] = _step(
                connected, 'Protocol session established' if connected else 'connect() returned false')
            if connected:
                try:
                    results['device_info'] = _step(True, session.get_device_info().as_dict())
                except ZKError as e:
                    results['device_info'] = _step(False, f"Failed to get device info: {e}")
                try:
                    logs = session.get_attendance()
                    results['attendance_logs'] = _step(True, f"Found {len(logs)} logs")
                except ZKError as e:
                    results['attendance_logs'] = _step(False, f"Error retrieving logs: {e}")
        except ZKError as e:
            results['session_test'] = _step(False, f"Protocol error: {e}")
        finally:
            session.disconnect()

    success = results['socket_test']['success'] and results.get('session_test', {}).get('success', False)
    _logger.info("Diagnostic for %s:%s finished: %s", session.ip, session.port, 'ok' if success else 'failed')
    return {
        'success': success,
        'message': 'All tests passed' if success else 'Some tests failed',
        'results': results,
        'recommendations': recommendations(results),
    }


def recommendations(results: Dict[str, Dict[str, Any]]) -> List[str]:
    out: List[str] = []
    if not results['socket_test']['success']:
        out.append('Device port is not reachable. Check that the device is powered on, on the network, '
                   'and listening on the configured port.')
        out.append('Check for firewalls blocking access to this port.')
    session = results.get('session_test')
    if session is not None and not session['success']:
        out.append('The device accepted a socket but did not complete the protocol handshake. This could be due to:')
        out.append('- Incompatible device model or firmware')
        out.append('- Device is in a locked or error state')
        out.append('- Device requires a comm key (device PIN)')
        out.append('Try power cycling the device.')
    logs = results.get('attendance_logs')
    if logs is not None and not logs['success']:
        out.append('Attendance download failed after recovery. Retry later or restart the device.')
    if not out:
        out.append('All tests passed. If issues persist, restart the device or check for firmware updates.')
    return out
