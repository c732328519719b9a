from protocol.exceptions import AttendanceFetchError
from services.device_session import DeviceInfoSummary
from services.diagnostics import run_diagnostic


class FakeSession:
    def __init__(self, ip, port, credentials=None, config=None, reachable=True, connects=True, logs=None):
        self.ip = ip
        self.port = port
        self.reachable = reachable
        self.connects = connects
        self.logs = logs
        self.disconnected = False

    def test_socket(self):
        return {'success': self.reachable, 'message': 'ok' if self.reachable else 'refused'}

    def connect(self):
        return self.connects

    def get_device_info(self):
        return DeviceInfoSummary(device_name='K40', ip_address=self.ip, port=self.port)

    def get_attendance(self):
        if self.logs is None:
            raise AttendanceFetchError('no data')
        return self.logs

    def disconnect(self):
        self.disconnected = True


def factory(**kwargs):
    made = []

    def build(ip, port, credentials=None, config=None):
        s = FakeSession(ip, port, credentials, config, **kwargs)
        made.append(s)
        return s
    return build, made


def test_all_steps_pass(fast_config):
    build, made = factory(logs=[object(), object()])
    report = run_diagnostic('10.0.0.5', 4370, config=fast_config, session_factory=build)
    assert report['success']
    assert report['results']['attendance_logs'] == {'success': True, 'details': 'Found 2 logs'}
    assert report['results']['device_info']['details']['device_name'] == 'K40'
    assert made[0].disconnected


def test_unreachable_port(fast_config):
    build, made = factory(reachable=False)
    report = run_diagnostic('10.0.0.5', 4370, config=fast_config, session_factory=build)
    assert not report['success']
    assert 'session_test' not in report['results']
    assert any('not reachable' in r for r in report['recommendations'])


def test_handshake_failure(fast_config):
    build, made = factory(connects=False)
    report = run_diagnostic('10.0.0.5', 4370, config=fast_config, session_factory=build)
    assert not report['success']
    assert report['results']['session_test']['success'] is False
    assert made[0].disconnected


def test_log_failure_reported(fast_config):
    build, _ = factory(logs=None)
    report = run_diagnostic('10.0.0.5', 4370, config=fast_config, session_factory=build)
    assert report['success']
    assert report['results']['attendance_logs']['success'] is False
