from config import AppConfig, load_config


def test_defaults():
    cfg = AppConfig()
    assert cfg.default_port == 4370
    assert (cfg.udp_send_retries, cfg.udp_receive_polls) == (3, 5)
    assert cfg.sign_packets is False


def test_env_overrides(monkeypatch):
    monkeypatch.setenv('ZK_SESSION_TIMEOUT', '30')
    monkeypatch.setenv('ZK_SIGN_PACKETS', 'yes')
    monkeypatch.setenv('ZK_FETCH_JOB_TRIES', '5')
    cfg = load_config()
    assert cfg.session_timeout == 30.0
    assert cfg.sign_packets is True
    assert cfg.fetch_job_tries == 5
