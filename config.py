import os
from dataclasses import dataclass, field, fields

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


@dataclass
class AppConfig:
    datetime_format: str = "%Y-%m-%d %H:%M:%S"
    default_port: int = 4370
    # Wire client socket timeout (seconds)
    timeout: float = 5.5
    # Timeout the session manager applies for slow embedded devices
    session_timeout: float = 16.0
    udp_send_retries: int = 3
    udp_receive_polls: int = 5
    udp_poll_interval: float = 0.2
    udp_retry_delay: float = 0.5
    recovery_delay: float = 2.0
    sign_packets: bool = False
    fetch_chunk_size: int = 500
    fetch_job_tries: int = 3
    delete_after_download: bool = False
    db_path: str = field(default_factory=lambda: os.path.join(BASE_DIR, 'data', 'app.db'))


def _coerce(raw: str, current):
    if isinstance(current, bool):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


def load_config() -> AppConfig:
    """Build an AppConfig, overriding any field from a ZK_<FIELD> env var."""
    cfg = AppConfig()
    for f in fields(cfg):
        raw = os.getenv(f"ZK_{f.name.upper()}")
        if raw is not None:
            setattr(cfg, f.name, _coerce(raw, getattr(cfg, f.name)))
    return cfg


CONFIG = load_config()
