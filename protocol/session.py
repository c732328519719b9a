from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import SessionStateError
from .packet import U16_MOD


class SessionStatus(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


@dataclass
class SessionState:
    """Per-connection protocol counters, owned by a single WireClient."""
    status: SessionStatus = SessionStatus.DISCONNECTED
    session_id: int = 0
    reply_id: int = 0
    last_command: Optional[int] = None

    @property
    def connected(self) -> bool:
        return self.status is SessionStatus.CONNECTED

    def begin_connect(self) -> None:
        if self.status is not SessionStatus.DISCONNECTED:
            raise SessionStateError(f"Cannot connect while {self.status.value}")
        self.status = SessionStatus.CONNECTING

    def mark_connected(self, session_id: int) -> None:
        if self.status is not SessionStatus.CONNECTING:
            raise SessionStateError(f"Cannot complete a connect while {self.status.value}")
        self.session_id = session_id
        self.status = SessionStatus.CONNECTED

    def record_sent(self, command: int) -> None:
        self.last_command = command
        self.reply_id = (self.reply_id + 1) % U16_MOD

    def reset(self) -> None:
        self.status = SessionStatus.DISCONNECTED
        self.session_id = 0
        self.reply_id = 0
        self.last_command = None
