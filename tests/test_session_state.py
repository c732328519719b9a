import pytest

from protocol.exceptions import SessionStateError
from protocol.session import SessionState, SessionStatus


def test_connect_transitions():
    s = SessionState()
    s.begin_connect()
    assert s.status is SessionStatus.CONNECTING
    assert not s.connected
    s.mark_connected(99)
    assert s.connected
    assert s.session_id == 99


def test_guards():
    s = SessionState()
    with pytest.raises(SessionStateError):
        s.mark_connected(1)
    s.begin_connect()
    with pytest.raises(SessionStateError):
        s.begin_connect()


def test_reply_counter_wraps_and_resets():
    s = SessionState(reply_id=65535)
    s.record_sent(1000)
    assert s.reply_id == 0
    assert s.last_command == 1000
    s.reset()
    assert (s.status, s.session_id, s.reply_id, s.last_command) == (SessionStatus.DISCONNECTED, 0, 0, None)
