from zk.exception import ZKError, ZKErrorConnection, ZKErrorResponse, ZKNetworkError


class ConnectError(ZKNetworkError):
    """The connection could not be set up at all (socket creation, TCP refusal)."""


class SessionStateError(ZKError):
    """A session transition was requested from a state that does not allow it."""


class TransferError(ZKErrorResponse):
    """A multi-packet data transfer stopped before the declared size arrived."""


class AttendanceFetchError(ZKErrorResponse):
    """Attendance could not be read even after a recovery cycle."""


class AuthenticationError(ZKErrorConnection):
    """The device rejected a credential hook."""
