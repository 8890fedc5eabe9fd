"""RouterOS client error taxonomy."""


class RouterOSError(Exception):
    """Base class for every failure talking to a router."""


class ConnectError(RouterOSError):
    """The router could not be reached."""


class ConnectTimeout(ConnectError):
    pass


class ConnectRefused(ConnectError):
    pass


class AuthFailed(RouterOSError):
    pass


class ProtocolError(RouterOSError):
    """Malformed frame or the connection closed mid-sentence."""


class RouterError(RouterOSError):
    """The router answered a command with !trap or !fatal."""

    def __init__(self, message: str, category: str = ""):
        super().__init__(message)
        self.message = message
        self.category = category


class InvalidResource(RouterOSError):
    """Unknown resource kind; raised before any network I/O."""


class InvalidCommand(RouterOSError):
    """Malformed caller-supplied sentence; raised before any network I/O."""
