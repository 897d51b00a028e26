class ReplError(Exception):
    """Base class for everything that makes a REPL connection unusable."""


class TransportError(ReplError):
    """Socket connect/read/write failed or the server closed the stream."""


class ProtocolViolation(ReplError):
    """The server sent something we cannot interpret."""
