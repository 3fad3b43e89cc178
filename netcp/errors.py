"""
Exception hierarchy.

Transport and protocol errors end the session.  A filesystem error while
creating a destination file only skips that file (the receiver answers
DISAGREE); anywhere else it is fatal as well.
"""


class NetcpError(Exception):
    """Base class for every error netcp reports to the user."""


class TransportError(NetcpError):
    """The underlying stream failed, was closed, or could not be opened."""


class IdleTimeoutError(TransportError):
    """No byte moved within the idle window."""


class ProtocolError(NetcpError):
    """The peer sent something this protocol does not allow."""


class HandshakeError(ProtocolError):
    """The sender refused the receiver's callsign."""


class FilesystemError(NetcpError):
    """A local file could not be opened, created, read, written or sized."""


class ArgumentError(NetcpError):
    """Malformed command line or address."""
