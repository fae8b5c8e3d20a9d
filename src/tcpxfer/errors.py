from __future__ import annotations


class TransferError(Exception):
    """Base class for everything that can end a transfer session."""


class TransferConnectionError(TransferError):
    """Connect, accept, read or write on the socket failed."""


class ProtocolError(TransferError):
    """The byte stream does not follow the framing rules."""


class MalformedHeader(ProtocolError):
    pass


class UnexpectedEof(ProtocolError):
    """Stream ended part way through a header."""


class TruncatedBody(ProtocolError):
    def __init__(self, filename: str, expected: int, received: int):
        super().__init__(
            f"{filename}: stream ended after {received} of {expected} body bytes"
        )
        self.filename = filename
        self.expected = expected
        self.received = received


class SourceFileError(TransferError):
    """A local file on the sending side could not be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path


class SourceNotFound(SourceFileError):
    pass


class SourcePermissionDenied(SourceFileError):
    pass


class SourceChanged(SourceFileError):
    """File shrank while its body was on the wire; the stream is unusable."""


class DestinationError(TransferError):
    pass


class UnsafePath(DestinationError):
    pass
