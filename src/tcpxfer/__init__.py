"""tcpxfer: send files over one TCP connection.

Each file travels as one frame::

    [u32 BE name length][UTF-8 name][u64 BE body length][body]

Frames follow each other in the order the files were given, and the sender
closes its write side after the last one. There is no handshake, version or
checksum; both ends must speak the same framing.
"""

from .errors import (
    MalformedHeader,
    TransferConnectionError,
    TransferError,
    TruncatedBody,
    UnexpectedEof,
)
from .frame import FileHeader, decode_header, encode_header
from .receiver import Receiver, SessionReport, SessionState
from .sender import SendReport, Sender

__all__ = [
    "FileHeader",
    "MalformedHeader",
    "Receiver",
    "SendReport",
    "Sender",
    "SessionReport",
    "SessionState",
    "TransferConnectionError",
    "TransferError",
    "TruncatedBody",
    "UnexpectedEof",
    "decode_header",
    "encode_header",
]
