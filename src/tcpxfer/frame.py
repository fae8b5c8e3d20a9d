from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Protocol

from .constants import BODY_LEN_FORMAT, MAX_BODY_LEN, MAX_FILENAME_BYTES, NAME_LEN_FORMAT
from .errors import MalformedHeader, UnexpectedEof

NAME_LEN_SIZE = struct.calcsize(NAME_LEN_FORMAT)
BODY_LEN_SIZE = struct.calcsize(BODY_LEN_FORMAT)


class ByteSource(Protocol):
    def read(self, n: int) -> bytes: ...


def read_exact(stream: ByteSource, n: int, what: str = "header") -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(n - len(buf))
        if not chunk:
            raise UnexpectedEof(f"stream closed after {len(buf)} of {n} {what} bytes")
        buf += chunk
    return bytes(buf)


@dataclass(frozen=True, slots=True)
class FileHeader:
    filename: str
    length: int

    def to_bytes(self) -> bytes:
        try:
            name = self.filename.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise MalformedHeader(f"filename is not encodable as UTF-8: {self.filename!r}") from exc
        if not name:
            raise MalformedHeader("empty filename")
        if len(name) > MAX_FILENAME_BYTES:
            raise MalformedHeader(
                f"filename is {len(name)} bytes, limit is {MAX_FILENAME_BYTES}"
            )
        if not 0 <= self.length <= MAX_BODY_LEN:
            raise MalformedHeader(f"body length out of range: {self.length}")
        return (
            struct.pack(NAME_LEN_FORMAT, len(name))
            + name
            + struct.pack(BODY_LEN_FORMAT, self.length)
        )

    @staticmethod
    def from_stream(stream: ByteSource) -> "FileHeader | None":
        """Read one header, or return None if the stream ends cleanly before it."""
        first = stream.read(NAME_LEN_SIZE)
        if not first:
            return None
        prefix = first + read_exact(stream, NAME_LEN_SIZE - len(first), "name length")
        (name_len,) = struct.unpack(NAME_LEN_FORMAT, prefix)
        if name_len == 0:
            raise MalformedHeader("empty filename")
        if name_len > MAX_FILENAME_BYTES:
            raise MalformedHeader(
                f"filename length {name_len} exceeds limit of {MAX_FILENAME_BYTES}"
            )

        raw_name = read_exact(stream, name_len, "filename")
        try:
            filename = raw_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedHeader(f"filename is not valid UTF-8: {raw_name!r}") from exc

        (length,) = struct.unpack(BODY_LEN_FORMAT, read_exact(stream, BODY_LEN_SIZE, "body length"))
        return FileHeader(filename=filename, length=length)


def encode_header(filename: str, length: int) -> bytes:
    return FileHeader(filename, length).to_bytes()


def decode_header(stream: ByteSource) -> FileHeader | None:
    return FileHeader.from_stream(stream)
