from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from .constants import CHUNK_SIZE
from .errors import DestinationError, TransferError, TruncatedBody
from .frame import ByteSource, FileHeader
from .paths import resolve_destination
from .progress import byte_progress

logger = logging.getLogger(__name__)


def mbps(num_bytes: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return (num_bytes * 8 / 1_000_000) / seconds


@dataclass(slots=True)
class Metrics:
    files: int = 0
    bytes_transferred: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        return mbps(self.bytes_transferred, self.duration_s)

    def add_file(self, size: int) -> None:
        self.files += 1
        self.bytes_transferred += size

    def finish(self) -> None:
        self.end_ts = time.monotonic()


class SessionState(enum.Enum):
    AWAIT_HEADER = "await-header"
    RECEIVING_BODY = "receiving-body"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class ReceivedFile:
    filename: str
    path: Path
    size: int


@dataclass(slots=True)
class SessionReport:
    state: SessionState
    files: list[ReceivedFile] = field(default_factory=list)
    error: TransferError | None = None
    metrics: Metrics = field(default_factory=Metrics)

    @property
    def ok(self) -> bool:
        return self.state is SessionState.DONE


@dataclass(slots=True)
class Receiver:
    """Reads frames off one stream into ``dest_dir`` until clean EOF.

    ``dest_dir`` must already exist. Files with the same name are overwritten.
    When a body is cut short the partial file stays on disk and the session
    ends in ``ABORTED``; nothing after it is read.
    """

    stream: ByteSource
    dest_dir: str | os.PathLike[str]
    chunk_size: int = CHUNK_SIZE
    progress: bool = False
    state: SessionState = field(default=SessionState.AWAIT_HEADER, init=False)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    def run(self) -> SessionReport:
        report = SessionReport(state=self.state)

        try:
            while True:
                self.state = SessionState.AWAIT_HEADER
                header = FileHeader.from_stream(self.stream)
                if header is None:
                    self.state = SessionState.DONE
                    break
                self.state = SessionState.RECEIVING_BODY
                received = self._receive_body(header)
                report.files.append(received)
                report.metrics.add_file(received.size)
        except TransferError as exc:
            logger.error("session aborted while in %s: %s", self.state.value, exc)
            self.state = SessionState.ABORTED
            report.error = exc

        report.state = self.state
        report.metrics.finish()
        logger.info(
            "session %s: %d file(s), %d bytes, %.2f Mbit/s",
            self.state.value,
            report.metrics.files,
            report.metrics.bytes_transferred,
            report.metrics.throughput_mbps,
        )
        return report

    def _receive_body(self, header: FileHeader) -> ReceivedFile:
        path = resolve_destination(self.dest_dir, header.filename)
        logger.debug("header: %r, %d bytes -> %s", header.filename, header.length, path)

        started = time.monotonic()
        try:
            out = open(path, "wb")
        except OSError as exc:
            raise DestinationError(f"{path}: cannot open for writing: {exc}") from exc

        remaining = header.length
        with out, byte_progress(header.length, header.filename, self.progress) as bar:
            while remaining:
                chunk = self.stream.read(min(self.chunk_size, remaining))
                if not chunk:
                    received = header.length - remaining
                    logger.warning(
                        "leaving partial file %s (%d of %d bytes)", path, received, header.length
                    )
                    raise TruncatedBody(header.filename, header.length, received)
                try:
                    out.write(chunk)
                except OSError as exc:
                    raise DestinationError(f"{path}: write failed: {exc}") from exc
                remaining -= len(chunk)
                bar.update(len(chunk))

        elapsed = time.monotonic() - started
        logger.info(
            "received %s (%d bytes) in %.2fs, %.2f Mbit/s",
            header.filename,
            header.length,
            elapsed,
            mbps(header.length, elapsed),
        )
        return ReceivedFile(filename=path.name, path=path, size=header.length)
