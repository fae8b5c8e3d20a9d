from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Protocol, Union

from .constants import CHUNK_SIZE
from .errors import (
    MalformedHeader,
    SourceChanged,
    SourceFileError,
    SourceNotFound,
    SourcePermissionDenied,
    TransferError,
)
from .frame import FileHeader
from .progress import byte_progress
from .receiver import Metrics, mbps

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class ByteSink(Protocol):
    def write_all(self, data: bytes | memoryview) -> None: ...

    def shutdown_write(self) -> None: ...

    def drain(self) -> None: ...


def open_source(path: PathLike) -> BinaryIO:
    try:
        return open(path, "rb")
    except FileNotFoundError as exc:
        raise SourceNotFound(os.fspath(path), "no such file") from exc
    except PermissionError as exc:
        raise SourcePermissionDenied(os.fspath(path), "permission denied") from exc
    except OSError as exc:
        raise SourceFileError(os.fspath(path), exc.strerror or str(exc)) from exc


@dataclass(frozen=True, slots=True)
class SentFile:
    path: str
    filename: str
    size: int


@dataclass(slots=True)
class SendReport:
    sent: list[SentFile] = field(default_factory=list)
    failed: list[TransferError] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(slots=True)
class Sender:
    """Writes each file as one frame, in order, then closes the write side.

    A file that cannot be opened is skipped before its header goes out, so the
    stream stays valid for the files after it. Socket errors are not caught:
    they end the whole batch.
    """

    stream: ByteSink
    chunk_size: int = CHUNK_SIZE
    progress: bool = False
    _buf: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        self._buf = bytearray(self.chunk_size)

    def run(self, paths: Iterable[PathLike]) -> SendReport:
        report = SendReport()

        for path in paths:
            try:
                f, header = self._prepare(path)
            except (SourceFileError, MalformedHeader) as exc:
                logger.warning("skipping %s: %s", os.fspath(path), exc)
                report.failed.append(exc)
                continue
            with f:
                sent = self._send_one(os.fspath(path), f, header)
            report.sent.append(sent)
            report.metrics.add_file(sent.size)

        self.stream.shutdown_write()
        self.stream.drain()
        report.metrics.finish()
        logger.info(
            "sent %d file(s), %d bytes, %.2f Mbit/s; %d skipped",
            report.metrics.files,
            report.metrics.bytes_transferred,
            report.metrics.throughput_mbps,
            len(report.failed),
        )
        return report

    def _prepare(self, path: PathLike) -> tuple[BinaryIO, FileHeader]:
        f = open_source(path)
        try:
            size = os.fstat(f.fileno()).st_size
            header = FileHeader(filename=os.path.basename(os.fspath(path)), length=size)
            header.to_bytes()
        except BaseException:
            f.close()
            raise
        return f, header

    def _send_one(self, path: str, f: BinaryIO, header: FileHeader) -> SentFile:
        logger.debug("header: %r, %d bytes", header.filename, header.length)
        started = time.monotonic()
        self.stream.write_all(header.to_bytes())

        view = memoryview(self._buf)
        remaining = header.length
        with byte_progress(header.length, header.filename, self.progress) as bar:
            while remaining:
                try:
                    n = f.readinto(view[: min(len(view), remaining)])
                except OSError as exc:
                    raise SourceFileError(path, f"read failed mid-body: {exc}") from exc
                if not n:
                    raise SourceChanged(
                        path,
                        f"file shrank to {header.length - remaining} bytes while sending, "
                        f"{header.length} announced",
                    )
                self.stream.write_all(view[:n])
                remaining -= n
                bar.update(n)

        elapsed = time.monotonic() - started
        logger.info(
            "sent %s (%d bytes) in %.2fs, %.2f Mbit/s",
            header.filename,
            header.length,
            elapsed,
            mbps(header.length, elapsed),
        )
        return SentFile(path=path, filename=header.filename, size=header.length)
