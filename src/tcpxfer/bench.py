from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import dataclass

from .constants import CHUNK_SIZE
from .net import TcpListener, TcpStream
from .receiver import Receiver, SessionReport
from .sender import Sender


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    files: int
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float


def run_benchmark(
    *,
    file_count: int = 4,
    size_bytes: int = 5_000_000,
    chunk_size: int = CHUNK_SIZE,
    timeout_s: float = 30.0,
) -> BenchmarkResult:
    if size_bytes < 0:
        raise ValueError(f"size_bytes must not be negative, got {size_bytes}")
    payload = os.urandom(min(size_bytes, 1 << 20))

    with tempfile.TemporaryDirectory() as src_dir, tempfile.TemporaryDirectory() as out_dir:
        paths = []
        for i in range(file_count):
            path = os.path.join(src_dir, f"bench-{i}.bin")
            with open(path, "wb") as f:
                remaining = size_bytes
                while remaining:
                    piece = payload[: min(len(payload), remaining)]
                    f.write(piece)
                    remaining -= len(piece)
            paths.append(path)

        listener = TcpListener.bind("127.0.0.1", 0, timeout=timeout_s)
        host, port = listener.address
        holder: dict[str, SessionReport] = {}

        def recv_runner() -> None:
            try:
                with listener.accept() as stream:
                    holder["report"] = Receiver(stream, out_dir, chunk_size=chunk_size).run()
            finally:
                listener.close()

        t = threading.Thread(target=recv_runner, daemon=True)
        t.start()

        with TcpStream.connect(host, port, timeout=timeout_s) as stream:
            send_report = Sender(stream, chunk_size=chunk_size).run(paths)

        t.join(timeout=timeout_s)

        recv_report = holder.get("report")
        if recv_report is None or not recv_report.ok:
            raise RuntimeError(f"benchmark receiver did not finish cleanly: {recv_report}")
        for path in paths:
            actual = os.path.getsize(os.path.join(out_dir, os.path.basename(path)))
            if actual != size_bytes:
                raise RuntimeError(f"{path}: received {actual} bytes, expected {size_bytes}")

    metrics = send_report.metrics
    duration_s = max(0.001, metrics.duration_s)
    throughput_mbps = (metrics.bytes_transferred * 8 / 1_000_000) / duration_s

    return BenchmarkResult(
        files=metrics.files,
        bytes_transferred=metrics.bytes_transferred,
        duration_s=duration_s,
        throughput_mbps=throughput_mbps,
    )
