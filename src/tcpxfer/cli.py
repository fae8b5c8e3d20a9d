from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Tuple

from .bench import run_benchmark
from .constants import CHUNK_SIZE, DEFAULT_TIMEOUT_S
from .errors import TransferError
from .net import TcpListener, TcpStream, parse_address
from .receiver import Receiver
from .sender import Sender

logger = logging.getLogger(__name__)


def address_arg(text: str) -> Tuple[str, int]:
    try:
        return parse_address(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {text}")
    return value


def non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {text}")
    return value


def emit(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2) if args.json else payload)


def cmd_server(args: argparse.Namespace) -> int:
    host, port = args.address
    status = 0
    with TcpListener.bind(host, port, timeout=args.timeout) as listener:
        bound_host, bound_port = listener.address
        logger.info("listening on %s:%d, writing to %s", bound_host, bound_port, args.directory)
        while True:
            try:
                with listener.accept() as stream:
                    report = Receiver(
                        stream,
                        args.directory,
                        chunk_size=args.chunk_size,
                        progress=args.progress,
                    ).run()
            except KeyboardInterrupt:
                # earlier failed sessions win over the interrupt
                logger.info("interrupted")
                return status or 130

            emit(
                args,
                {
                    "role": "server",
                    "peer": f"{stream.peer[0]}:{stream.peer[1]}",
                    "state": report.state.value,
                    "files": [f.filename for f in report.files],
                    "bytes": report.metrics.bytes_transferred,
                    "seconds": report.metrics.duration_s,
                    "mbps": report.metrics.throughput_mbps,
                    "error": str(report.error) if report.error else None,
                },
            )
            if not report.ok:
                status = 1
            if args.once:
                return status


def cmd_client(args: argparse.Namespace) -> int:
    host, port = args.address
    with TcpStream.connect(host, port, timeout=args.timeout) as stream:
        logger.info("connected to %s:%d, sending %d file(s)", host, port, len(args.files))
        report = Sender(stream, chunk_size=args.chunk_size, progress=args.progress).run(args.files)

    emit(
        args,
        {
            "role": "client",
            "files": [f.filename for f in report.sent],
            "skipped": [str(e) for e in report.failed],
            "bytes": report.metrics.bytes_transferred,
            "seconds": report.metrics.duration_s,
            "mbps": report.metrics.throughput_mbps,
        },
    )
    return 0 if report.ok else 1


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        file_count=args.files,
        size_bytes=args.size_bytes,
        chunk_size=args.chunk_size,
    )
    payload = {"role": "bench", **asdict(r)}
    emit(args, payload)
    return 0


def check_directory(p: argparse.ArgumentParser, directory: str) -> None:
    path = Path(directory)
    if path.exists() and not path.is_dir():
        p.error(f"not a directory: {directory}")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        p.error(f"cannot create directory {directory}: {exc.strerror or exc}")


def check_files(p: argparse.ArgumentParser, files: list[str]) -> None:
    for name in files:
        if not os.path.isfile(name):
            p.error(f"not an existing regular file: {name}")
        if not os.access(name, os.R_OK):
            p.error(f"file is not readable: {name}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tcpxfer",
        description="Send files over a single TCP connection.",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        )
        x.add_argument("--chunk-size", type=positive_int, default=CHUNK_SIZE)
        x.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S, help="socket timeout in seconds")
        x.add_argument("--progress", action="store_true", help="show a progress bar per file")
        x.add_argument("--json", action="store_true")

    server = sub.add_parser("server", help="receive files into a directory")
    add_common(server)
    server.add_argument("address", type=address_arg, help="host:port to listen on")
    server.add_argument("directory", help="destination directory (created if missing)")
    server.add_argument("--once", action="store_true", help="exit after one session")
    server.set_defaults(func=cmd_server)

    client = sub.add_parser("client", help="send files to a server")
    add_common(client)
    client.add_argument("address", type=address_arg, help="host:port to connect to")
    client.add_argument("files", nargs="+", help="files to send, in order")
    client.set_defaults(func=cmd_client)

    bench = sub.add_parser("bench", help="loopback throughput benchmark")
    add_common(bench)
    bench.add_argument("--files", type=positive_int, default=4)
    bench.add_argument("--size-bytes", type=non_negative_int, default=5_000_000)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.cmd == "server":
        check_directory(p, args.directory)
    elif args.cmd == "client":
        check_files(p, args.files)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        return int(args.func(args))
    except TransferError as exc:
        logger.error("%s failed: %s", args.cmd, exc)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
