from __future__ import annotations

import io

import pytest

from tcpxfer.errors import (
    DestinationError,
    MalformedHeader,
    TruncatedBody,
    UnexpectedEof,
    UnsafePath,
)
from tcpxfer.frame import encode_header
from tcpxfer.receiver import Receiver, SessionState


def frames(*files: tuple[str, bytes]) -> bytes:
    return b"".join(encode_header(name, len(body)) + body for name, body in files)


def receive(tmp_path, data: bytes, chunk_size: int = 7):
    return Receiver(io.BytesIO(data), tmp_path, chunk_size=chunk_size).run()


def test_two_files_then_clean_eof(tmp_path):
    report = receive(tmp_path, frames(("a.txt", b"\x41\x42\x43"), ("b.bin", b"")))

    assert report.state is SessionState.DONE
    assert report.ok
    assert report.error is None
    assert (tmp_path / "a.txt").read_bytes() == b"ABC"
    assert (tmp_path / "b.bin").exists()
    assert (tmp_path / "b.bin").stat().st_size == 0
    assert [f.filename for f in report.files] == ["a.txt", "b.bin"]
    assert report.metrics.files == 2
    assert report.metrics.bytes_transferred == 3


def test_empty_session_is_done(tmp_path):
    report = receive(tmp_path, b"")
    assert report.state is SessionState.DONE
    assert report.files == []


def test_order_preserved(tmp_path):
    names = [f"f{i:02d}" for i in range(12)]
    report = receive(tmp_path, frames(*[(n, n.encode() * 5) for n in names]))
    assert [f.filename for f in report.files] == names


def test_body_never_reads_into_next_frame(tmp_path):
    body = bytes(range(256)) * 3
    report = receive(tmp_path, frames(("x", body), ("y", b"tail")), chunk_size=100)
    assert (tmp_path / "x").read_bytes() == body
    assert (tmp_path / "y").read_bytes() == b"tail"


def test_truncated_body_leaves_partial_file(tmp_path):
    data = encode_header("big.dat", 100) + b"z" * 40
    report = receive(tmp_path, data)

    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, TruncatedBody)
    assert report.error.expected == 100
    assert report.error.received == 40
    assert (tmp_path / "big.dat").stat().st_size == 40
    assert report.files == []


def test_nothing_processed_after_truncation(tmp_path):
    # the second "header" is really body bytes of the first frame
    data = encode_header("first", 10_000) + frames(("second", b"hello"))
    report = receive(tmp_path, data)
    assert report.state is SessionState.ABORTED
    assert not (tmp_path / "second").exists()


def test_partial_header_aborts(tmp_path):
    data = frames(("ok.txt", b"ok")) + encode_header("next", 5)[:6]
    report = receive(tmp_path, data)
    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, UnexpectedEof)
    assert [f.filename for f in report.files] == ["ok.txt"]


def test_malformed_header_aborts(tmp_path):
    report = receive(tmp_path, b"\xff\xff\xff\xff" + b"\x00" * 20)
    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, MalformedHeader)


def test_traversal_name_written_inside_destination(tmp_path):
    dest = tmp_path / "out"
    dest.mkdir()
    report = receive(dest, frames(("../../escape.txt", b"nope")))
    assert report.ok
    assert (dest / "escape.txt").read_bytes() == b"nope"
    assert not (tmp_path / "escape.txt").exists()


def test_unusable_name_aborts(tmp_path):
    report = receive(tmp_path, frames(("..", b"data")))
    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, UnsafePath)


def test_existing_file_is_overwritten(tmp_path):
    (tmp_path / "same.txt").write_bytes(b"old contents that are longer")
    report = receive(tmp_path, frames(("same.txt", b"v1"), ("same.txt", b"v2")))
    assert report.ok
    assert (tmp_path / "same.txt").read_bytes() == b"v2"


def test_missing_destination_directory_aborts(tmp_path):
    report = receive(tmp_path / "does-not-exist", frames(("a.txt", b"ABC")))
    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, DestinationError)
    assert not (tmp_path / "does-not-exist").exists()


class FullDisk(io.BytesIO):
    def write(self, data):
        raise OSError(28, "No space left on device")


def test_write_failure_aborts(tmp_path, monkeypatch):
    monkeypatch.setattr("tcpxfer.receiver.open", lambda path, mode: FullDisk(), raising=False)
    report = receive(tmp_path, frames(("a.txt", b"ABC"), ("b.txt", b"DEF")))
    assert report.state is SessionState.ABORTED
    assert isinstance(report.error, DestinationError)
    assert report.files == []


def test_chunk_size_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        Receiver(io.BytesIO(b""), tmp_path, chunk_size=0)
