from __future__ import annotations

import os
from pathlib import Path

from .errors import UnsafePath


def sanitize_filename(name: str) -> str:
    """Reduce a filename announced by the peer to a plain basename.

    Both ``/`` and ``\\`` count as separators so a name produced on Windows
    cannot smuggle directories in either.
    """
    if "\x00" in name:
        raise UnsafePath(f"filename contains NUL byte: {name!r}")
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    if base in ("", ".", ".."):
        raise UnsafePath(f"filename has no usable basename: {name!r}")
    return base


def resolve_destination(dest_dir: str | os.PathLike[str], name: str) -> Path:
    root = Path(dest_dir).resolve()
    target = root / sanitize_filename(name)
    # a symlink already sitting in the directory is followed by open(),
    # so check where it really points
    if target.resolve().parent != root:
        raise UnsafePath(f"{name!r} resolves outside {root}")
    return target
