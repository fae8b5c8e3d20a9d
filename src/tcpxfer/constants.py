from __future__ import annotations

NAME_LEN_FORMAT = "!I"  # filename byte length
BODY_LEN_FORMAT = "!Q"  # body byte length

MAX_FILENAME_BYTES = 4096
MAX_BODY_LEN = 2**64 - 1

CHUNK_SIZE = 1024 * 1024
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT_S: float | None = None
