"""
Content digests for backup artifacts.

Digests are recorded for auditing only; nothing in a run branches on them.
"""

import hashlib
import os
from pathlib import Path
from typing import Union

CHUNK_SIZE = 64 * 1024


def digest(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def file_checksum(file_path: Union[str, Path]) -> str:
    """Calculate SHA256 checksum of a file, reading it in chunks."""
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


def directory_checksum(dir_path: Union[str, Path]) -> str:
    """Calculate one SHA256 checksum over a directory tree.

    Files are visited in sorted order of their relative paths; each path is
    hashed before the file's contents, so renames change the digest too.
    """
    root = Path(dir_path)
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    files = sorted(
        p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()
    )

    sha256_hash = hashlib.sha256()
    for relative in files:
        sha256_hash.update(relative.encode("utf-8"))
        sha256_hash.update(b"\0")
        with open(root / relative, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


def artifact_size(path: Union[str, Path]) -> int:
    """Size in bytes of a file, or the sum of file sizes under a directory."""
    path = Path(path)
    if path.is_file():
        return os.path.getsize(path)
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())
