from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from typing import BinaryIO

from snapshot_export.core.ports.storage import FileChecksum

CHECKSUM_CHUNK_SIZE = 1024 * 1024


class LocalStorage:
    """
    Storage back-end for the local (or locally mounted) filesystem.

    Serves ``file://`` URIs. Directory renames use ``os.replace`` and are
    atomic within one filesystem. The native checksum is the MD5 digest
    of the file content.
    """

    scheme = "file"

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def length(self, path: str) -> int:
        return os.stat(path).st_size

    def list_files(self, path: str) -> list[str]:
        root = Path(path)

        if root.is_file():
            return [str(root)]

        if not root.is_dir():
            return []

        return sorted(
            str(candidate)
            for candidate in root.rglob("*")
            if candidate.is_file()
        )

    def open_read(self, path: str) -> BinaryIO:
        return open(path, "rb")

    def open_write(self, path: str) -> BinaryIO:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return open(path, "wb")

    def rename(self, src: str, dst: str) -> None:
        if not os.path.exists(src):
            raise FileNotFoundError(src)

        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        os.replace(src, dst)

    def delete(self, path: str, *, recursive: bool = False) -> bool:
        target = Path(path)

        if target.is_dir():
            if recursive:
                shutil.rmtree(target)
            else:
                target.rmdir()
            return True

        if target.exists():
            target.unlink()
            return True

        return False

    def makedirs(self, path: str) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def checksum(self, path: str) -> FileChecksum | None:
        digest = hashlib.md5()
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(CHECKSUM_CHUNK_SIZE), b""):
                digest.update(chunk)
        return FileChecksum(algorithm="md5", value=digest.hexdigest())
