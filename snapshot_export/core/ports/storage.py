"""Storage namespace protocol.

This module defines the URI-addressed storage boundary used by the
planner, copier, assembler and verifier. Concrete implementations adapt a
local filesystem, an in-process store, or an object store to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol


@dataclass(frozen=True, slots=True)
class FileChecksum:
    """
    Checksum as reported natively by a storage back-end.

    Two checksums are only comparable when their algorithms match.
    """

    algorithm: str
    value: str


class Storage(Protocol):
    """Storage namespace boundary.

    Paths are POSIX strings. Directories are implicit on object stores:
    a path "exists" as a directory when any file lives beneath it.
    """

    @property
    def scheme(self) -> str:
        """URI scheme served by this back-end (e.g. "file")."""

    def exists(self, path: str) -> bool:
        """Return True if a file or directory exists at path."""

    def is_dir(self, path: str) -> bool:
        """Return True if path is a directory."""

    def length(self, path: str) -> int:
        """Return the size of a file in bytes (FileNotFoundError if absent)."""

    def list_files(self, path: str) -> list[str]:
        """Return all leaf files under path, recursively, sorted."""

    def open_read(self, path: str) -> BinaryIO:
        """Open a file for binary reading (FileNotFoundError if absent)."""

    def open_write(self, path: str) -> BinaryIO:
        """Open a file for binary writing, creating parents, truncating."""

    def rename(self, src: str, dst: str) -> None:
        """Move a file or directory; replaces an existing destination file."""

    def delete(self, path: str, *, recursive: bool = False) -> bool:
        """Delete a file or directory. Returns False if nothing existed."""

    def makedirs(self, path: str) -> None:
        """Create a directory and its parents (no-op on object stores)."""

    def checksum(self, path: str) -> FileChecksum | None:
        """Return the back-end's native checksum of a file, if it has one."""
