from __future__ import annotations

import base64
import tempfile
from typing import BinaryIO

from snapshot_export.core.ports.storage import FileChecksum
from snapshot_export.export.io.oci_adapter import OCIObjectStorageS3Shim


class _OCIObjectWriter:
    """
    Spools written bytes to a local temporary file and uploads them as one
    object on close. Nothing is visible in the bucket before close().
    """

    def __init__(self, shim: OCIObjectStorageS3Shim, bucket: str, key: str) -> None:
        self._shim = shim
        self._bucket = bucket
        self._key = key
        self._spool = tempfile.TemporaryFile()
        self.closed = False

    def write(self, data: bytes) -> int:
        return self._spool.write(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._spool.seek(0)
            self._shim.put_object(bucket=self._bucket, key=self._key, body=self._spool)
        finally:
            self._spool.close()
            self.closed = True

    def abort(self) -> None:
        self._spool.close()
        self.closed = True

    def __enter__(self) -> _OCIObjectWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.abort()
            return
        self.close()


class OCIStorage:
    """
    Storage back-end for one OCI Object Storage bucket.

    Serves ``oci://<bucket>/<prefix>`` URIs; paths are object keys.

    Semantics:
    - Directories are implicit key prefixes; makedirs is a no-op.
    - Renaming a single object is atomic. Renaming a directory renames
      every object beneath it one by one and is NOT atomic: a reader may
      observe a partially moved snapshot directory during publish.
    - The native checksum is the service-computed MD5 (hex); objects
      uploaded in multiple parts report a different algorithm
      ("md5-multipart") and are therefore not comparable with plain MD5.
    """

    scheme = "oci"

    def __init__(self, *, bucket: str, shim: OCIObjectStorageS3Shim) -> None:
        self._bucket = bucket
        self._s3 = shim

    @classmethod
    def from_environment(cls, bucket: str) -> OCIStorage:
        return cls(bucket=bucket, shim=OCIObjectStorageS3Shim.from_environment())

    # ------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return self._head(path) is not None or self.is_dir(path)

    def is_dir(self, path: str) -> bool:
        page = self._s3.list_objects(
            bucket=self._bucket,
            prefix=self._dir_prefix(path),
            max_keys=1,
        )
        return bool(page["Contents"])

    def length(self, path: str) -> int:
        head = self._head(path)
        if head is None:
            raise FileNotFoundError(self._uri(path))
        return int(head["ContentLength"])

    def list_files(self, path: str) -> list[str]:
        key = self._key(path)
        if key and self._head(key) is not None:
            return [key]
        return sorted(self._s3.iter_keys(bucket=self._bucket, prefix=self._dir_prefix(path)))

    def open_read(self, path: str) -> BinaryIO:
        return self._s3.get_object_stream(bucket=self._bucket, key=self._key(path))

    def open_write(self, path: str) -> BinaryIO:
        return _OCIObjectWriter(self._s3, self._bucket, self._key(path))

    def rename(self, src: str, dst: str) -> None:
        src_key = self._key(src)
        dst_key = self._key(dst)

        if self._head(src_key) is not None:
            self._s3.rename_object(bucket=self._bucket, source_key=src_key, new_key=dst_key)
            return

        keys = self._s3.iter_keys(bucket=self._bucket, prefix=self._dir_prefix(src))
        if not keys:
            raise FileNotFoundError(self._uri(src))

        if self.is_dir(dst):
            raise FileExistsError(self._uri(dst))

        for key in keys:
            self._s3.rename_object(
                bucket=self._bucket,
                source_key=key,
                new_key=dst_key + key[len(src_key):],
            )

    def delete(self, path: str, *, recursive: bool = False) -> bool:
        key = self._key(path)

        if key and self._s3.delete_object(bucket=self._bucket, key=key):
            return True

        keys = self._s3.iter_keys(bucket=self._bucket, prefix=self._dir_prefix(path))
        if not keys:
            return False

        if not recursive:
            raise OSError(f"Directory not empty: {self._uri(path)}")

        for child in keys:
            self._s3.delete_object(bucket=self._bucket, key=child)
        return True

    def makedirs(self, path: str) -> None:
        return

    def checksum(self, path: str) -> FileChecksum | None:
        head = self._head(path)
        if head is None:
            raise FileNotFoundError(self._uri(path))

        if head["ContentMD5"]:
            value = base64.b64decode(str(head["ContentMD5"])).hex()
            return FileChecksum(algorithm="md5", value=value)

        if head["MultipartMD5"]:
            return FileChecksum(algorithm="md5-multipart", value=str(head["MultipartMD5"]))

        return None

    # ------------------------------------------------------------------

    @staticmethod
    def _key(path: str) -> str:
        return path.strip("/")

    def _dir_prefix(self, path: str) -> str | None:
        key = self._key(path)
        return f"{key}/" if key else None

    def _head(self, path: str) -> dict[str, object] | None:
        key = self._key(path)
        if not key:
            return None
        return self._s3.head_object(bucket=self._bucket, key=key)

    def _uri(self, path: str) -> str:
        return f"oci://{self._bucket}/{self._key(path)}"
