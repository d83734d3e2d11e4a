from __future__ import annotations

import os
from typing import Any

from oci.auth.signers import InstancePrincipalsSecurityTokenSigner
from oci.config import from_file
from oci.exceptions import ServiceError
from oci.object_storage import ObjectStorageClient
from oci.object_storage.models import RenameObjectDetails
from oci.signer import Signer


AUTH_MODES = ("instance_principal", "api_key")


def _build_signer(
    auth_mode: str,
    *,
    config_file: str | None,
    profile: str,
) -> tuple[dict[str, Any], Any]:
    """Return the (client config, signer) pair for an OCI auth mode."""
    if auth_mode == "instance_principal":
        # Only available on OCI compute; identity comes from the instance.
        return {}, InstancePrincipalsSecurityTokenSigner()

    if auth_mode == "api_key":
        if config_file is None:
            raise ValueError("OCI_CONFIG_FILE is required for api_key auth")

        config = from_file(file_location=config_file, profile_name=profile)
        signer = Signer(
            tenancy=config["tenancy"],
            user=config["user"],
            fingerprint=config["fingerprint"],
            private_key_file_location=config["key_file"],
            pass_phrase=config.get("pass_phrase"),
        )
        return config, signer

    raise ValueError(f"Unknown OCI auth mode {auth_mode!r}; expected one of {AUTH_MODES}")


class OCIObjectStorageS3Shim:
    """
    boto3-shaped facade over the native OCI Object Storage API.

    OCIStorage needs a bucket to behave like a filesystem namespace, so the
    shim exposes exactly those calls: put, paginated list, streamed get,
    head, server-side rename and delete. Return values are plain dicts in
    the shape boto3 would return. Missing objects surface as None (head),
    False (delete) or FileNotFoundError (get) instead of a 404 ServiceError.

    Requests go to the native Object Storage endpoint, not the
    S3-compatibility endpoint; access is governed by OCI IAM policies.
    """

    def __init__(
        self,
        *,
        region: str | None = None,
        auth_mode: str = "instance_principal",
        oci_config_file: str | None = None,
        oci_profile: str = "DEFAULT",
    ) -> None:
        config, signer = _build_signer(
            auth_mode,
            config_file=oci_config_file,
            profile=oci_profile,
        )

        client_kwargs: dict[str, Any] = {}
        if region:
            client_kwargs["region"] = region

        self.client = ObjectStorageClient(config=config, signer=signer, **client_kwargs)
        self.namespace = self.client.get_namespace().data

    @classmethod
    def from_environment(cls) -> OCIObjectStorageS3Shim:
        """
        Build a shim from environment variables:
          OCI_AUTH_MODE (default "instance_principal"), OCI_CONFIG_FILE,
          OCI_PROFILE (default "DEFAULT"), OCI_REGION.
        """
        return cls(
            region=os.environ.get("OCI_REGION"),
            auth_mode=os.environ.get("OCI_AUTH_MODE", "instance_principal"),
            oci_config_file=os.environ.get("OCI_CONFIG_FILE"),
            oci_profile=os.environ.get("OCI_PROFILE", "DEFAULT"),
        )

    def put_object(self, bucket: str, key: str, body, content_type: str = "application/octet-stream"):
        """
        Upload an object to an OCI Object Storage bucket.

        Returns a minimal boto3-like dict containing the object's ETag and
        the MD5 computed by the service.
        """
        resp = self.client.put_object(
            namespace_name=self.namespace,
            bucket_name=bucket,
            object_name=key,
            put_object_body=body,
            content_type=content_type,
        )
        return {
            "ETag": resp.headers.get("etag"),
            "ContentMD5": resp.headers.get("opc-content-md5"),
        }

    def list_objects(
        self,
        bucket: str,
        prefix: str | None = None,
        continuation_token: str | None = None,
        max_keys: int = 1000,
    ) -> dict[str, object]:
        """
        List objects in a bucket, optionally filtered by prefix.

        This method approximates boto3's list_objects behavior:
          - 'Prefix' filters object names
          - pagination is exposed via ContinuationToken / NextContinuationToken

        Returns:
          A dict with keys:
            - Contents: list of {"Key", "Size"}
            - IsTruncated: whether more results are available
            - NextContinuationToken: token for the next page (or None)
        """
        kwargs: dict[str, Any] = {
            "namespace_name": self.namespace,
            "bucket_name": bucket,
            "limit": max_keys,
            "fields": "name,size",
        }
        if prefix:
            kwargs["prefix"] = prefix
        if continuation_token:
            kwargs["start"] = continuation_token

        resp = self.client.list_objects(**kwargs)
        objects = []
        for o in resp.data.objects or []:
            objects.append({"Key": o.name, "Size": getattr(o, "size", None)})

        next_token = getattr(resp.data, "next_start_with", None)
        return {
            "Contents": objects,
            "IsTruncated": bool(next_token),
            "NextContinuationToken": next_token,
        }

    def iter_keys(self, bucket: str, prefix: str | None = None) -> list[str]:
        """Return every key under prefix, following pagination."""
        keys: list[str] = []
        token: str | None = None

        while True:
            page = self.list_objects(
                bucket=bucket,
                prefix=prefix,
                continuation_token=token,
            )
            keys.extend(obj["Key"] for obj in page["Contents"])

            if not page["IsTruncated"]:
                return keys
            token = page["NextContinuationToken"]

    def get_object_stream(self, bucket: str, key: str):
        """
        Open an object body for chunked reading.

        The returned object is the raw HTTP stream (file-like, supports
        read(n) and the context-manager protocol). The object is never
        loaded into memory at once.
        """
        try:
            response = self.client.get_object(
                namespace_name=self.namespace,
                bucket_name=bucket,
                object_name=key,
            )
        except ServiceError as exc:
            if exc.status == 404:
                raise FileNotFoundError(f"oci://{bucket}/{key}") from exc
            raise

        data = response.data

        if not hasattr(data, "raw") or not hasattr(data.raw, "read"):
            raise RuntimeError(
                "OCI get_object response does not expose a streamable body."
            )

        return data.raw

    def head_object(self, bucket: str, key: str) -> dict[str, object] | None:
        """
        Return object metadata, or None when the object does not exist.

        Keys: ContentLength, ContentMD5 (base64, single-part uploads) and
        MultipartMD5 (multipart uploads).
        """
        try:
            resp = self.client.head_object(
                namespace_name=self.namespace,
                bucket_name=bucket,
                object_name=key,
            )
        except ServiceError as exc:
            if exc.status == 404:
                return None
            raise

        return {
            "ContentLength": int(resp.headers.get("content-length", "0")),
            "ContentMD5": resp.headers.get("opc-content-md5"),
            "MultipartMD5": resp.headers.get("opc-multipart-md5"),
        }

    def rename_object(self, bucket: str, source_key: str, new_key: str) -> None:
        """Rename one object server-side (atomic for that object)."""
        self.client.rename_object(
            namespace_name=self.namespace,
            bucket_name=bucket,
            rename_object_details=RenameObjectDetails(
                source_name=source_key,
                new_name=new_key,
            ),
        )

    def delete_object(self, bucket: str, key: str) -> bool:
        """Delete one object. Returns False if it did not exist."""
        try:
            self.client.delete_object(
                namespace_name=self.namespace,
                bucket_name=bucket,
                object_name=key,
            )
        except ServiceError as exc:
            if exc.status == 404:
                return False
            raise
        return True
