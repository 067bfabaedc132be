"""Object storage operations used by the multipart upload engine."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import IO, Any, Protocol

import botocore.exceptions

log = logging.getLogger(__name__)

NOT_FOUND_ERROR_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class ObjectHead:
    """Result of a HEAD request on an object."""

    exists: bool
    size: int | None = None
    etag: str | None = None


class MultipartBackend(Protocol):
    """The operation set a backend must expose for multipart uploads."""

    def initiate_multipart_upload(self, bucket: str, key: str, options: Mapping[str, Any]) -> str:
        """Start a multipart upload and return the upload ID."""
        ...

    def upload_part(  # noqa: PLR0913
        self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes, content_md5: str
    ) -> str:
        """Store one part and return the ETag the backend assigned to it."""
        ...

    def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: Sequence[tuple[int, str]]
    ) -> dict[str, Any]:
        """Assemble the given (part number, ETag) pairs into the final object."""
        ...

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Discard the upload and all parts stored so far."""
        ...

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        """Look up whether an object exists and how large it is."""
        ...


class S3Backend:
    """Implementation of the backend operations using a boto3 S3 client."""

    __log = log.getChild("S3Backend")

    def __init__(self, s3_client: Any):
        """
        :param s3_client: Boto3 S3 client
        """
        self._s3_client = s3_client

    @property
    def s3_client(self) -> Any:
        return self._s3_client

    def initiate_multipart_upload(self, bucket: str, key: str, options: Mapping[str, Any]) -> str:
        response = self._s3_client.create_multipart_upload(Bucket=bucket, Key=key, **options)
        return response["UploadId"]

    def upload_part(  # noqa: PLR0913
        self, bucket: str, key: str, upload_id: str, part_number: int, data: bytes, content_md5: str
    ) -> str:
        response = self._s3_client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
            ContentMD5=content_md5,
        )
        return response.get("ETag", "")

    def complete_multipart_upload(
        self, bucket: str, key: str, upload_id: str, parts: Sequence[tuple[int, str]]
    ) -> dict[str, Any]:
        return self._s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": [{"PartNumber": number, "ETag": etag} for number, etag in parts]},
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self._s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)

    def head_object(self, bucket: str, key: str) -> ObjectHead:
        try:
            response = self._s3_client.head_object(Bucket=bucket, Key=key)
        except botocore.exceptions.ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in NOT_FOUND_ERROR_CODES:
                return ObjectHead(exists=False)
            raise
        return ObjectHead(exists=True, size=response["ContentLength"], etag=response.get("ETag"))

    def put_object(self, bucket: str, key: str, body: IO[bytes] | bytes, options: Mapping[str, Any]) -> dict[str, Any]:
        """Upload an object in a single request."""
        return self._s3_client.put_object(Bucket=bucket, Key=key, Body=body, **options)

    def delete_object(self, bucket: str, key: str) -> dict[str, Any]:
        """Delete an object."""
        self.__log.debug(f"Deleting s3://{bucket}/{key}")
        return self._s3_client.delete_object(Bucket=bucket, Key=key)
