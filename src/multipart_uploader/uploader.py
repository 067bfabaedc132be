"""Module for uploading and deleting single objects in an S3 bucket"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from os import PathLike
from pathlib import Path
from typing import Any

from .backend import ObjectHead, S3Backend
from .exceptions import UploadError
from .models.config import ConfigModel, UploadConfig
from .multipart import MultipartUpload, ProgressCallback
from .multipart.status import humanize_bytes
from .options import multipart_initiate_options, process_upload_options
from .transfer import init_s3_client

log = logging.getLogger(__name__)


def normalize_object_key(object_key: str | PathLike | None) -> str:
    """
    Strip leading slashes, otherwise S3 creates a directory with an empty name.

    :raises ValueError: if the resulting key is empty
    """
    key = str(object_key) if object_key is not None else ""
    key = key.lstrip("/")
    if not key:
        raise ValueError("Object key must be set and cannot be empty.")
    return key


class S3Uploader:
    """Uploads files to S3, in a single request or in parts depending on their size."""

    __log = log.getChild("S3Uploader")

    def __init__(
        self,
        backend: S3Backend,
        upload_config: UploadConfig | None = None,
        default_bucket: str | None = None,
    ):
        """
        :param backend: S3 backend to upload to
        :param upload_config: settings for multipart uploads
        :param default_bucket: bucket used when a call does not name one
        """
        self._backend = backend
        self._upload_config = upload_config or UploadConfig()
        self._default_bucket = default_bucket

    @classmethod
    def from_config(cls, config: ConfigModel) -> S3Uploader:
        return cls(
            S3Backend(init_s3_client(config.s3_options)),
            upload_config=config.upload,
            default_bucket=config.s3_options.bucket,
        )

    @property
    def backend(self) -> S3Backend:
        return self._backend

    def _resolve_bucket(self, bucket: str | None) -> str:
        bucket = bucket or self._default_bucket
        if not bucket:
            raise ValueError("Bucket name must be set and cannot be empty.")
        return bucket

    def head(self, object_key: str, bucket: str | None = None) -> ObjectHead:
        """Look up an object."""
        return self._backend.head_object(self._resolve_bucket(bucket), normalize_object_key(object_key))

    def delete_object(self, object_key: str, bucket: str | None = None) -> dict[str, Any]:
        """Delete an object."""
        bucket = self._resolve_bucket(bucket)
        object_key = normalize_object_key(object_key)
        self.__log.info(f"Deleting s3://{bucket}/{object_key}")
        return self._backend.delete_object(bucket, object_key)

    def upload(  # noqa: PLR0913
        self,
        local_file_path: str | PathLike,
        bucket: str | None = None,
        object_key: str | None = None,
        request_headers: Mapping[str, Any] | None = None,
        use_multipart: bool | None = None,
        skip_existing: bool = False,
        progress_callback: ProgressCallback | None = None,
    ) -> dict[str, Any] | None:
        """
        Upload a single file.

        :param local_file_path: Path to the file to upload
        :param bucket: Target bucket, defaults to the configured bucket
        :param object_key: Target key, defaults to the file path
        :param request_headers: Headers such as ``content_type`` applied to the object
        :param use_multipart: Force or prevent a multipart upload; decided by file size if None
        :param skip_existing: Do not upload if an object of the same size already exists
        :param progress_callback: Called after each part of a multipart upload
        :return: the response of the final request, or None if the upload was skipped
        :raises UploadError: when the upload failed
        """
        local_file_path = Path(local_file_path)
        if not local_file_path.is_file():
            raise FileNotFoundError(f"File not found: {local_file_path}")

        bucket = self._resolve_bucket(bucket)
        object_key = normalize_object_key(object_key if object_key is not None else local_file_path)
        options = process_upload_options(request_headers)
        file_size = local_file_path.stat().st_size

        if skip_existing:
            head = self._backend.head_object(bucket, object_key)
            if head.exists and head.size == file_size:
                self.__log.info(f"s3://{bucket}/{object_key} already exists with size {file_size}, skipping.")
                return None

        if use_multipart is None:
            use_multipart = file_size >= self._upload_config.multipart_threshold
        # an empty file has no parts
        use_multipart = use_multipart and file_size > 0

        self.__log.info(f"Uploading {local_file_path} to s3://{bucket}/{object_key}...")
        if use_multipart:
            return self._upload_multipart(local_file_path, bucket, object_key, options, progress_callback)
        return self._upload_single(local_file_path, bucket, object_key, options)

    def _upload_single(
        self, local_file_path: Path, bucket: str, object_key: str, options: dict[str, Any]
    ) -> dict[str, Any]:
        file_size = local_file_path.stat().st_size
        time_started = time.time()
        try:
            with open(local_file_path, "rb") as fd:
                response = self._backend.put_object(bucket, object_key, fd, options)
        except Exception as e:
            raise UploadError(f"Failed to upload {local_file_path} (object id: {object_key})") from e
        time_elapsed = time.time() - time_started
        self.__log.debug(
            f"Uploaded {file_size} bytes in {time_elapsed:.2f} seconds. "
            f"{humanize_bytes(file_size / time_elapsed if time_elapsed > 0 else file_size)}/s"
        )
        return response

    def _upload_multipart(  # noqa: PLR0913
        self,
        local_file_path: Path,
        bucket: str,
        object_key: str,
        options: dict[str, Any],
        progress_callback: ProgressCallback | None,
    ) -> dict[str, Any]:
        config = self._upload_config
        if options:
            config = config.model_copy(
                update={
                    "initiate_upload_options": {
                        **config.initiate_upload_options,
                        **multipart_initiate_options(options),
                    }
                }
            )

        multipart_upload = MultipartUpload(
            self._backend,
            bucket,
            object_key,
            local_file_path,
            config=config,
            progress_callback=progress_callback,
        )
        return multipart_upload.upload()
