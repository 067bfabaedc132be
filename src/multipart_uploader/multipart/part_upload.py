"""Transfer of a single part of a multipart upload."""

from __future__ import annotations

import base64
import hashlib
import logging
import time
from dataclasses import dataclass

from ..backend import MultipartBackend
from ..exceptions import PartTransferError
from .chunked_file import Chunk

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartUploadResult:
    part_number: int
    etag: str
    size: int
    time_started: float
    time_ended: float

    @property
    def time_elapsed(self) -> float:
        return self.time_ended - self.time_started

    @property
    def bytes_per_second(self) -> float:
        if self.time_elapsed <= 0:
            return float(self.size)
        return self.size / self.time_elapsed


def content_md5(data: bytes) -> str:
    """Base64 encoded MD5 digest as expected by the Content-MD5 header."""
    return base64.b64encode(hashlib.md5(data, usedforsecurity=False).digest()).decode("ascii")


class PartUpload:
    """
    Uploads one chunk as a part of a multipart upload.

    The instance does not touch any state of the upload session;
    the outcome is reported through the return value of :meth:`upload`.
    """

    def __init__(  # noqa: PLR0913
        self,
        backend: MultipartBackend,
        bucket: str,
        object_key: str,
        upload_id: str,
        chunk: Chunk,
    ):
        self._backend = backend
        self.bucket = bucket
        self.object_key = object_key
        self.upload_id = upload_id
        self.chunk = chunk
        self.md5 = content_md5(chunk.data)

    @property
    def index(self) -> int:
        return self.chunk.index

    @property
    def part_number(self) -> int:
        return self.chunk.part_number

    @property
    def size(self) -> int:
        return self.chunk.size

    def upload(self) -> PartUploadResult:
        """
        Transfer the chunk to the backend.

        :returns: size, timing and the ETag returned by the backend
        :raises PartTransferError: if the backend call fails or returns no ETag
        """
        time_started = time.time()
        try:
            etag = self._backend.upload_part(
                self.bucket,
                self.object_key,
                self.upload_id,
                self.part_number,
                self.chunk.data,
                self.md5,
            )
        except Exception as e:
            raise PartTransferError(f"Upload failed: {e}", self.part_number) from e
        time_ended = time.time()

        if not etag:
            raise PartTransferError("Backend did not return an ETag", self.part_number)

        return PartUploadResult(
            part_number=self.part_number,
            etag=etag,
            size=self.size,
            time_started=time_started,
            time_ended=time_ended,
        )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} part_number={self.part_number} size={self.size} "
            f"md5={self.md5} upload_id={self.upload_id}>"
        )
