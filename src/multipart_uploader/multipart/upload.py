"""Coordination of a multipart upload session."""

from __future__ import annotations

import enum
import logging
import queue
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from os import PathLike
from typing import IO, Any

from ..backend import MultipartBackend
from ..constants import MULTIPART_MAX_PARTS
from ..exceptions import AbortError, CompletionError, InitiationError, PartTransferError
from ..models.config import UploadConfig
from .chunked_file import ChunkedFile
from .part_upload import PartUpload, PartUploadResult
from .status import UploadStatus, humanize_bytes

log = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadStatus], None]


class UploadState(enum.StrEnum):
    """
    Lifecycle of a multipart upload session.

    A session moves forward from ``NOT_STARTED`` to ``COMPLETED``.
    From any state before that, it can instead move to ``ABORTING`` and ``ABORTED``.
    """

    NOT_STARTED = "not_started"
    INITIATED = "initiated"
    TRANSFERRING = "transferring"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ABORTING = "aborting"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({UploadState.COMPLETED, UploadState.ABORTED})
"""States a session never leaves."""


@dataclass(frozen=True)
class _PartOutcome:
    part: PartUpload
    result: PartUploadResult | None = None
    error: Exception | None = None


class MultipartUpload:
    """
    Uploads a file to S3 using the multipart upload protocol.

    Parts are read and dispatched in order. With ``threaded`` enabled, up to ``thread_limit`` parts
    are transferred concurrently by worker threads, which report their outcome through a queue.
    All session counters are only updated by the thread running :meth:`upload`.
    Any failed part aborts the whole upload.
    """

    __log = log.getChild("MultipartUpload")

    def __init__(  # noqa: PLR0913
        self,
        backend: MultipartBackend,
        bucket: str,
        object_key: str,
        source: str | PathLike | IO[bytes] | ChunkedFile,
        config: UploadConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        :param backend: The object storage backend
        :param bucket: Name of the target bucket
        :param object_key: Key of the object to create
        :param source: Path, binary stream or ChunkedFile to upload
        :param config: Settings of this upload, defaults are used if omitted
        :param progress_callback: Called with an UploadStatus after every completed part
        """
        self._config = config or UploadConfig()
        self._backend = backend
        self.bucket = bucket
        self.object_key = object_key
        self.progress_callback = progress_callback

        if isinstance(source, ChunkedFile):
            self._file = source
            self._owns_file = False
        else:
            self._owns_file = True
            self._file = ChunkedFile(
                source,
                chunk_size=self._config.part_size,
                maximum_chunks=MULTIPART_MAX_PARTS,
            )
        if self._file.size == 0:
            self.close()
            raise ValueError(f"Cannot upload empty file {self._file.name} in parts")

        self._state = UploadState.NOT_STARTED
        self._upload_id: str | None = None
        self.complete_upload_response: dict[str, Any] | None = None

        self._bytes_uploaded = 0
        self._part_etags: dict[int, str] = {}
        self._active_count = 0
        self._outcomes: queue.SimpleQueue[_PartOutcome] = queue.SimpleQueue()
        self._error: Exception | None = None

        self._time_started: float | None = None
        self._time_ended: float | None = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def file(self) -> ChunkedFile:
        return self._file

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def upload_id(self) -> str | None:
        return self._upload_id

    @property
    def threaded(self) -> bool:
        return self._config.threaded

    @property
    def thread_limit(self) -> int:
        return self._config.effective_thread_limit

    @property
    def part_size(self) -> int:
        return self._file.chunk_size

    @property
    def total_parts(self) -> int:
        return self._file.total_chunks

    @property
    def part_etags(self) -> dict[int, str]:
        return dict(self._part_etags)

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def bytes_uploaded(self) -> int:
        return self._bytes_uploaded

    @property
    def bytes_remaining(self) -> int:
        return self._file.size - self._bytes_uploaded

    @property
    def aborted(self) -> bool:
        return self._state in {UploadState.ABORTING, UploadState.ABORTED}

    @property
    def completed(self) -> bool:
        return self._state is UploadState.COMPLETED

    @property
    def successful(self) -> bool:
        """Whether the backend confirmed the assembled object with an ETag."""
        return self.completed and bool((self.complete_upload_response or {}).get("ETag"))

    @property
    def time_ended(self) -> float | None:
        """Epoch timestamp at which the session was completed or aborted."""
        return self._time_ended

    @property
    def time_elapsed(self) -> float:
        if self._time_started is None:
            return 0.0
        return (self._time_ended or time.time()) - self._time_started

    @property
    def bytes_per_second(self) -> float:
        elapsed = self.time_elapsed
        if elapsed <= 0:
            return 0.0
        return self._bytes_uploaded / elapsed

    @property
    def estimated_time_remaining(self) -> float | None:
        rate = self.bytes_per_second
        if rate <= 0:
            return None
        return self.bytes_remaining / rate

    @property
    def percentage_completed(self) -> float:
        return self._bytes_uploaded / self._file.size * 100

    def status(self) -> UploadStatus:
        """Snapshot of the current progress."""
        return UploadStatus(
            size=self._file.size,
            bytes_uploaded=self._bytes_uploaded,
            bytes_remaining=self.bytes_remaining,
            time_started=datetime.fromtimestamp(self._time_started) if self._time_started is not None else None,
            time_elapsed=self.time_elapsed,
            bytes_per_second=self.bytes_per_second,
            active_part_count=self._active_count,
            total_parts=self.total_parts,
            parts_uploaded=len(self._part_etags),
            estimated_time_remaining=self.estimated_time_remaining,
            part_size=self.part_size,
            aborted=self.aborted,
            completed=self.completed,
            successful=self.successful,
            threaded=self.threaded,
            thread_limit=self.thread_limit,
        )

    def status_as_string(self) -> str:
        return str(self.status())

    def _describe(self) -> str:
        return (
            f"'{self._file.name}' to 's3://{self.bucket}/{self.object_key}' Size: {self._file.size} "
            f"Parts: {self.total_parts} @ {humanize_bytes(self.part_size)} each. Thread limit: {self.thread_limit}"
        )

    def initiate(self) -> str:
        """
        Start the multipart upload on the backend.

        :returns: the upload ID
        :raises InitiationError: if the backend rejects the upload
        """
        if self._state is not UploadState.NOT_STARTED:
            raise RuntimeError(f"Cannot initiate upload in state '{self._state}'")

        self.__log.info(f"Initiating upload of {self._describe()}")
        try:
            upload_id = self._backend.initiate_multipart_upload(
                self.bucket, self.object_key, self._config.initiate_upload_options
            )
        except Exception as e:
            raise InitiationError(f"Failed to initiate multipart upload to s3://{self.bucket}/{self.object_key}") from e
        if not upload_id:
            raise InitiationError(f"Backend returned no upload ID for s3://{self.bucket}/{self.object_key}")

        self._upload_id = upload_id
        self._state = UploadState.INITIATED
        self.__log.debug(f"Initiated upload of '{self._file.name}'. Upload ID: {upload_id}")
        return upload_id

    def upload(self) -> dict[str, Any]:
        """
        Run the whole upload: initiate, transfer all parts and complete.

        If the upload does not complete successfully, it is aborted on the backend
        before the error that caused the failure is re-raised.

        :returns: the response of the completion request
        """
        try:
            if self._state is UploadState.NOT_STARTED:
                self.initiate()
            self._transfer_parts()
            if self._error is not None:
                raise self._error
            return self.complete()
        finally:
            self._wait_for_active_parts()
            if not self.successful:
                self._abort_quietly()
            self.close()

    def _transfer_parts(self) -> None:
        if self._state is not UploadState.INITIATED:
            raise RuntimeError(f"Cannot transfer parts in state '{self._state}'")

        self._state = UploadState.TRANSFERRING
        self._time_started = time.time()

        executor = (
            ThreadPoolExecutor(max_workers=self.thread_limit, thread_name_prefix="part-upload")
            if self.threaded
            else None
        )
        try:
            for chunk in self._file:
                self._wait_for_free_slot()
                if self.aborted:
                    self.__log.debug(f"Upload aborting, part {chunk.part_number} and later parts are not sent")
                    break

                part = PartUpload(self._backend, self.bucket, self.object_key, self._upload_id, chunk)
                self.__log.debug(
                    f"Starting upload of part {part.part_number} of {self.total_parts}. "
                    f"Active parts: {self._active_count}"
                )
                if executor is None:
                    self._active_count += 1
                    try:
                        outcome = self._run_part(part)
                    except BaseException:
                        # interrupted in this thread, no outcome will ever be queued
                        self._active_count -= 1
                        raise
                    self._record(outcome)
                else:
                    executor.submit(self._run_part_in_worker, part)
                    self._active_count += 1

            self._wait_for_active_parts()
        except BaseException:
            self._request_abort()
            raise
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        self.__log.debug(
            f"Transfer finished in {self.time_elapsed:.2f} seconds. {humanize_bytes(self.bytes_per_second)}/s"
        )

    @staticmethod
    def _run_part(part: PartUpload) -> _PartOutcome:
        try:
            return _PartOutcome(part, result=part.upload())
        except Exception as e:
            return _PartOutcome(part, error=e)

    def _run_part_in_worker(self, part: PartUpload) -> None:
        outcome = _PartOutcome(part, error=PartTransferError("Worker exited without a result", part.part_number))
        try:
            outcome = self._run_part(part)
        finally:
            self._outcomes.put(outcome)

    def _wait_for_free_slot(self) -> None:
        while self._active_count >= self.thread_limit and not self.aborted:
            self._record(self._outcomes.get())

    def _wait_for_active_parts(self) -> None:
        while self._active_count > 0:
            self._record(self._outcomes.get())

    def _record(self, outcome: _PartOutcome) -> None:
        self._active_count -= 1
        part = outcome.part

        if outcome.error is not None:
            self.__log.error(f"Upload of part {part.part_number} failed: {outcome.error}")
            if self._error is None:
                self._error = outcome.error
            self._request_abort()
            return

        if self.aborted:
            self.__log.debug(f"Discarding result of part {part.part_number}, upload is aborting")
            return

        result = outcome.result
        self._bytes_uploaded += result.size
        self.__log.debug(f"Adding ETag for part {result.part_number}: {result.etag}")
        self._part_etags[result.part_number] = result.etag
        self.__log.debug(
            f"Finished upload of part {result.part_number} in {result.time_elapsed:.2f} seconds. "
            f"{humanize_bytes(result.bytes_per_second)}/s"
        )

        status = self.status()
        self.__log.debug(self.status_as_string())
        if self.progress_callback is not None:
            self.progress_callback(status)

    def _request_abort(self) -> None:
        if self._state not in TERMINAL_STATES:
            self._state = UploadState.ABORTING

    def complete(self) -> dict[str, Any]:
        """
        Ask the backend to assemble the uploaded parts.

        :returns: the response of the completion request
        :raises CompletionError: if parts are missing or the backend does not confirm the object
        """
        if self._state is not UploadState.TRANSFERRING:
            raise RuntimeError(f"Cannot complete upload in state '{self._state}'")
        self._state = UploadState.COMPLETING

        parts = sorted(self._part_etags.items())
        part_numbers = [part_number for part_number, _ in parts]
        if part_numbers != list(range(1, self.total_parts + 1)):
            missing = sorted(set(range(1, self.total_parts + 1)) - set(part_numbers))
            raise CompletionError(f"Cannot complete upload of '{self._file.name}', missing parts: {missing}")

        self.__log.debug(
            f"Completing multipart upload. Bucket: '{self.bucket}' Key: '{self.object_key}' "
            f"Upload ID: '{self._upload_id}'"
        )
        try:
            response = self._backend.complete_multipart_upload(self.bucket, self.object_key, self._upload_id, parts)
        except Exception as e:
            raise CompletionError(f"Failed to complete multipart upload of '{self._file.name}'") from e

        self.complete_upload_response = response
        if not response.get("ETag"):
            raise CompletionError(f"Backend did not confirm the upload of '{self._file.name}' with an ETag")

        self._state = UploadState.COMPLETED
        self._time_ended = time.time()
        self.__log.info(
            f"Completed upload of {self._describe()} "
            f"Time elapsed: {self.time_elapsed:.2f} seconds @ {humanize_bytes(self.bytes_per_second)}/s"
        )
        return response

    def abort(self) -> None:
        """
        Abort the upload and let the backend discard all stored parts.

        Parts still in flight are not interrupted. Calling abort more than once has no further effect.

        :raises AbortError: if the backend fails to abort the upload
        """
        if self._state is UploadState.ABORTED:
            return
        if self._state is UploadState.COMPLETED:
            raise RuntimeError("Cannot abort a completed upload")

        self._state = UploadState.ABORTING
        self.__log.info(
            f"Aborting upload of '{self._file.name}' to 's3://{self.bucket}/{self.object_key}'. "
            f"Upload ID: {self._upload_id}"
        )
        try:
            if self._upload_id:
                self._backend.abort_multipart_upload(self.bucket, self.object_key, self._upload_id)
        except Exception as e:
            raise AbortError(f"Failed to abort multipart upload {self._upload_id}") from e
        finally:
            self._state = UploadState.ABORTED
            self._time_ended = time.time()

    def _abort_quietly(self) -> None:
        try:
            self.abort()
        except AbortError as e:
            self.__log.error(str(e), exc_info=e)

    def close(self) -> None:
        """Release the source file if it was opened by this upload."""
        if self._owns_file:
            self._file.close()
