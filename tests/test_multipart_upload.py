"""Tests for the coordination of multipart uploads against an in-memory backend."""

import io
import threading
import time

import pytest
from multipart_uploader.exceptions import ChunkReadError, CompletionError, InitiationError, PartTransferError
from multipart_uploader.models.config import UploadConfig
from multipart_uploader.multipart.chunked_file import ChunkedFile
from multipart_uploader.multipart.upload import TERMINAL_STATES, MultipartUpload, UploadState

from .fakes import FakeBackend

MiB = 1024 * 1024


def make_upload(backend, data: bytes, chunk_size: int, progress_callback=None, **config) -> MultipartUpload:
    chunked = ChunkedFile(io.BytesIO(data), chunk_size=chunk_size)
    return MultipartUpload(
        backend,
        "bucket",
        "some/key",
        chunked,
        config=UploadConfig(**config),
        progress_callback=progress_callback,
    )


def test_sequential_upload_of_three_parts():
    """
    GIVEN a 12 MiB file and a part size of 5 MiB
    WHEN it is uploaded without threads
    THEN three parts of 5, 5 and 2 MiB are uploaded in order and completed
    """
    data = bytes(range(256)) * (12 * MiB // 256)
    backend = FakeBackend()
    upload = MultipartUpload(backend, "bucket", "some/key", io.BytesIO(data), config=UploadConfig(thread_limit=1))

    response = upload.upload()

    assert response["ETag"] == '"final-etag"'
    assert backend.started_parts == [1, 2, 3]
    assert backend.finished_parts == [1, 2, 3]
    assert [len(backend.stored_parts[n]) for n in (1, 2, 3)] == [5 * MiB, 5 * MiB, 2 * MiB]
    assert b"".join(backend.stored_parts[n] for n in (1, 2, 3)) == data
    assert backend.complete_calls == [[(1, '"etag-1"'), (2, '"etag-2"'), (3, '"etag-3"')]]
    assert backend.abort_calls == 0

    assert upload.state is UploadState.COMPLETED
    assert upload.successful
    assert upload.bytes_uploaded == len(data)
    assert upload.bytes_remaining == 0
    assert upload.total_parts == 3


def test_unthreaded_upload_runs_in_calling_thread():
    backend = FakeBackend()
    upload = make_upload(backend, b"x" * 100, chunk_size=10, threaded=False, thread_limit=8)

    upload.upload()

    assert upload.thread_limit == 1
    assert backend.thread_ids == {threading.get_ident()}
    assert backend.max_active == 1
    assert backend.started_parts == list(range(1, 11))


def test_threaded_upload_respects_thread_limit():
    backend = FakeBackend(delays={n: 0.02 for n in range(1, 21)})
    upload = make_upload(backend, b"y" * 200, chunk_size=10, threaded=True, thread_limit=3)

    upload.upload()

    assert backend.max_active <= 3
    assert backend.max_active > 1
    assert threading.get_ident() not in backend.thread_ids
    assert backend.started_parts == list(range(1, 21))
    assert upload.successful


def test_parts_are_completed_in_order_regardless_of_finishing_order():
    # part 1 finishes last
    backend = FakeBackend(delays={1: 0.2, 2: 0.05})
    upload = make_upload(backend, b"z" * 40, chunk_size=10, threaded=True, thread_limit=4)

    upload.upload()

    assert backend.finished_parts[-1] == 1
    assert backend.complete_calls == [[(n, f'"etag-{n}"') for n in range(1, 5)]]


def test_progress_is_reported_after_every_part():
    statuses = []
    backend = FakeBackend(delays={1: 0.05})
    upload = make_upload(
        backend, b"p" * 95, chunk_size=10, progress_callback=statuses.append, threaded=True, thread_limit=2
    )

    upload.upload()

    assert len(statuses) == 10
    uploaded = [status.bytes_uploaded for status in statuses]
    assert uploaded == sorted(uploaded)
    assert uploaded[-1] == 95
    assert [status.parts_uploaded for status in statuses] == list(range(1, 11))
    assert all(status.total_parts == 10 for status in statuses)
    assert all(status.bytes_remaining == 95 - status.bytes_uploaded for status in statuses)
    assert all(status.active_part_count <= 2 for status in statuses)
    assert all(status.threaded and status.thread_limit == 2 for status in statuses)
    assert not any(status.completed or status.aborted for status in statuses)


def test_part_failure_aborts_upload():
    """
    GIVEN a thread limit of 4 and 10 parts
    WHEN part 6 fails
    THEN the upload is aborted once, never completed, and the part error is raised
    """
    backend = FakeBackend(fail_parts=[6], delays={n: 0.05 for n in range(1, 11) if n != 6})
    upload = make_upload(backend, b"f" * 100, chunk_size=10, threaded=True, thread_limit=4)

    with pytest.raises(PartTransferError) as excinfo:
        upload.upload()

    assert excinfo.value.part_number == 6
    assert "simulated failure of part 6" in str(excinfo.value)
    assert backend.complete_calls == []
    assert backend.abort_calls == 1
    assert backend.max_active <= 4
    assert 10 not in backend.started_parts
    assert backend.active == 0
    assert upload.state is UploadState.ABORTED
    assert upload.aborted
    assert not upload.successful
    assert 6 not in upload.part_etags


def test_part_failure_aborts_sequential_upload():
    backend = FakeBackend(fail_parts=[2])
    upload = make_upload(backend, b"s" * 50, chunk_size=10)

    with pytest.raises(PartTransferError):
        upload.upload()

    assert backend.started_parts == [1, 2]
    assert backend.abort_calls == 1
    assert backend.complete_calls == []
    assert upload.bytes_uploaded == 10


def test_empty_etag_aborts_upload():
    backend = FakeBackend(empty_etag_parts=[3])
    upload = make_upload(backend, b"e" * 50, chunk_size=10, threaded=True, thread_limit=2)

    with pytest.raises(PartTransferError, match="ETag"):
        upload.upload()

    assert backend.abort_calls == 1
    assert backend.complete_calls == []


def test_initiate_failure_sends_no_parts():
    backend = FakeBackend(fail_initiate=True)
    upload = make_upload(backend, b"i" * 50, chunk_size=10)

    with pytest.raises(InitiationError):
        upload.upload()

    assert backend.started_parts == []
    assert backend.complete_calls == []
    # no upload ID, nothing to abort on the backend
    assert backend.abort_calls == 0
    assert upload.upload_id is None
    assert upload.state is UploadState.ABORTED


def test_initiate_options_are_passed_through():
    backend = FakeBackend()
    upload = make_upload(
        backend, b"o" * 10, chunk_size=10, initiate_upload_options={"ContentType": "text/plain", "Metadata": {"a": "b"}}
    )

    assert upload.initiate() == "upload-1"
    assert upload.state is UploadState.INITIATED
    assert backend.initiate_options == [{"ContentType": "text/plain", "Metadata": {"a": "b"}}]

    upload.upload()
    assert upload.successful
    assert len(backend.initiate_options) == 1


def test_complete_failure_aborts_upload():
    backend = FakeBackend(fail_complete=True)
    upload = make_upload(backend, b"c" * 30, chunk_size=10)

    with pytest.raises(CompletionError) as excinfo:
        upload.upload()

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert len(backend.complete_calls) == 1
    assert backend.abort_calls == 1
    assert upload.state is UploadState.ABORTED


def test_unconfirmed_completion_aborts_upload():
    backend = FakeBackend(complete_etag=None)
    upload = make_upload(backend, b"u" * 30, chunk_size=10)

    with pytest.raises(CompletionError, match="ETag"):
        upload.upload()

    assert backend.abort_calls == 1
    assert not upload.successful


def test_abort_failure_does_not_mask_part_error():
    backend = FakeBackend(fail_parts=[1], fail_abort=True)
    upload = make_upload(backend, b"a" * 30, chunk_size=10)

    with pytest.raises(PartTransferError):
        upload.upload()

    assert backend.abort_calls == 1
    assert upload.state is UploadState.ABORTED


def test_read_error_aborts_upload():
    backend = FakeBackend()
    chunked = ChunkedFile(io.BytesIO(b"r" * 25), chunk_size=10, size=40)
    upload = MultipartUpload(backend, "bucket", "key", chunked)

    with pytest.raises(ChunkReadError):
        upload.upload()

    assert backend.started_parts == [1, 2]
    assert backend.complete_calls == []
    assert backend.abort_calls == 1


def test_progress_callback_error_aborts_upload():
    def failing_callback(status):
        raise RuntimeError("callback failed")

    backend = FakeBackend()
    upload = make_upload(backend, b"k" * 30, chunk_size=10, progress_callback=failing_callback)

    with pytest.raises(RuntimeError, match="callback failed"):
        upload.upload()

    assert backend.abort_calls == 1
    assert backend.complete_calls == []


def test_abort_is_idempotent():
    backend = FakeBackend()
    upload = make_upload(backend, b"a" * 30, chunk_size=10)
    upload.initiate()

    upload.abort()
    upload.abort()

    assert backend.abort_calls == 1
    assert upload.state is UploadState.ABORTED


def test_upload_cannot_run_twice():
    backend = FakeBackend()
    upload = make_upload(backend, b"t" * 30, chunk_size=10)
    upload.upload()

    with pytest.raises(RuntimeError):
        upload.upload()

    assert len(backend.complete_calls) == 1
    assert backend.abort_calls == 0


def test_empty_file_is_rejected():
    with pytest.raises(ValueError, match="empty"):
        MultipartUpload(FakeBackend(), "bucket", "key", io.BytesIO(b""))


def test_upload_from_path_closes_file(make_file):
    path = make_file(6 * MiB)
    backend = FakeBackend()
    upload = MultipartUpload(backend, "bucket", "key", path)

    upload.upload()

    assert upload.part_size == 5 * MiB
    assert sorted(backend.stored_parts) == [1, 2]
    assert upload.file._stream.closed


def test_status_snapshot():
    backend = FakeBackend()
    upload = make_upload(backend, b"q" * 25, chunk_size=10, threaded=True, thread_limit=2)

    before = upload.status()
    assert before.bytes_uploaded == 0
    assert before.time_started is None
    assert before.estimated_time_remaining is None
    assert before.percentage_completed == 0

    upload.upload()
    after = upload.status()

    assert after.size == 25
    assert after.bytes_uploaded == 25
    assert after.bytes_remaining == 0
    assert after.parts_uploaded == 3
    assert after.total_parts == 3
    assert after.part_size == 10
    assert after.active_part_count == 0
    assert after.completed and after.successful and not after.aborted
    assert after.time_started is not None
    assert after.percentage_completed == 100
    assert "100.00%" in str(after)
    assert upload.percentage_completed == 100
    assert "100.00%" in upload.status_as_string()


def run_in_thread(upload: MultipartUpload, timeout: float = 5) -> BaseException | None:
    """Run the upload in a daemon thread, so that a hanging upload fails the test instead of blocking it."""
    raised = []

    def target():
        try:
            upload.upload()
        except BaseException as e:
            raised.append(e)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join(timeout)
    assert not thread.is_alive(), f"upload did not return, active parts: {upload.active_count}"
    return raised[0] if raised else None


def test_interrupt_aborts_sequential_upload():
    """
    GIVEN an upload without worker threads
    WHEN the transfer of part 2 is interrupted
    THEN the upload is aborted once and the interrupt is re-raised
    """
    backend = FakeBackend(interrupt_parts=[2])
    upload = make_upload(backend, b"n" * 50, chunk_size=10, threaded=False)

    raised = run_in_thread(upload)

    assert isinstance(raised, KeyboardInterrupt)
    assert backend.started_parts == [1, 2]
    assert backend.abort_calls == 1
    assert backend.complete_calls == []
    assert upload.active_count == 0
    assert upload.state is UploadState.ABORTED


def test_interrupt_in_worker_aborts_upload():
    backend = FakeBackend(interrupt_parts=[2])
    upload = make_upload(backend, b"w" * 50, chunk_size=10, threaded=True, thread_limit=2)

    raised = run_in_thread(upload)

    assert isinstance(raised, PartTransferError)
    assert raised.part_number == 2
    assert backend.abort_calls == 1
    assert backend.complete_calls == []


def test_interrupt_in_progress_callback_discards_later_results():
    calls = []

    def interrupting_callback(status):
        calls.append(status)
        raise KeyboardInterrupt

    backend = FakeBackend(delays={n: 0.05 for n in range(2, 7)})
    upload = make_upload(
        backend, b"d" * 60, chunk_size=10, progress_callback=interrupting_callback, threaded=True, thread_limit=3
    )

    raised = run_in_thread(upload)

    assert isinstance(raised, KeyboardInterrupt)
    assert len(calls) == 1
    assert upload.bytes_uploaded == 10
    assert backend.abort_calls == 1
    assert backend.complete_calls == []
    assert upload.active_count == 0


def test_elapsed_time_includes_completion():
    backend = FakeBackend(complete_delay=0.2)
    upload = make_upload(backend, b"l" * 20, chunk_size=10)

    assert upload.time_ended is None
    upload.upload()

    assert upload.time_ended is not None
    assert upload.time_elapsed >= 0.2
    elapsed = upload.time_elapsed
    time.sleep(0.05)
    assert upload.time_elapsed == elapsed


def test_end_time_is_set_on_abort():
    backend = FakeBackend(fail_parts=[1])
    upload = make_upload(backend, b"m" * 20, chunk_size=10)

    with pytest.raises(PartTransferError):
        upload.upload()

    assert upload.time_ended is not None
    assert upload.time_ended >= upload.status().time_started.timestamp()


def test_terminal_states():
    assert TERMINAL_STATES == frozenset({UploadState.COMPLETED, UploadState.ABORTED})
    assert isinstance(TERMINAL_STATES, frozenset)


def test_states_of_a_completed_upload():
    states = []
    backend = FakeBackend()
    upload = make_upload(backend, b"s" * 20, chunk_size=10, progress_callback=lambda _: states.append(upload.state))

    assert upload.state is UploadState.NOT_STARTED
    upload.initiate()
    assert upload.state is UploadState.INITIATED
    upload.upload()

    assert states == [UploadState.TRANSFERRING, UploadState.TRANSFERRING]
    assert upload.state is UploadState.COMPLETED
    assert upload.state in TERMINAL_STATES
    with pytest.raises(RuntimeError, match="completed"):
        upload.abort()
