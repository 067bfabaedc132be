"""Multipart upload engine."""

from .chunked_file import Chunk, ChunkedFile, calculate_chunk_size
from .part_upload import PartUpload, PartUploadResult
from .status import UploadStatus, humanize_bytes
from .upload import MultipartUpload, ProgressCallback, UploadState

__all__ = [
    "Chunk",
    "ChunkedFile",
    "MultipartUpload",
    "PartUpload",
    "PartUploadResult",
    "ProgressCallback",
    "UploadState",
    "UploadStatus",
    "calculate_chunk_size",
    "humanize_bytes",
]
