"""Upload large files to S3 compatible object storage using multipart uploads."""

from .backend import MultipartBackend, ObjectHead, S3Backend
from .exceptions import (
    AbortError,
    ChunkReadError,
    CompletionError,
    InitiationError,
    PartTransferError,
    UploadError,
)
from .models.config import ConfigModel, S3Options, UploadConfig
from .multipart import ChunkedFile, MultipartUpload, UploadState, UploadStatus
from .uploader import S3Uploader

__all__ = [
    "AbortError",
    "ChunkReadError",
    "ChunkedFile",
    "CompletionError",
    "ConfigModel",
    "InitiationError",
    "MultipartBackend",
    "MultipartUpload",
    "ObjectHead",
    "PartTransferError",
    "S3Backend",
    "S3Options",
    "S3Uploader",
    "UploadConfig",
    "UploadError",
    "UploadState",
    "UploadStatus",
]
