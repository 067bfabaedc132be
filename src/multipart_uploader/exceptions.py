class UploadError(Exception):
    """Base exception for upload related errors."""


class InitiationError(UploadError):
    """Raised when the backend rejects the initiation of a multipart upload."""


class PartTransferError(UploadError):
    """Raised when a single part could not be transferred."""

    def __init__(self, message: str, part_number: int):
        self.part_number = part_number
        super().__init__(f"[part {part_number}] {message}")


class CompletionError(UploadError):
    """Raised when the backend fails to assemble the uploaded parts."""


class AbortError(UploadError):
    """Raised when aborting a multipart upload fails."""


class ChunkReadError(UploadError):
    """Raised when the source file cannot be read as announced."""
