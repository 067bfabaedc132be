from typing import Any

from .multipart.status import UploadStatus


class TqdmProgressCallback:
    """
    Updates a TQDM progress bar from the status snapshots of a multipart upload.
    """

    def __init__(self, pbar: Any):
        self.pbar = pbar
        self._bytes_reported = 0

    def __call__(self, status: UploadStatus) -> None:
        self.pbar.update(status.bytes_uploaded - self._bytes_reported)
        self._bytes_reported = status.bytes_uploaded
        self.pbar.set_postfix(parts=f"{status.parts_uploaded}/{status.total_parts}", active=status.active_part_count)
