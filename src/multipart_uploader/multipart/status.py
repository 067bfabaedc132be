"""Progress snapshots of a multipart upload."""

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict

BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB"]


def humanize_bytes(num_bytes: float, kilo_size: int = 1024, rounding: int = 2) -> str:
    """
    Render a byte count with a binary unit, e.g. ``5.0 MiB``.

    :param num_bytes: Number of bytes
    :param kilo_size: Factor between two units
    :param rounding: Number of decimal places
    """
    if num_bytes < 1:
        return f"{num_bytes}B"
    value = float(num_bytes)
    index = 0
    while value >= kilo_size and index < len(BYTE_UNITS) - 1:
        value /= kilo_size
        index += 1
    return f"{round(value, rounding)} {BYTE_UNITS[index]}"


class UploadStatus(BaseModel):
    """Snapshot of the counters of a multipart upload, delivered after every completed part."""

    model_config = ConfigDict(frozen=True)

    size: int
    bytes_uploaded: int
    bytes_remaining: int
    time_started: datetime | None
    time_elapsed: float
    bytes_per_second: float
    active_part_count: int
    total_parts: int
    parts_uploaded: int
    estimated_time_remaining: float | None
    """Seconds until completion at the current rate, None while the rate is unknown."""
    part_size: int
    aborted: bool
    completed: bool
    successful: bool
    threaded: bool
    thread_limit: int

    @property
    def percentage_completed(self) -> float:
        if self.size == 0:
            return 100.0
        return self.bytes_uploaded / self.size * 100

    @property
    def percentage_remaining(self) -> float:
        return 100.0 - self.percentage_completed

    def __str__(self) -> str:
        etr = "unknown" if self.estimated_time_remaining is None else f"{math.ceil(self.estimated_time_remaining)}s"
        return (
            f"Uploaded: {humanize_bytes(self.bytes_uploaded)} ({self.percentage_completed:.2f}%) "
            f"in {self.time_elapsed:.2f}s @ {humanize_bytes(self.bytes_per_second)}/s, "
            f"remaining: {humanize_bytes(self.bytes_remaining)} ({self.percentage_remaining:.2f}%), "
            f"ETR: {etr}"
        )
