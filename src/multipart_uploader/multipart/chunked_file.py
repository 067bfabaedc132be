"""Sequential, restartable decomposition of a file into upload parts."""

from __future__ import annotations

import io
import logging
import math
import os
from collections.abc import Iterator
from os import PathLike
from typing import IO, NamedTuple

from ..constants import MULTIPART_MAX_PARTS
from ..exceptions import ChunkReadError

log = logging.getLogger(__name__)


class Chunk(NamedTuple):
    """One slice of the source file."""

    index: int
    data: bytes

    @property
    def part_number(self) -> int:
        """One-based part number used by the multipart protocol."""
        return self.index + 1

    @property
    def size(self) -> int:
        return len(self.data)


def calculate_chunk_size(size: int, chunk_size: int, maximum_chunks: int = MULTIPART_MAX_PARTS) -> int:
    """
    Increase the chunk size if the requested one would split the file into too many chunks.

    :param size: Total size of the file in bytes
    :param chunk_size: Requested chunk size in bytes
    :param maximum_chunks: Maximum number of chunks allowed
    :returns: Chunk size to use in bytes
    """
    if size > 0 and math.ceil(size / chunk_size) > maximum_chunks:
        return math.ceil(size / maximum_chunks)
    return chunk_size


class ChunkedFile:
    """
    Presents a binary stream as an ordered sequence of fixed-size chunks.

    Every iteration starts by rewinding the stream, so iterating twice yields identical chunks.
    The stream is only ever read sequentially.
    """

    def __init__(
        self,
        source: str | PathLike | IO[bytes],
        chunk_size: int,
        maximum_chunks: int = MULTIPART_MAX_PARTS,
        size: int | None = None,
    ):
        """
        :param source: Path to a file or an open binary stream
        :param chunk_size: Requested chunk size in bytes
        :param maximum_chunks: Maximum number of chunks, the chunk size is increased to stay within it
        :param size: Size of the stream in bytes; determined from the stream if omitted
        """
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")

        if isinstance(source, str | PathLike):
            self._stream: IO[bytes] = open(source, "rb")  # noqa: SIM115
            self._owns_stream = True
            self._name = os.fspath(source)
        else:
            self._stream = source
            self._owns_stream = False
            self._name = str(getattr(source, "name", repr(source)))

        self._size = size if size is not None else self._determine_size()
        self._requested_chunk_size = chunk_size
        self._chunk_size = calculate_chunk_size(self._size, chunk_size, maximum_chunks)
        self._maximum_chunks = maximum_chunks

        if self._chunk_size != chunk_size:
            log.info(
                f"Chunk size of {chunk_size} bytes would exceed {maximum_chunks} chunks for {self._name}, "
                f"using {self._chunk_size} bytes instead."
            )

    def _determine_size(self) -> int:
        try:
            return os.fstat(self._stream.fileno()).st_size
        except (AttributeError, OSError, io.UnsupportedOperation):
            pass

        try:
            position = self._stream.tell()
            size = self._stream.seek(0, io.SEEK_END)
            self._stream.seek(position)
        except (OSError, ValueError) as e:
            raise ChunkReadError(f"Unable to determine the size of {self._name}") from e
        return size

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        """Total size of the source in bytes."""
        return self._size

    @property
    def chunk_size(self) -> int:
        """Effective chunk size after applying the chunk count limit."""
        return self._chunk_size

    @property
    def requested_chunk_size(self) -> int:
        return self._requested_chunk_size

    @property
    def maximum_chunks(self) -> int:
        return self._maximum_chunks

    @property
    def total_chunks(self) -> int:
        return math.ceil(self._size / self._chunk_size)

    def _rewind(self) -> None:
        try:
            self._stream.seek(0)
        except (OSError, ValueError) as e:
            raise ChunkReadError(f"Unable to rewind {self._name} to its start") from e

    def _read_exactly(self, size: int) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            data = self._stream.read(size - len(buffer))
            if not data:
                break
            buffer += data
        return bytes(buffer)

    def __iter__(self) -> Iterator[Chunk]:
        self._rewind()

        remaining = self._size
        for index in range(self.total_chunks):
            expected = min(self._chunk_size, remaining)
            data = self._read_exactly(expected)
            if len(data) != expected:
                raise ChunkReadError(
                    f"Unexpected end of {self._name} while reading chunk {index}: "
                    f"expected {expected} bytes, got {len(data)} "
                    f"({self._size - remaining + len(data)} of {self._size} bytes read)"
                )
            remaining -= expected
            yield Chunk(index, data)

    def __len__(self) -> int:
        return self.total_chunks

    def close(self) -> None:
        """Close the underlying stream if it was opened by this instance."""
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> ChunkedFile:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
