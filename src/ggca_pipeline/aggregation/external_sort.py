"""
Streaming external merge sort.

Items are buffered in memory; a full buffer is sorted and written to a
temporary run file. Iterating the sorter merges every run with the remaining
buffer through a k-way heap merge, so the globally sorted sequence never has
to fit in memory.
"""

from __future__ import annotations

import heapq
import logging
import shutil
import tempfile
from collections import deque
from pathlib import Path
from typing import BinaryIO, Callable, Generic, Iterable, Iterator, Optional, TypeVar, Union

from ggca_pipeline.core.errors import ResourceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExternalSorter(Generic[T]):
    """
    Sorts an unbounded stream of items with bounded memory.

    Example:
        >>> with ExternalSorter(
        ...     key=lambda r: r.p_value,
        ...     encode=CorrelationResult.to_bytes,
        ...     decode=CorrelationResult.read_from,
        ...     buffer_size=1_000_000,
        ... ) as sorter:
        ...     sorter.extend(results)
        ...     for result in sorter.sorted():
        ...         ...
    """

    def __init__(
        self,
        key: Callable[[T], object],
        encode: Callable[[T], bytes],
        decode: Callable[[BinaryIO], Optional[T]],
        buffer_size: int,
        spill_dir: Optional[Union[str, Path]] = None,
        prefix: str = "ggca_sort_",
    ):
        """
        Initialize sorter.

        Args:
            key: Sort key function.
            encode: Serializes one item to bytes.
            decode: Reads the next item from a binary stream, None at end.
            buffer_size: Items held in memory before a run is spilled.
            spill_dir: Parent directory for run files (None = system temp).
            prefix: Prefix of the temporary run directory.
        """
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")

        self.key = key
        self.encode = encode
        self.decode = decode
        self.buffer_size = buffer_size
        self.spill_dir = Path(spill_dir) if spill_dir is not None else None
        self.prefix = prefix

        self._buffer: list[T] = []
        self._run_files: list[Path] = []
        self._run_dir: Optional[Path] = None
        self._n_items = 0

    def __len__(self) -> int:
        return self._n_items

    @property
    def n_runs(self) -> int:
        """Runs spilled to disk so far."""
        return len(self._run_files)

    def add(self, item: T) -> None:
        """Buffer one item, spilling when the buffer is full."""
        self._buffer.append(item)
        self._n_items += 1
        if len(self._buffer) >= self.buffer_size:
            self._spill()

    def extend(self, items: Iterable[T]) -> None:
        """Buffer many items."""
        for item in items:
            self.add(item)

    def _ensure_run_dir(self) -> Path:
        if self._run_dir is None:
            self._run_dir = _make_run_dir(self.spill_dir, self.prefix)
        return self._run_dir

    def _spill(self) -> None:
        """Sort the buffer and write it as a new run."""
        if not self._buffer:
            return

        self._buffer.sort(key=self.key)
        run_file = self._ensure_run_dir() / f"run_{len(self._run_files):05d}.bin"
        _write_records(run_file, self._buffer, self.encode)

        logger.debug("Spilled %d items to %s", len(self._buffer), run_file)
        self._run_files.append(run_file)
        self._buffer = []

    def sorted(self) -> Iterator[T]:
        """
        Iterate over every added item in ascending key order.

        Yields:
            Items merged from spilled runs and the in-memory buffer.
        """
        self._buffer.sort(key=self.key)

        if not self._run_files:
            return iter(list(self._buffer))

        logger.debug(
            "Merging %d runs with %d buffered items", len(self._run_files), len(self._buffer)
        )
        sources = [
            _read_records(run_file, self.decode) for run_file in self._run_files
        ]
        sources.append(iter(list(self._buffer)))
        return heapq.merge(*sources, key=self.key)

    def close(self) -> None:
        """Remove spilled runs and drop the buffer."""
        self._buffer = []
        self._run_files = []
        if self._run_dir is not None:
            shutil.rmtree(self._run_dir, ignore_errors=True)
            self._run_dir = None

    def __enter__(self) -> "ExternalSorter[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SpillQueue(Generic[T]):
    """
    FIFO queue that moves its oldest items to disk once it grows past
    ``buffer_size``.

    Example:
        >>> queue = SpillQueue(CorrelationResult.to_bytes, CorrelationResult.read_from, 1000)
        >>> queue.append(result)
        >>> first = queue.popleft()
    """

    def __init__(
        self,
        encode: Callable[[T], bytes],
        decode: Callable[[BinaryIO], Optional[T]],
        buffer_size: int,
        spill_dir: Optional[Union[str, Path]] = None,
        prefix: str = "ggca_queue_",
    ):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")

        self.encode = encode
        self.decode = decode
        self.buffer_size = buffer_size
        self.spill_dir = Path(spill_dir) if spill_dir is not None else None
        self.prefix = prefix

        self._memory: deque[T] = deque()
        self._chunks: deque[Path] = deque()
        self._reader: Optional[Iterator[T]] = None
        self._run_dir: Optional[Path] = None
        self._n_chunks_written = 0
        self._len = 0

    def __len__(self) -> int:
        return self._len

    def append(self, item: T) -> None:
        """Add an item at the back of the queue."""
        self._memory.append(item)
        self._len += 1
        if len(self._memory) >= self.buffer_size:
            self._spill()

    def _spill(self) -> None:
        if self._run_dir is None:
            self._run_dir = _make_run_dir(self.spill_dir, self.prefix)
        chunk = self._run_dir / f"chunk_{self._n_chunks_written:05d}.bin"
        _write_records(chunk, self._memory, self.encode)

        logger.debug("Spilled %d queued items to %s", len(self._memory), chunk)
        self._n_chunks_written += 1
        self._chunks.append(chunk)
        self._memory.clear()

    def popleft(self) -> T:
        """Remove and return the oldest item."""
        if self._len == 0:
            raise IndexError("pop from an empty SpillQueue")

        # spilled chunks always hold older items than memory
        while self._reader is not None or self._chunks:
            if self._reader is None:
                self._reader = _read_records(self._chunks.popleft(), self.decode, unlink=True)
            item = next(self._reader, None)
            if item is not None:
                self._len -= 1
                return item
            self._reader = None

        self._len -= 1
        return self._memory.popleft()

    def close(self) -> None:
        """Drop queued items and remove spilled chunks."""
        self._memory.clear()
        self._chunks.clear()
        self._reader = None
        self._len = 0
        if self._run_dir is not None:
            shutil.rmtree(self._run_dir, ignore_errors=True)
            self._run_dir = None

    def __enter__(self) -> "SpillQueue[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _make_run_dir(spill_dir: Optional[Path], prefix: str) -> Path:
    try:
        if spill_dir is not None:
            spill_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=prefix, dir=spill_dir))
    except OSError as e:
        raise ResourceError(f"Cannot create spill directory: {e}") from e


def _write_records(path: Path, items: Iterable[T], encode: Callable[[T], bytes]) -> None:
    try:
        with open(path, "wb") as f:
            for item in items:
                f.write(encode(item))
    except ResourceError:
        raise
    except OSError as e:
        raise ResourceError(f"Failed to write spill file {path}: {e}") from e


def _read_records(
    path: Path,
    decode: Callable[[BinaryIO], Optional[T]],
    unlink: bool = False,
) -> Iterator[T]:
    try:
        with open(path, "rb") as f:
            while True:
                item = decode(f)
                if item is None:
                    break
                yield item
        if unlink:
            path.unlink()
    except ResourceError:
        raise
    except OSError as e:
        raise ResourceError(f"Failed to read spill file {path}: {e}") from e
