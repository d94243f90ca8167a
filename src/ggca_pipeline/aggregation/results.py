"""
Result aggregation: threshold filtering, counting and p-value ordering.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

from ggca_pipeline.aggregation.external_sort import ExternalSorter
from ggca_pipeline.correlation.result import CorrelationResult, p_value_key

logger = logging.getLogger(__name__)


def passes_threshold(result: CorrelationResult, threshold: float) -> bool:
    """True when |correlation| meets the inclusive threshold."""
    return result.abs_correlation() >= threshold


@dataclass
class ResultBatch:
    """Results produced by a worker for a run of combinations."""

    results: list[CorrelationResult] = field(default_factory=list)
    """Results that passed the correlation threshold."""

    n_total: int = 0
    """Combinations evaluated to produce this batch (passed or not)."""

    n_skipped: int = 0
    """Combinations whose statistic was undefined."""


class ResultAggregator:
    """
    Collects correlation results and yields them by ascending raw p-value.

    Several producers may call ``add_batch`` concurrently; the lock is held
    only while a batch is counted and buffered (including any spill it
    triggers).

    Example:
        >>> with ResultAggregator(correlation_threshold=0.5, buffer_size=2_000_000) as agg:
        ...     for result in results:
        ...         agg.add(result)
        ...     for result in agg.sorted():
        ...         ...
    """

    def __init__(
        self,
        correlation_threshold: float,
        buffer_size: int,
        spill_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize aggregator.

        Args:
            correlation_threshold: Inclusive lower bound on |correlation|.
            buffer_size: Results buffered before spilling a sorted run.
            spill_dir: Parent directory for spilled runs.
        """
        self.correlation_threshold = correlation_threshold
        self._sorter: ExternalSorter[CorrelationResult] = ExternalSorter(
            key=p_value_key,
            encode=CorrelationResult.to_bytes,
            decode=CorrelationResult.read_from,
            buffer_size=buffer_size,
            spill_dir=spill_dir,
            prefix="ggca_results_",
        )
        self._lock = threading.Lock()

        self.total_combinations = 0
        self.evaluated_combinations = 0
        self.skipped_combinations = 0

    def add(self, result: CorrelationResult) -> bool:
        """
        Offer one evaluated combination.

        Returns:
            True when the result passed the threshold and was kept.
        """
        keep = passes_threshold(result, self.correlation_threshold)
        with self._lock:
            self.total_combinations += 1
            if keep:
                # rejects results without a sortable p-value
                p_value_key(result)
                self._sorter.add(result)
                self.evaluated_combinations += 1
        return keep

    def add_skipped(self, count: int = 1) -> None:
        """Count combinations whose statistic was undefined."""
        with self._lock:
            self.total_combinations += count
            self.skipped_combinations += count

    def add_batch(self, batch: ResultBatch) -> None:
        """Ingest a pre-filtered batch from a worker."""
        # rejects results without a sortable p-value
        for result in batch.results:
            p_value_key(result)
        with self._lock:
            self.total_combinations += batch.n_total
            self.skipped_combinations += batch.n_skipped
            self.evaluated_combinations += len(batch.results)
            self._sorter.extend(batch.results)

    @property
    def n_runs(self) -> int:
        """Sorted runs spilled to disk."""
        return self._sorter.n_runs

    def sorted(self) -> Iterator[CorrelationResult]:
        """Every kept result, ascending by raw p-value."""
        logger.debug(
            "Sorting %d results (%d spilled runs)", self.evaluated_combinations, self.n_runs
        )
        return self._sorter.sorted()

    def close(self) -> None:
        """Remove spilled runs."""
        self._sorter.close()

    def __enter__(self) -> "ResultAggregator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
