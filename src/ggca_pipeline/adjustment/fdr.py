"""
Multiple-testing correction over a p-value sorted result stream.

Bonferroni is applied per result. Benjamini-Hochberg and Benjamini-Yekutieli
are step-up procedures: the adjusted value of rank k is the minimum candidate
``p_j * m * c / j`` over every rank j >= k. Results are held back only while a
later, smaller candidate could still lower their adjusted value; since every
later candidate is at least ``p_k * c``, groups whose value is below that bound
are final and emitted immediately.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Generator, Iterable, Iterator, Optional, Union

import numpy as np
from scipy import special

from ggca_pipeline.aggregation.external_sort import SpillQueue
from ggca_pipeline.core.config import AdjustmentMethod, parse_adjustment_method
from ggca_pipeline.core.errors import ComputationError
from ggca_pipeline.correlation.result import CorrelationResult

logger = logging.getLogger(__name__)

_EXACT_HARMONIC_LIMIT = 10_000_000


def harmonic_number(m: int) -> float:
    """Sum of 1/i for i = 1..m (the Benjamini-Yekutieli correction)."""
    if m <= 0:
        return 0.0
    if m <= _EXACT_HARMONIC_LIMIT:
        return float(np.sum(1.0 / np.arange(1, m + 1, dtype=np.float64)))
    return float(special.digamma(m + 1) + np.euler_gamma)


class PValueAdjuster:
    """
    Assigns adjusted p-values to a stream sorted by ascending raw p-value.

    Example:
        >>> adjuster = PValueAdjuster("bh", n_tests=aggregator.evaluated_combinations)
        >>> for result in adjuster.adjust(aggregator.sorted()):
        ...     print(result.gene, result.adjusted_p_value)
    """

    def __init__(
        self,
        method: Union[AdjustmentMethod, int, str],
        n_tests: int,
        buffer_size: int = 1_000_000,
        spill_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize adjuster.

        Args:
            method: Adjustment method (enum, code or name).
            n_tests: Number of hypotheses m (denominator of every method).
            buffer_size: Pending results held in memory before spilling.
            spill_dir: Parent directory for spilled pending results.
        """
        if n_tests < 0:
            raise ComputationError(f"Number of tests must be >= 0, got {n_tests}")

        self.method = parse_adjustment_method(method)
        self.n_tests = n_tests
        self.buffer_size = buffer_size
        self.spill_dir = spill_dir

        if self.method is AdjustmentMethod.BENJAMINI_YEKUTIELI:
            self.factor = harmonic_number(n_tests)
        else:
            self.factor = 1.0

    def adjust(self, results: Iterable[CorrelationResult]) -> Iterator[CorrelationResult]:
        """
        Set ``adjusted_p_value`` on every result.

        Args:
            results: Results sorted by ascending raw p-value.

        Yields:
            The same results, in the same order, with adjusted p-values set.
        """
        ranked = self._ranked(results)
        if self.method is AdjustmentMethod.BONFERRONI:
            return self._bonferroni(ranked)
        return self._step_up(ranked)

    def _ranked(
        self,
        results: Iterable[CorrelationResult],
    ) -> Iterator[tuple[int, CorrelationResult, float]]:
        previous = float("-inf")
        for rank, result in enumerate(results, start=1):
            if rank > self.n_tests:
                raise ComputationError(
                    f"Stream holds more results than the {self.n_tests} tests declared"
                )
            p_value = result.sort_key()
            if p_value < previous:
                raise ComputationError(
                    f"Results are not sorted by p-value at rank {rank} "
                    f"({p_value} after {previous})"
                )
            previous = p_value
            yield rank, result, p_value

    def _bonferroni(
        self,
        ranked: Iterator[tuple[int, CorrelationResult, float]],
    ) -> Iterator[CorrelationResult]:
        m = float(self.n_tests)
        for _, result, p_value in ranked:
            result.adjusted_p_value = min(1.0, p_value * m)
            yield result

    def _step_up(
        self,
        ranked: Iterator[tuple[int, CorrelationResult, float]],
    ) -> Iterator[CorrelationResult]:
        m = float(self.n_tests)
        # [value, count] per group of consecutive ranks, values strictly increasing
        groups: deque[list] = deque()
        # last emitted value; guards monotonicity against rounding in the bound
        floor = 0.0
        max_pending = 0

        with SpillQueue(
            CorrelationResult.to_bytes,
            CorrelationResult.read_from,
            buffer_size=self.buffer_size,
            spill_dir=self.spill_dir,
            prefix="ggca_adjust_",
        ) as pending:
            for rank, result, p_value in ranked:
                candidate = p_value * m * self.factor / rank
                pending.append(result)

                count = 1
                while groups and groups[-1][0] >= candidate:
                    count += groups.pop()[1]
                groups.append([candidate, count])

                bound = p_value * self.factor
                while groups and groups[0][0] < bound:
                    value, count = groups.popleft()
                    floor = yield from _flush(pending, max(value, floor), count)

                max_pending = max(max_pending, len(pending))

            while groups:
                value, count = groups.popleft()
                floor = yield from _flush(pending, max(value, floor), count)

        logger.debug("Step-up adjustment held at most %d pending results", max_pending)


def _flush(
    pending: SpillQueue,
    value: float,
    count: int,
) -> Generator[CorrelationResult, None, float]:
    adjusted = min(value, 1.0)
    for _ in range(count):
        result = pending.popleft()
        result.adjusted_p_value = adjusted
        yield result
    return adjusted


def adjust_sorted(
    results: Iterable[CorrelationResult],
    n_tests: int,
    method: Union[AdjustmentMethod, int, str] = AdjustmentMethod.BENJAMINI_HOCHBERG,
    buffer_size: int = 1_000_000,
    spill_dir: Optional[Union[str, Path]] = None,
) -> Iterator[CorrelationResult]:
    """
    Adjust a p-value sorted result stream.

    Convenience function for PValueAdjuster.

    Args:
        results: Results sorted by ascending raw p-value.
        n_tests: Number of hypotheses m.
        method: Adjustment method.
        buffer_size: Pending results held in memory before spilling.
        spill_dir: Parent directory for spilled pending results.

    Returns:
        Iterator over the adjusted results.
    """
    adjuster = PValueAdjuster(method, n_tests, buffer_size=buffer_size, spill_dir=spill_dir)
    return adjuster.adjust(results)
