"""
Evaluation of combination streams into thresholded result batches.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Iterator, Optional

from ggca_pipeline.aggregation.results import ResultBatch, passes_threshold
from ggca_pipeline.combinations.generator import Combination
from ggca_pipeline.core.errors import ComputationError
from ggca_pipeline.correlation.base import Correlator
from ggca_pipeline.correlation.result import CorrelationResult

logger = logging.getLogger(__name__)


def evaluate_combination(correlator: Correlator, combination: Combination) -> CorrelationResult:
    """Correlate one combination into a result without adjusted p-value."""
    correlation, p_value = correlator.correlate(
        combination.gene.values, combination.gem.values
    )
    return CorrelationResult(
        gene=combination.gene.identifier,
        gem=combination.gem.identifier,
        cpg_site_id=combination.cpg_site_id,
        correlation=correlation,
        p_value=p_value,
    )


class BatchEvaluator:
    """
    Turns combinations into batches of results that pass the threshold.

    Undefined statistics (constant vectors) are counted as skipped under the
    ``"skip"`` policy and abort the run under ``"raise"``.

    Example:
        >>> evaluator = BatchEvaluator(get_correlator("pearson", 20), threshold=0.5)
        >>> for batch in evaluator.evaluate(generator):
        ...     aggregator.add_batch(batch)
    """

    def __init__(
        self,
        correlator: Correlator,
        correlation_threshold: float,
        undefined_policy: str = "skip",
        batch_size: int = 1000,
    ):
        """
        Initialize evaluator.

        Args:
            correlator: Correlator shared by every combination.
            correlation_threshold: Inclusive lower bound on |correlation|.
            undefined_policy: "skip" or "raise".
            batch_size: Combinations evaluated per emitted batch.
        """
        self.correlator = correlator
        self.correlation_threshold = correlation_threshold
        self.undefined_policy = undefined_policy
        self.batch_size = max(1, batch_size)

    def evaluate(
        self,
        combinations: Iterable[Combination],
        stop_event: Optional[threading.Event] = None,
    ) -> Iterator[ResultBatch]:
        """
        Evaluate combinations lazily.

        Args:
            combinations: Combination stream (usually a generator partition).
            stop_event: Checked before each batch; set means abandon the stream.

        Yields:
            ResultBatch for every ``batch_size`` combinations (the last may be
            smaller).
        """
        batch = ResultBatch()
        for combination in combinations:
            if batch.n_total == 0 and stop_event is not None and stop_event.is_set():
                return

            batch.n_total += 1
            try:
                result = evaluate_combination(self.correlator, combination)
            except ComputationError:
                if self.undefined_policy == "raise":
                    raise
                logger.debug(
                    "Skipping %s/%s: undefined statistic",
                    combination.gene.identifier,
                    combination.gem.identifier,
                )
                batch.n_skipped += 1
            else:
                if passes_threshold(result, self.correlation_threshold):
                    batch.results.append(result)

            if batch.n_total >= self.batch_size:
                yield batch
                batch = ResultBatch()

        if batch.n_total:
            yield batch
