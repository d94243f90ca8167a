"""
Parallel evaluation of gene partitions.

Genes are split into contiguous slices, one thread per slice. Workers push
result batches into a bounded queue that the calling thread drains into the
aggregator, so a slow aggregator (spilling runs to disk) throttles workers
instead of letting batches pile up in memory.
"""

from __future__ import annotations

import concurrent.futures
import logging
import queue
import threading

from ggca_pipeline.aggregation.results import ResultAggregator, ResultBatch
from ggca_pipeline.combinations.generator import CombinationGenerator
from ggca_pipeline.orchestration.evaluator import BatchEvaluator

logger = logging.getLogger(__name__)


class ParallelEvaluator:
    """
    Evaluates every combination of a generator into an aggregator.

    With ``n_workers=1`` (or a single gene) evaluation runs on the calling
    thread.

    Example:
        >>> parallel = ParallelEvaluator(evaluator, n_workers=4, queue_size=64)
        >>> parallel.run(generator, aggregator)
    """

    poll_interval = 0.05

    def __init__(
        self,
        evaluator: BatchEvaluator,
        n_workers: int = 1,
        queue_size: int = 64,
    ):
        """
        Initialize parallel evaluator.

        Args:
            evaluator: Batch evaluator shared by all workers.
            n_workers: Worker threads.
            queue_size: Batches buffered between workers and the aggregator.
        """
        self.evaluator = evaluator
        self.n_workers = max(1, n_workers)
        self.queue_size = max(1, queue_size)

    def run(self, generator: CombinationGenerator, aggregator: ResultAggregator) -> None:
        """
        Evaluate all combinations.

        Args:
            generator: Combination generator.
            aggregator: Receives every batch.

        Raises:
            The first error raised by any worker or by the aggregator.
        """
        splits = generator.partitions(self.n_workers)

        if len(splits) <= 1:
            logger.info("Evaluating %d combinations serially", generator.total_combinations())
            for batch in self.evaluator.evaluate(generator):
                aggregator.add_batch(batch)
            return

        logger.info(
            "Evaluating %d combinations across %d workers",
            generator.total_combinations(),
            len(splits),
        )

        batches: queue.Queue[ResultBatch] = queue.Queue(maxsize=self.queue_size)
        stop_event = threading.Event()

        with concurrent.futures.ThreadPoolExecutor(max_workers=len(splits)) as executor:
            futures = {
                executor.submit(
                    self._run_partition, generator, start, stop, batches, stop_event
                ): (start, stop)
                for start, stop in splits
            }
            try:
                self._drain(futures, batches, aggregator)
            except BaseException:
                stop_event.set()
                raise

            for future in concurrent.futures.as_completed(futures):
                start, stop = futures[future]
                error = future.exception()
                if error is not None:
                    logger.error("Worker for genes [%d, %d) failed: %s", start, stop, error)
                    raise error

    def _run_partition(
        self,
        generator: CombinationGenerator,
        start: int,
        stop: int,
        batches: queue.Queue,
        stop_event: threading.Event,
    ) -> None:
        """Evaluate one gene slice, pushing batches until done or stopped."""
        try:
            combinations = generator.iter_partition(start, stop)
            for batch in self.evaluator.evaluate(combinations, stop_event):
                if not self._put(batches, batch, stop_event):
                    return
        except BaseException:
            stop_event.set()
            raise

    def _put(self, batches: queue.Queue, batch: ResultBatch, stop_event: threading.Event) -> bool:
        while not stop_event.is_set():
            try:
                batches.put(batch, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _drain(
        self,
        futures: dict,
        batches: queue.Queue,
        aggregator: ResultAggregator,
    ) -> None:
        """Feed queued batches to the aggregator until every worker is done."""
        while True:
            try:
                batch = batches.get(timeout=self.poll_interval)
            except queue.Empty:
                # a worker may have queued its last batch just before finishing
                if all(future.done() for future in futures) and batches.empty():
                    return
                continue
            aggregator.add_batch(batch)
