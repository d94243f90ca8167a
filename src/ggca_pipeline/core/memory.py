"""
Memory estimation utilities.

Converts memory budgets into external-sort buffer sizes and predicts the
disk footprint of spilled runs.
"""

from __future__ import annotations

from dataclasses import dataclass
import warnings


@dataclass
class MemoryEstimate:
    """Memory estimation results."""

    buffer_gb: float
    """In-memory sort buffer at capacity, in GB."""

    spill_gb: float
    """Disk needed for all spilled runs in the worst case, in GB."""

    n_runs: int
    """Number of spilled runs expected in the worst case."""

    recommended_buffer_size: int
    """Buffer capacity (result count) fitting the available memory."""


class MemoryEstimator:
    """
    Estimates memory requirements of the result aggregator.

    Example:
        >>> estimator = MemoryEstimator(available_gb=4.0, safety_factor=0.8)
        >>> size = estimator.estimate_buffer_size(mean_id_length=12)
        >>> config = AnalysisConfig(sort_buffer_size=size)
    """

    BYTES_PER_FLOAT64 = 8
    BYTES_PER_UINT32 = 4
    # dataclass instance, its __dict__ and three boxed floats
    RESULT_OBJECT_OVERHEAD = 200
    STR_OBJECT_OVERHEAD = 49

    def __init__(
        self,
        available_gb: float = 2.0,
        safety_factor: float = 0.7,
    ):
        """
        Initialize memory estimator.

        Args:
            available_gb: Memory granted to the sort buffer, in GB.
            safety_factor: Fraction of available memory to use (0-1).
        """
        self.available_gb = available_gb
        self.safety_factor = safety_factor

    def _to_gb(self, bytes_: int) -> float:
        """Convert bytes to gigabytes."""
        return bytes_ / (1024**3)

    def bytes_per_result(self, mean_id_length: int = 16, with_cpg: bool = False) -> int:
        """Approximate resident size of one buffered result."""
        n_ids = 3 if with_cpg else 2
        return (
            self.RESULT_OBJECT_OVERHEAD
            + n_ids * (self.STR_OBJECT_OVERHEAD + mean_id_length)
        )

    def encoded_bytes_per_result(self, mean_id_length: int = 16, with_cpg: bool = False) -> int:
        """Size of one result in the spill encoding."""
        n_ids = 3 if with_cpg else 2
        return 2 + n_ids * (self.BYTES_PER_UINT32 + mean_id_length) + 3 * self.BYTES_PER_FLOAT64

    def estimate_buffer_size(
        self,
        mean_id_length: int = 16,
        with_cpg: bool = False,
        min_size: int = 1000,
    ) -> int:
        """
        Largest buffer capacity that fits the memory budget.

        Args:
            mean_id_length: Average identifier length in characters.
            with_cpg: Results carry a CpG site id.
            min_size: Lower bound on the returned capacity.

        Returns:
            Recommended sort buffer size (result count).
        """
        budget = self.available_gb * (1024**3) * self.safety_factor
        size = int(budget / self.bytes_per_result(mean_id_length, with_cpg))

        if size < min_size:
            warnings.warn(
                f"Available memory ({self.available_gb}GB) buffers only {size} results; "
                f"using {min_size}."
            )
            return min_size

        return size

    def estimate(
        self,
        n_combinations: int,
        buffer_size: int,
        mean_id_length: int = 16,
        with_cpg: bool = False,
    ) -> MemoryEstimate:
        """
        Estimate memory and spill footprint for a run.

        Args:
            n_combinations: Upper bound on results entering the aggregator.
            buffer_size: Configured sort buffer capacity.
            mean_id_length: Average identifier length in characters.
            with_cpg: Results carry a CpG site id.

        Returns:
            MemoryEstimate.
        """
        resident = min(n_combinations, buffer_size) * self.bytes_per_result(
            mean_id_length, with_cpg
        )
        n_runs = n_combinations // buffer_size if buffer_size else 0
        spilled = n_runs * buffer_size * self.encoded_bytes_per_result(
            mean_id_length, with_cpg
        )

        return MemoryEstimate(
            buffer_gb=self._to_gb(resident),
            spill_gb=self._to_gb(spilled),
            n_runs=n_runs,
            recommended_buffer_size=self.estimate_buffer_size(mean_id_length, with_cpg),
        )


def buffer_size_for_megabytes(megabytes: float, with_cpg: bool = False) -> int:
    """Convert a sort buffer budget in MB to a result count."""
    estimator = MemoryEstimator(available_gb=megabytes / 1024, safety_factor=1.0)
    return estimator.estimate_buffer_size(with_cpg=with_cpg, min_size=1)
