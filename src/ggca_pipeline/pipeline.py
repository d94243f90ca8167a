"""
Main pipeline class that runs a gene x GEM correlation analysis end to end.
"""

from __future__ import annotations

import heapq
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import pandas as pd

from ggca_pipeline.adjustment.fdr import adjust_sorted
from ggca_pipeline.aggregation.results import ResultAggregator, passes_threshold
from ggca_pipeline.combinations.generator import CombinationGenerator
from ggca_pipeline.core.config import AdjustmentMethod, AnalysisConfig, CorrelationMethod
from ggca_pipeline.core.memory import MemoryEstimator
from ggca_pipeline.correlation.methods import get_correlator
from ggca_pipeline.correlation.result import CorrelationResult
from ggca_pipeline.export.csv_writer import results_to_frame
from ggca_pipeline.ingest.base import Dataset
from ggca_pipeline.ingest.csv_source import CsvDataset
from ggca_pipeline.orchestration.evaluator import BatchEvaluator
from ggca_pipeline.orchestration.parallel import ParallelEvaluator

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Result of one analysis run."""

    results: list[CorrelationResult] = field(default_factory=list)
    """Adjusted results that passed the threshold."""

    total_combinations: int = 0
    """Combinations generated before thresholding."""

    evaluated_combinations: int = 0
    """Combinations that passed the threshold."""

    skipped_combinations: int = 0
    """Combinations with an undefined statistic."""

    order: str = "p_value"
    """"p_value" (ascending raw p-value) or "abs_correlation" (descending |r|)."""

    elapsed_seconds: float = 0.0

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[CorrelationResult]:
        return iter(self.results)

    def to_dataframe(self) -> pd.DataFrame:
        """Results as a DataFrame with one row per result, in result order."""
        return results_to_frame(self.results)


class GGCAPipeline:
    """Correlates every gene/GEM combination and adjusts the p-values.

    Example:
        >>> from ggca_pipeline import GGCAPipeline, AnalysisConfig
        >>> from ggca_pipeline.ingest import CsvDataset
        >>>
        >>> config = AnalysisConfig(correlation_method="spearman", keep_top_n=100)
        >>> pipeline = GGCAPipeline(config)
        >>> result = pipeline.run(CsvDataset("mrna.csv"), CsvDataset("mirna.csv"))
        >>> result.to_dataframe().head()
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """Initialize pipeline.

        Parameters
        ----------
        config : AnalysisConfig, optional
            Analysis configuration (defaults when omitted)
        """
        self.config = config or AnalysisConfig()

    def run(self, genes: Dataset, gems: Dataset) -> AnalysisResult:
        """Run the analysis.

        Parameters
        ----------
        genes : Dataset
            Gene expression dataset (outer loop)
        gems : Dataset
            Gene-modulator dataset (miRNA, CNA or methylation)

        Returns
        -------
        AnalysisResult
            Adjusted results, counts and ordering

        Raises
        ------
        GGCAError
            On any configuration, computation or resource failure; no partial
            result is returned
        """
        config = self.config
        start_time = time.time()

        gems = self._prepare_gems(gems)
        generator = CombinationGenerator(
            genes,
            gems,
            is_all_vs_all=config.is_all_vs_all,
            gem_contains_cpg=config.gem_contains_cpg,
        )
        total = generator.total_combinations()
        logger.info(
            "Starting %s analysis: %r (threshold=%s, adjustment=%s)",
            config.correlation_method,
            generator,
            config.correlation_threshold,
            config.adjustment_method,
        )

        if total == 0:
            logger.info("No combinations to evaluate")
            return AnalysisResult(elapsed_seconds=time.time() - start_time)

        estimate = MemoryEstimator().estimate(
            total, config.sort_buffer_size, with_cpg=config.gem_contains_cpg
        )
        logger.debug(
            "Sort buffer up to %.2f GB; worst case %d spilled runs (%.2f GB)",
            estimate.buffer_gb,
            estimate.n_runs,
            estimate.spill_gb,
        )

        correlator = get_correlator(config.correlation_method, generator.n_samples)
        evaluator = BatchEvaluator(
            correlator,
            config.correlation_threshold,
            undefined_policy=config.undefined_policy,
            batch_size=config.batch_size,
        )
        parallel = ParallelEvaluator(
            evaluator, n_workers=config.n_workers, queue_size=config.queue_size
        )

        with ResultAggregator(
            config.correlation_threshold,
            buffer_size=config.sort_buffer_size,
            spill_dir=config.spill_dir,
        ) as aggregator:
            parallel.run(generator, aggregator)
            logger.info(
                "Evaluated %d combinations: %d passed the threshold, %d skipped, "
                "%d sorted runs spilled",
                aggregator.total_combinations,
                aggregator.evaluated_combinations,
                aggregator.skipped_combinations,
                aggregator.n_runs,
            )

            if config.adjustment_denominator == "total":
                n_tests = total
            else:
                n_tests = aggregator.evaluated_combinations

            adjusted = adjust_sorted(
                aggregator.sorted(),
                n_tests,
                method=config.adjustment_method,
                buffer_size=config.sort_buffer_size,
                spill_dir=config.spill_dir,
            )
            kept = (
                r for r in adjusted if passes_threshold(r, config.correlation_threshold)
            )

            if config.keep_top_n is not None:
                results = heapq.nlargest(
                    config.keep_top_n, kept, key=CorrelationResult.abs_correlation
                )
                order = "abs_correlation"
            else:
                results = list(kept)
                order = "p_value"

            result = AnalysisResult(
                results=results,
                total_combinations=aggregator.total_combinations,
                evaluated_combinations=aggregator.evaluated_combinations,
                skipped_combinations=aggregator.skipped_combinations,
                order=order,
            )

        result.elapsed_seconds = time.time() - start_time
        logger.info(
            "Analysis finished in %.1fs with %d results", result.elapsed_seconds, len(result)
        )
        return result

    def _prepare_gems(self, gems: Dataset) -> Dataset:
        """Apply the collect_gem_dataset policy."""
        collect = self.config.collect_gem_dataset
        if collect is None and gems.size_bytes is not None:
            limit = self.config.collect_gem_max_mb * 1024**2
            collect = gems.size_bytes <= limit
            logger.debug(
                "GEM file is %d bytes (limit %d); %s",
                gems.size_bytes, limit, "loading in memory" if collect else "streaming",
            )
        if collect and not gems.is_materialized:
            logger.info("Loading GEM dataset in memory")
            return gems.materialize()
        if collect is False and gems.is_materialized:
            logger.debug("GEM dataset is already in memory; keeping it")
        return gems


def correlate(
    gene_file_path: Union[str, Path],
    gem_file_path: Union[str, Path],
    correlation_method: Union[CorrelationMethod, int, str] = CorrelationMethod.PEARSON,
    correlation_threshold: float = 0.5,
    sort_buffer_size: int = 2_000_000,
    adjustment_method: Union[AdjustmentMethod, int, str] = AdjustmentMethod.BENJAMINI_HOCHBERG,
    is_all_vs_all: bool = True,
    gem_contains_cpg: bool = False,
    collect_gem_dataset: Optional[bool] = None,
    keep_top_n: Optional[int] = None,
    **kwargs,
) -> tuple[list[CorrelationResult], int, int]:
    """Correlate two CSV files.

    Convenience function for GGCAPipeline with CSV-backed datasets.

    Parameters
    ----------
    gene_file_path : str or Path
        Gene expression file (identifier column, then samples)
    gem_file_path : str or Path
        GEM file (identifier column, optional CpG column, then samples)
    correlation_method, correlation_threshold, sort_buffer_size,
    adjustment_method, is_all_vs_all, gem_contains_cpg, collect_gem_dataset,
    keep_top_n
        See AnalysisConfig
    **kwargs
        Other AnalysisConfig fields (n_workers, spill_dir, ...)

    Returns
    -------
    tuple
        (results, total_combinations, evaluated_combinations)
    """
    config = AnalysisConfig(
        correlation_method=correlation_method,
        adjustment_method=adjustment_method,
        correlation_threshold=correlation_threshold,
        is_all_vs_all=is_all_vs_all,
        keep_top_n=keep_top_n,
        sort_buffer_size=sort_buffer_size,
        gem_contains_cpg=gem_contains_cpg,
        collect_gem_dataset=collect_gem_dataset,
        **kwargs,
    )
    genes = CsvDataset(gene_file_path)
    gems = CsvDataset(gem_file_path, contains_cpg=gem_contains_cpg)

    result = GGCAPipeline(config).run(genes, gems)
    return result.results, result.total_combinations, result.evaluated_combinations
