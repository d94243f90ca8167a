"""
Gene x GEM combination generation.

All-vs-all mode pairs every gene with every GEM row (each CpG row of an
annotated GEM dataset is its own combination); matched mode pairs rows by
position.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Optional

from ggca_pipeline.core.errors import ConfigurationError
from ggca_pipeline.ingest.base import Dataset, NamedVector

logger = logging.getLogger(__name__)


@dataclass
class Combination:
    """One gene/GEM pair to correlate."""

    gene: NamedVector
    gem: NamedVector
    cpg_site_id: Optional[str] = None


class CombinationGenerator:
    """
    Lazy stream of gene/GEM combinations.

    With a disk-backed GEM dataset the GEM file is re-scanned once per gene
    in all-vs-all mode; materialize it first to trade memory for I/O.

    Example:
        >>> generator = CombinationGenerator(genes, gems, is_all_vs_all=True)
        >>> generator.total_combinations()
        179400
        >>> for combination in generator:
        ...     r, p = correlator.correlate(combination.gene.values, combination.gem.values)
    """

    def __init__(
        self,
        genes: Dataset,
        gems: Dataset,
        is_all_vs_all: bool = True,
        gem_contains_cpg: bool = False,
    ):
        """
        Initialize generator and check that both datasets are compatible.

        Args:
            genes: Gene dataset (outer loop).
            gems: GEM dataset (inner loop).
            is_all_vs_all: Cartesian product instead of positional pairing.
            gem_contains_cpg: Take the CpG site id from each GEM row.
        """
        self.genes = genes
        self.gems = gems
        self.is_all_vs_all = is_all_vs_all
        self.gem_contains_cpg = gem_contains_cpg

        self._n_genes = len(genes)
        self._n_gems = len(gems)
        self._validate()

    def _validate(self) -> None:
        if not self.is_all_vs_all and self._n_genes != self._n_gems:
            raise ConfigurationError(
                f"Matched pairing needs datasets of equal length, got {self._n_genes} "
                f"genes and {self._n_gems} GEMs"
            )

        if self._n_genes == 0 or self._n_gems == 0:
            return

        if self.genes.n_samples != self.gems.n_samples:
            raise ConfigurationError(
                f"Gene dataset has {self.genes.n_samples} samples but GEM dataset "
                f"has {self.gems.n_samples}"
            )

        gene_samples = self.genes.sample_names
        gem_samples = self.gems.sample_names
        if gene_samples is not None and gem_samples is not None and gene_samples != gem_samples:
            raise ConfigurationError(
                "Gene and GEM datasets have different samples (names or order differ)"
            )

    @property
    def n_genes(self) -> int:
        return self._n_genes

    @property
    def n_samples(self) -> int:
        """Samples per vector (0 when a dataset is empty)."""
        if self._n_genes == 0 or self._n_gems == 0:
            return 0
        return self.genes.n_samples

    def total_combinations(self) -> int:
        """Combinations generated before any thresholding."""
        if self.is_all_vs_all:
            return self._n_genes * self._n_gems
        return self._n_genes

    def __iter__(self) -> Iterator[Combination]:
        return self.iter_partition(0, self._n_genes)

    def iter_partition(self, start: int, stop: int) -> Iterator[Combination]:
        """
        Combinations for the genes at positions [start, stop).

        Args:
            start: First gene position.
            stop: Gene position after the last one.

        Yields:
            Combination for each gene/GEM pair of the slice.
        """
        if self.is_all_vs_all:
            for gene in self.genes.iter_range(start, stop):
                for gem in self.gems:
                    yield self._combine(gene, gem)
        else:
            pairs = zip(self.genes.iter_range(start, stop), self.gems.iter_range(start, stop))
            for gene, gem in pairs:
                yield self._combine(gene, gem)

    def _combine(self, gene: NamedVector, gem: NamedVector) -> Combination:
        cpg_site_id = gem.probe_id if self.gem_contains_cpg else None
        return Combination(gene, gem, cpg_site_id)

    def partitions(self, n_parts: int) -> list[tuple[int, int]]:
        """
        Split gene positions into contiguous slices.

        Args:
            n_parts: Desired number of slices.

        Returns:
            List of (start, stop) gene ranges covering every gene once.
        """
        if self._n_genes == 0:
            return []
        per_part = math.ceil(self._n_genes / max(1, n_parts))
        return [
            (start, min(start + per_part, self._n_genes))
            for start in range(0, self._n_genes, per_part)
        ]

    def __repr__(self) -> str:
        mode = "all-vs-all" if self.is_all_vs_all else "matched"
        return (
            f"CombinationGenerator({mode}, genes={self._n_genes}, gems={self._n_gems}, "
            f"combinations={self.total_combinations()})"
        )
