"""
Base interfaces for datasets.

Defines the NamedVector row type and the abstract Dataset interface that the
combination generator consumes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from itertools import islice
from typing import Iterable, Iterator, Optional

import numpy as np


@dataclass
class NamedVector:
    """
    One dataset row: an identifier and its samples.

    Index i in ``values`` refers to the same sample in every vector of an
    analysis.
    """

    identifier: str
    """Gene or GEM name."""

    values: np.ndarray
    """Sample values (float64)."""

    probe_id: Optional[str] = None
    """CpG site id when the row is an annotated methylation probe."""

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=np.float64)

    def __len__(self) -> int:
        return self.values.shape[0]


class Dataset(ABC):
    """
    Abstract base class for gene and GEM datasets.

    A dataset is a restartable ordered sequence of NamedVector: every call
    to ``iter()`` starts again from the first row.

    Example:
        >>> genes = CsvDataset("mRNA.csv")
        >>> for vector in genes:
        ...     print(vector.identifier, len(vector))
    """

    @abstractmethod
    def __len__(self) -> int:
        """Number of rows."""
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[NamedVector]:
        """Iterate over rows from the start."""
        ...

    @property
    def sample_names(self) -> Optional[list[str]]:
        """Sample (column) names, None when unknown."""
        return None

    @property
    @abstractmethod
    def n_samples(self) -> int:
        """Samples per row."""
        ...

    @property
    def is_materialized(self) -> bool:
        """True when rows are held in memory."""
        return False

    @property
    def size_bytes(self) -> Optional[int]:
        """Size of the backing storage, None when not disk-backed."""
        return None

    def iter_range(self, start: int, stop: int) -> Iterator[NamedVector]:
        """Iterate over rows with positions in [start, stop)."""
        return islice(iter(self), start, stop)

    def materialize(self) -> "InMemoryDataset":
        """Load every row in memory."""
        return InMemoryDataset(list(self), sample_names=self.sample_names)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_rows={len(self)}, n_samples={self.n_samples})"


class InMemoryDataset(Dataset):
    """
    Fully materialized dataset with random access.

    Example:
        >>> genes = InMemoryDataset([
        ...     NamedVector("GATA1", [1.0, 2.0, 3.0]),
        ...     NamedVector("TP53", [0.5, 0.1, 0.9]),
        ... ])
    """

    def __init__(
        self,
        vectors: Iterable[NamedVector],
        sample_names: Optional[list[str]] = None,
    ):
        self._vectors = list(vectors)
        self._sample_names = list(sample_names) if sample_names is not None else None

    @classmethod
    def from_dataframe(
        cls,
        df,
        probe_ids: Optional[Iterable[str]] = None,
    ) -> "InMemoryDataset":
        """Build from a (rows x samples) DataFrame indexed by identifier."""
        probes = list(probe_ids) if probe_ids is not None else [None] * len(df)
        vectors = [
            NamedVector(str(identifier), row, probe)
            for identifier, row, probe in zip(df.index, df.to_numpy(dtype=np.float64), probes)
        ]
        return cls(vectors, sample_names=[str(c) for c in df.columns])

    def __len__(self) -> int:
        return len(self._vectors)

    def __iter__(self) -> Iterator[NamedVector]:
        return iter(self._vectors)

    def __getitem__(self, index: int) -> NamedVector:
        return self._vectors[index]

    @property
    def sample_names(self) -> Optional[list[str]]:
        return self._sample_names

    @property
    def n_samples(self) -> int:
        if self._vectors:
            return len(self._vectors[0])
        return len(self._sample_names) if self._sample_names is not None else 0

    @property
    def is_materialized(self) -> bool:
        return True

    def iter_range(self, start: int, stop: int) -> Iterator[NamedVector]:
        return iter(self._vectors[start:stop])

    def materialize(self) -> "InMemoryDataset":
        return self
