"""
Disk-backed CSV dataset.

Rows are streamed from disk with pandas in chunks, so a dataset is re-read on
every iteration instead of being held in memory.

File layout: the header row holds sample names; the first column is the
identifier; when the file carries CpG annotation the second column is the
CpG site id; every remaining column is a numeric sample.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

import numpy as np
import pandas as pd

from ggca_pipeline.core.errors import ConfigurationError
from ggca_pipeline.ingest.base import Dataset, NamedVector

logger = logging.getLogger(__name__)


class CsvDataset(Dataset):
    """
    Streams NamedVector rows from a CSV/TSV file.

    Example:
        >>> gems = CsvDataset("methylation_gem.csv", contains_cpg=True)
        >>> len(gems)
        1505
        >>> next(iter(gems)).probe_id
        'cg00000029'
    """

    def __init__(
        self,
        path: Union[str, Path],
        contains_cpg: bool = False,
        sep: Optional[str] = None,
        chunksize: int = 10000,
    ):
        """
        Initialize CSV dataset.

        Args:
            path: Input file path.
            contains_cpg: Second column holds the CpG site id.
            sep: Field separator (tab for .tsv/.txt files, comma otherwise).
            chunksize: Rows read per pandas chunk.
        """
        self.path = Path(path)
        if not self.path.exists():
            raise ConfigurationError(f"Dataset file not found: {self.path}")

        self.contains_cpg = contains_cpg
        if sep is None:
            sep = "\t" if self.path.suffix.lower() in (".tsv", ".txt") else ","
        self.sep = sep
        self.chunksize = chunksize

        self._n_meta = 2 if contains_cpg else 1
        self._sample_names = self._read_header()
        self._n_rows: Optional[int] = None

    def _read_header(self) -> list[str]:
        try:
            columns = pd.read_csv(self.path, sep=self.sep, nrows=0).columns
        except pd.errors.EmptyDataError:
            raise ConfigurationError(f"Dataset file is empty: {self.path}") from None

        self._columns = list(columns)
        if len(columns) <= self._n_meta:
            raise ConfigurationError(
                f"{self.path} has {len(columns)} columns; expected at least "
                f"{self._n_meta + 1} (identifier{', CpG site id' if self.contains_cpg else ''}"
                " and samples)"
            )
        return [str(c) for c in columns[self._n_meta:]]

    def _iter_chunks(self, **kwargs) -> Iterator[pd.DataFrame]:
        return pd.read_csv(self.path, sep=self.sep, chunksize=self.chunksize, **kwargs)

    def __len__(self) -> int:
        if self._n_rows is None:
            self._n_rows = sum(len(chunk) for chunk in self._iter_chunks(usecols=[0]))
            logger.debug("Counted %d rows in %s", self._n_rows, self.path)
        return self._n_rows

    def __iter__(self) -> Iterator[NamedVector]:
        id_columns = {name: str for name in self._columns[: self._n_meta]}
        for chunk in self._iter_chunks(dtype=id_columns):
            identifiers = chunk.iloc[:, 0].astype(str).to_numpy()
            probes = (
                chunk.iloc[:, 1].astype(str).to_numpy()
                if self.contains_cpg
                else [None] * len(chunk)
            )
            values = (
                chunk.iloc[:, self._n_meta:]
                .apply(pd.to_numeric, errors="coerce")
                .to_numpy(dtype=np.float64)
            )
            for identifier, probe, row in zip(identifiers, probes, values):
                yield NamedVector(identifier, row, probe)

    @property
    def sample_names(self) -> list[str]:
        return self._sample_names

    @property
    def n_samples(self) -> int:
        return len(self._sample_names)

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size

    def __repr__(self) -> str:
        return f"CsvDataset(path={str(self.path)!r}, contains_cpg={self.contains_cpg})"
