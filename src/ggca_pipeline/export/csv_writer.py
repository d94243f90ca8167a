"""
CSV output writer for correlation results.
"""

from __future__ import annotations

from itertools import islice
from pathlib import Path
from typing import Iterable

import pandas as pd

from ggca_pipeline.core.errors import ResourceError
from ggca_pipeline.correlation.result import RESULT_COLUMNS, CorrelationResult


class ResultCSVWriter:
    """Writes correlation results to CSV files, one row per result."""

    def __init__(
        self,
        output_dir: Path,
        float_format: str = "%.6g",
        chunk_size: int = 100_000,
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.float_format = float_format
        self.chunk_size = max(1, chunk_size)

    def write(
        self,
        results: Iterable[CorrelationResult],
        filename: str = "results.csv",
    ) -> Path:
        """Write results in the order given.

        Parameters
        ----------
        results : iterable of CorrelationResult
            Results (or an AnalysisResult); consumed in chunks
        filename : str
            Output filename

        Returns
        -------
        Path
            Path to written file
        """
        path = self.output_dir / filename
        iterator = iter(results)
        header = True
        try:
            with open(path, "w", newline="") as f:
                while True:
                    chunk = list(islice(iterator, self.chunk_size))
                    if not chunk and not header:
                        break
                    frame = results_to_frame(chunk)
                    frame.to_csv(f, index=False, header=header, float_format=self.float_format)
                    header = False
                    if len(chunk) < self.chunk_size:
                        break
        except OSError as e:
            raise ResourceError(f"Failed to write {path}: {e}") from e
        return path


def results_to_frame(results: Iterable[CorrelationResult]) -> pd.DataFrame:
    """One row per result, in the order given."""
    rows = [
        (r.gene, r.gem, r.cpg_site_id, r.correlation, r.p_value, r.adjusted_p_value)
        for r in results
    ]
    return pd.DataFrame.from_records(rows, columns=RESULT_COLUMNS)


def write_results_csv(
    results: Iterable[CorrelationResult],
    output_dir: Path,
    filename: str = "results.csv",
) -> Path:
    """Convenience function to write a results CSV."""
    writer = ResultCSVWriter(output_dir)
    return writer.write(results, filename)
