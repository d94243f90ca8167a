"""
Output generation.
"""

from ggca_pipeline.export.csv_writer import (
    ResultCSVWriter,
    results_to_frame,
    write_results_csv,
)

__all__ = [
    "ResultCSVWriter",
    "results_to_frame",
    "write_results_csv",
]
