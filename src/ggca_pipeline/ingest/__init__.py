"""
Dataset ingestion.

Gene and GEM datasets are sequences of NamedVector, either held in memory or
streamed from CSV files.
"""

from ggca_pipeline.ingest.base import Dataset, InMemoryDataset, NamedVector
from ggca_pipeline.ingest.csv_source import CsvDataset

__all__ = [
    "Dataset",
    "InMemoryDataset",
    "NamedVector",
    "CsvDataset",
]
