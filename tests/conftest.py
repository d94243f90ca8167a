"""Pytest configuration and fixtures."""

import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import tempfile


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def gene_frame():
    """Create sample gene expression matrix."""
    np.random.seed(42)
    return pd.DataFrame(
        np.random.randn(6, 15),  # 6 genes, 15 samples
        index=[f"gene_{i}" for i in range(6)],
        columns=[f"sample_{i}" for i in range(15)],
    )


@pytest.fixture
def gem_frame(gene_frame):
    """Create sample GEM matrix, partly driven by the genes."""
    np.random.seed(7)
    noise = np.random.randn(4, 15)
    values = noise.copy()
    values[0] = gene_frame.iloc[0].to_numpy() * 2.0 + 0.1 * noise[0]
    values[1] = -gene_frame.iloc[3].to_numpy() + 0.3 * noise[1]
    return pd.DataFrame(
        values,
        index=[f"mir_{i}" for i in range(4)],
        columns=gene_frame.columns,
    )


@pytest.fixture
def genes(gene_frame):
    """In-memory gene dataset."""
    from ggca_pipeline.ingest import InMemoryDataset

    return InMemoryDataset.from_dataframe(gene_frame)


@pytest.fixture
def gems(gem_frame):
    """In-memory GEM dataset."""
    from ggca_pipeline.ingest import InMemoryDataset

    return InMemoryDataset.from_dataframe(gem_frame)


@pytest.fixture
def gene_csv(temp_dir, gene_frame):
    """Gene dataset written as CSV."""
    path = temp_dir / "genes.csv"
    gene_frame.to_csv(path, index_label="gene")
    return path


@pytest.fixture
def gem_csv(temp_dir, gem_frame):
    """GEM dataset written as CSV."""
    path = temp_dir / "gems.csv"
    gem_frame.to_csv(path, index_label="gem")
    return path


@pytest.fixture
def methylation_csv(temp_dir, gem_frame):
    """GEM dataset with two CpG sites per GEM."""
    rows = []
    for gem, values in gem_frame.iterrows():
        for site in range(2):
            rows.append([gem, f"cg{gem[-1]}{site:07d}", *(values.to_numpy() + site)])
    frame = pd.DataFrame(rows, columns=["gem", "cpg_site_id", *gem_frame.columns])

    path = temp_dir / "methylation.csv"
    frame.to_csv(path, index=False)
    return path

