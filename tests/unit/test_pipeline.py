"""Tests for the end-to-end analysis pipeline."""

import pytest
import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests


def _vectors(*rows):
    from ggca_pipeline.ingest import InMemoryDataset, NamedVector

    return InMemoryDataset([NamedVector(name, values) for name, values in rows])


def _as_tuples(results):
    return [
        (r.gene, r.gem, r.cpg_site_id, r.correlation, r.p_value, r.adjusted_p_value)
        for r in results
    ]


class TestGGCAPipeline:
    """Test GGCAPipeline.run."""

    def test_threshold_excludes_weak_pairs(self):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        genes = _vectors(("G1", [1, 2, 3, 4, 5, 6]))
        gems = _vectors(
            ("strong", [2, 4, 6, 8, 10, 12.5]),
            ("weak", [1, -1, 1, -1, 1, -1]),
        )

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.9)).run(genes, gems)

        assert [r.gem for r in result] == ["strong"]
        assert result.total_combinations == 2
        assert result.evaluated_combinations == 1
        assert result.order == "p_value"
        # m counts only the results that passed the threshold
        assert result.results[0].adjusted_p_value == pytest.approx(result.results[0].p_value)

    def test_total_denominator(self):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        genes = _vectors(("G1", [1, 2, 3, 4, 5, 6]))
        gems = _vectors(
            ("strong", [2, 4, 6, 8, 10, 12.5]),
            ("weak", [1, -1, 1, -1, 1, -1]),
        )
        config = AnalysisConfig(
            correlation_threshold=0.9,
            adjustment_method="bonferroni",
            adjustment_denominator="total",
        )

        (result,) = GGCAPipeline(config).run(genes, gems).results
        assert result.adjusted_p_value == pytest.approx(min(1.0, 2 * result.p_value))

    def test_results_sorted_by_p_value(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.0)).run(genes, gems)

        assert len(result) == 24
        p_values = [r.p_value for r in result]
        assert p_values == sorted(p_values)
        expected = multipletests(p_values, method="fdr_bh")[1]
        np.testing.assert_allclose([r.adjusted_p_value for r in result], expected, rtol=1e-12)

    def test_planted_correlations_found(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.8)).run(genes, gems)
        pairs = {(r.gene, r.gem) for r in result}

        assert ("gene_0", "mir_0") in pairs
        assert ("gene_3", "mir_1") in pairs

    def test_keep_top_n_by_abs_correlation(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        full = GGCAPipeline(AnalysisConfig(correlation_threshold=0.0)).run(genes, gems)
        top = GGCAPipeline(AnalysisConfig(correlation_threshold=0.0, keep_top_n=5)).run(genes, gems)

        expected = sorted(full.results, key=lambda r: abs(r.correlation), reverse=True)[:5]
        assert top.order == "abs_correlation"
        assert _as_tuples(top.results) == _as_tuples(expected)
        assert top.evaluated_combinations == full.evaluated_combinations

    def test_keep_top_n_larger_than_results(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.8, keep_top_n=1000)).run(
            genes, gems
        )
        correlations = [abs(r.correlation) for r in result]
        assert correlations == sorted(correlations, reverse=True)

    def test_spilled_sort_matches_in_memory(self, genes, gems, temp_dir):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        in_memory = GGCAPipeline(AnalysisConfig(correlation_threshold=0.0)).run(genes, gems)
        spilled = GGCAPipeline(
            AnalysisConfig(correlation_threshold=0.0, sort_buffer_size=3, spill_dir=temp_dir)
        ).run(genes, gems)

        assert _as_tuples(spilled.results) == _as_tuples(in_memory.results)
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.parametrize("n_workers", [1, 3])
    def test_spill_dir_cleaned_after_failure(self, gene_frame, gem_frame, temp_dir, n_workers):
        from ggca_pipeline import AnalysisConfig, ComputationError, GGCAPipeline
        from ggca_pipeline.ingest import InMemoryDataset

        frame = gene_frame.copy()
        frame.iloc[5] = 1.0
        genes = InMemoryDataset.from_dataframe(frame)
        gems = InMemoryDataset.from_dataframe(gem_frame)
        config = AnalysisConfig(
            correlation_threshold=0.0,
            undefined_policy="raise",
            sort_buffer_size=3,
            spill_dir=temp_dir,
            n_workers=n_workers,
            batch_size=1,
        )

        with pytest.raises(ComputationError):
            GGCAPipeline(config).run(genes, gems)
        assert list(temp_dir.iterdir()) == []

    def test_parallel_matches_serial(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        serial = GGCAPipeline(AnalysisConfig(correlation_threshold=0.2)).run(genes, gems)
        parallel = GGCAPipeline(
            AnalysisConfig(correlation_threshold=0.2, n_workers=3, batch_size=2, queue_size=1)
        ).run(genes, gems)

        assert sorted(_as_tuples(parallel.results)) == sorted(_as_tuples(serial.results))
        assert parallel.total_combinations == serial.total_combinations == 24
        assert parallel.evaluated_combinations == serial.evaluated_combinations

    @pytest.mark.parametrize("method", ["spearman", "kendall"])
    def test_rank_methods(self, genes, gems, method):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        result = GGCAPipeline(
            AnalysisConfig(correlation_method=method, correlation_threshold=0.0)
        ).run(genes, gems)
        assert len(result) == 24
        assert all(-1.0 <= r.correlation <= 1.0 for r in result)

    def test_matched_mode(self, gene_frame):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.ingest import InMemoryDataset

        genes = InMemoryDataset.from_dataframe(gene_frame)
        gems = InMemoryDataset.from_dataframe(gene_frame * 3.0)

        result = GGCAPipeline(AnalysisConfig(is_all_vs_all=False)).run(genes, gems)
        assert result.total_combinations == 6
        assert sorted((r.gene, r.gem) for r in result) == [(g, g) for g in gene_frame.index]

    def test_undefined_statistic_skipped(self):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        genes = _vectors(("G1", [1, 2, 3, 4, 5]))
        gems = _vectors(("flat", [2, 2, 2, 2, 2]), ("linear", [1, 2, 3, 4, 5]))

        result = GGCAPipeline(AnalysisConfig()).run(genes, gems)
        assert result.skipped_combinations == 1
        assert result.total_combinations == 2
        assert [r.gem for r in result] == ["linear"]

    def test_undefined_statistic_raises(self):
        from ggca_pipeline import AnalysisConfig, ComputationError, GGCAPipeline

        genes = _vectors(("G1", [1, 2, 3, 4, 5]))
        gems = _vectors(("flat", [2, 2, 2, 2, 2]))

        with pytest.raises(ComputationError):
            GGCAPipeline(AnalysisConfig(undefined_policy="raise")).run(genes, gems)

    def test_worker_error_propagates(self, gene_frame):
        from ggca_pipeline import AnalysisConfig, ComputationError, GGCAPipeline
        from ggca_pipeline.ingest import InMemoryDataset

        frame = gene_frame.copy()
        frame.iloc[4] = 1.0
        genes = InMemoryDataset.from_dataframe(frame)

        config = AnalysisConfig(undefined_policy="raise", n_workers=3, batch_size=1)
        with pytest.raises(ComputationError):
            GGCAPipeline(config).run(genes, genes)

    def test_empty_dataset(self, genes):
        from ggca_pipeline import GGCAPipeline
        from ggca_pipeline.ingest import InMemoryDataset

        result = GGCAPipeline().run(genes, InMemoryDataset([]))
        assert result.results == []
        assert result.total_combinations == 0
        assert result.evaluated_combinations == 0

    def test_too_few_samples(self):
        from ggca_pipeline import ConfigurationError, GGCAPipeline

        with pytest.raises(ConfigurationError):
            GGCAPipeline().run(_vectors(("G", [1, 2])), _vectors(("M", [2, 1])))

    def test_to_dataframe(self, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.8)).run(genes, gems)
        df = result.to_dataframe()

        assert list(df.columns) == [
            "gene", "gem", "cpg_site_id", "correlation", "p_value", "adjusted_p_value"
        ]
        assert len(df) == len(result)


class TestCorrelateFiles:
    """Test the CSV convenience entry point."""

    def test_correlate(self, gene_csv, gem_csv):
        from ggca_pipeline import correlate

        results, total, evaluated = correlate(gene_csv, gem_csv, correlation_threshold=0.0)

        assert total == 24
        assert evaluated == 24
        assert len(results) == 24

    def test_correlate_matches_in_memory(self, gene_csv, gem_csv, genes, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline, correlate

        results, _, _ = correlate(gene_csv, gem_csv, correlation_method="spearman")
        expected = GGCAPipeline(AnalysisConfig(correlation_method="spearman")).run(genes, gems)

        assert [(r.gene, r.gem) for r in results] == [(r.gene, r.gem) for r in expected]
        np.testing.assert_allclose(
            [r.correlation for r in results], [r.correlation for r in expected]
        )

    def test_methylation_with_collect(self, gene_csv, methylation_csv):
        from ggca_pipeline import correlate

        results, total, _ = correlate(
            gene_csv,
            methylation_csv,
            correlation_threshold=0.0,
            gem_contains_cpg=True,
            collect_gem_dataset=True,
            keep_top_n=3,
        )

        assert total == 48
        assert len(results) == 3
        assert all(r.cpg_site_id.startswith("cg") for r in results)


class TestCollectGemDataset:
    """Test how the GEM dataset is loaded."""

    def test_auto_loads_small_file(self, gem_csv):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.ingest import CsvDataset

        gems = GGCAPipeline(AnalysisConfig())._prepare_gems(CsvDataset(gem_csv))
        assert gems.is_materialized
        assert len(gems) == 4

    def test_auto_streams_large_file(self, gem_csv):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.ingest import CsvDataset

        config = AnalysisConfig(collect_gem_max_mb=0)
        gems = GGCAPipeline(config)._prepare_gems(CsvDataset(gem_csv))
        assert not gems.is_materialized

    def test_explicit_false_streams(self, gem_csv):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.ingest import CsvDataset

        config = AnalysisConfig(collect_gem_dataset=False)
        gems = GGCAPipeline(config)._prepare_gems(CsvDataset(gem_csv))
        assert not gems.is_materialized

    def test_explicit_true_loads(self, gem_csv):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.ingest import CsvDataset

        config = AnalysisConfig(collect_gem_dataset=True, collect_gem_max_mb=0)
        gems = GGCAPipeline(config)._prepare_gems(CsvDataset(gem_csv))
        assert gems.is_materialized

    def test_in_memory_kept(self, gems):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline

        assert GGCAPipeline(AnalysisConfig())._prepare_gems(gems) is gems


class TestResultCSVWriter:
    """Test CSV export."""

    def test_write(self, genes, gems, temp_dir):
        from ggca_pipeline import AnalysisConfig, GGCAPipeline
        from ggca_pipeline.export import ResultCSVWriter

        result = GGCAPipeline(AnalysisConfig(correlation_threshold=0.0)).run(genes, gems)
        path = ResultCSVWriter(temp_dir / "out", chunk_size=5).write(result, "results.csv")

        df = pd.read_csv(path)
        assert len(df) == 24
        assert list(df["gene"]) == [r.gene for r in result]
        assert df["cpg_site_id"].isna().all()

    def test_write_empty(self, temp_dir):
        from ggca_pipeline.export import write_results_csv

        path = write_results_csv([], temp_dir)
        df = pd.read_csv(path)
        assert df.empty
        assert "adjusted_p_value" in df.columns
