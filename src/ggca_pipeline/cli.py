"""
Command-line interface for ggca-pipeline.

Usage:
    ggca-pipeline correlate --gene mrna.csv --gem mirna.csv --method spearman --top 100
    ggca-pipeline correlate --gene mrna.csv --gem methylation.csv --gem-contains-cpg -o results/
    ggca-pipeline run --config analysis.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from ggca_pipeline.core.errors import ConfigurationError, GGCAError

logger = logging.getLogger("ggca_pipeline")


def _setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=fmt, handlers=handlers)


def _run_and_write(config, gene_source: Any, gem_source: Any, output: Optional[str]) -> int:
    """Run an analysis on CSV inputs and write (or log) the results."""
    from ggca_pipeline.export import ResultCSVWriter
    from ggca_pipeline.pipeline import GGCAPipeline

    genes = _open_dataset(gene_source)
    gems = _open_dataset(gem_source, contains_cpg=config.gem_contains_cpg)

    result = GGCAPipeline(config).run(genes, gems)
    logger.info(
        "%d results (%d combinations, %d passed the threshold, %d skipped)",
        len(result),
        result.total_combinations,
        result.evaluated_combinations,
        result.skipped_combinations,
    )

    if output:
        path = ResultCSVWriter(Path(output)).write(result, "results.csv")
        logger.info("Results saved to %s", path)
    else:
        for correlation_result in result.results[:10]:
            logger.info("%s", correlation_result)
    return 0


def _open_dataset(source: Any, contains_cpg: bool = False):
    """Build a CSV dataset from a path or a {path, sep} mapping."""
    from ggca_pipeline.ingest import CsvDataset

    if isinstance(source, dict):
        if "path" not in source:
            raise ConfigurationError(f"Dataset entry needs a 'path': {source}")
        return CsvDataset(source["path"], contains_cpg=contains_cpg, sep=source.get("sep"))
    if not source:
        raise ConfigurationError("Missing dataset path")
    return CsvDataset(source, contains_cpg=contains_cpg)


def cmd_correlate(args: argparse.Namespace) -> int:
    """Correlate a gene file with a GEM file."""
    from ggca_pipeline.core.config import AnalysisConfig
    from ggca_pipeline.core.memory import buffer_size_for_megabytes

    if args.sort_buffer_mb is not None:
        sort_buffer_size = buffer_size_for_megabytes(
            args.sort_buffer_mb, with_cpg=args.gem_contains_cpg
        )
    else:
        sort_buffer_size = args.sort_buffer

    config = AnalysisConfig(
        correlation_method=args.method,
        adjustment_method=args.adjustment,
        correlation_threshold=args.threshold,
        is_all_vs_all=not args.matched,
        keep_top_n=args.top,
        sort_buffer_size=sort_buffer_size,
        gem_contains_cpg=args.gem_contains_cpg,
        collect_gem_dataset=args.collect_gem,
        n_workers=args.workers,
        spill_dir=args.spill_dir,
    )
    return _run_and_write(config, args.gene, args.gem, args.output)


def cmd_run(args: argparse.Namespace) -> int:
    """Run an analysis from a YAML file."""
    import yaml
    from ggca_pipeline.core.config import AnalysisConfig

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Config file not found: %s", config_path)
        return 1

    with open(config_path) as f:
        analysis_def = yaml.safe_load(f) or {}

    config = AnalysisConfig.from_dict(analysis_def.get("config") or {})
    output = args.output or analysis_def.get("output")
    return _run_and_write(config, analysis_def.get("gene"), analysis_def.get("gem"), output)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ggca-pipeline",
        description="Gene x gene-modulator correlation analysis with p-value adjustment",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Log file path")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- correlate ---
    p_corr = subparsers.add_parser("correlate", help="Correlate a gene file with a GEM file")
    p_corr.add_argument("--gene", required=True, help="Gene expression CSV file")
    p_corr.add_argument("--gem", required=True, help="GEM CSV file")
    p_corr.add_argument("--method", default="pearson",
                        choices=["pearson", "spearman", "kendall"])
    p_corr.add_argument("--adjustment", default="bh", choices=["bh", "by", "bonferroni"])
    p_corr.add_argument("--threshold", type=float, default=0.5,
                        help="Minimum |correlation| to keep")
    p_corr.add_argument("--matched", action="store_true",
                        help="Pair rows by position instead of all-vs-all")
    p_corr.add_argument("--gem-contains-cpg", action="store_true",
                        help="Second GEM column holds CpG site ids")
    p_corr.add_argument("--top", type=int, help="Keep the N results with highest |correlation|")
    buffer = p_corr.add_mutually_exclusive_group()
    buffer.add_argument("--sort-buffer", type=int, default=2_000_000,
                        help="Results held in memory before spilling a sorted run")
    buffer.add_argument("--sort-buffer-mb", type=float, help="Sort buffer budget in MB")
    collect = p_corr.add_mutually_exclusive_group()
    collect.add_argument("--collect-gem", dest="collect_gem", action="store_const", const=True,
                         help="Load the GEM file in memory")
    collect.add_argument("--stream-gem", dest="collect_gem", action="store_const", const=False,
                         help="Re-read the GEM file for every gene")
    p_corr.add_argument("--workers", type=int, default=1)
    p_corr.add_argument("--spill-dir", help="Directory for temporary sort runs")
    p_corr.add_argument("--output", "-o", help="Output directory")
    p_corr.set_defaults(func=cmd_correlate, collect_gem=None)

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run an analysis from a YAML file")
    p_run.add_argument("--config", required=True, help="Analysis YAML file")
    p_run.add_argument("--output", "-o", help="Output directory")
    p_run.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return args.func(args)
    except GGCAError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
