"""
Analysis configuration management.

Provides an immutable dataclass-based configuration with validation and
serialization (dict, JSON, YAML, environment).
"""

from dataclasses import dataclass, fields, asdict
from enum import Enum
from pathlib import Path
from typing import Optional, Literal, Any, Union
import json
import os

from ggca_pipeline.core.errors import ConfigurationError


class CorrelationMethod(Enum):
    """Correlation test used for every combination."""

    SPEARMAN = 1
    KENDALL = 2
    PEARSON = 3

    def __str__(self) -> str:
        return self.name.capitalize()


class AdjustmentMethod(Enum):
    """Multiple-testing correction applied to the sorted raw p-values."""

    BENJAMINI_HOCHBERG = 1
    BENJAMINI_YEKUTIELI = 2
    BONFERRONI = 3

    def __str__(self) -> str:
        return self.name.replace("_", "-").title()


_CORRELATION_ALIASES = {
    "pearson": CorrelationMethod.PEARSON,
    "spearman": CorrelationMethod.SPEARMAN,
    "kendall": CorrelationMethod.KENDALL,
}

_ADJUSTMENT_ALIASES = {
    "bh": AdjustmentMethod.BENJAMINI_HOCHBERG,
    "fdr_bh": AdjustmentMethod.BENJAMINI_HOCHBERG,
    "benjamini_hochberg": AdjustmentMethod.BENJAMINI_HOCHBERG,
    "benjamini-hochberg": AdjustmentMethod.BENJAMINI_HOCHBERG,
    "by": AdjustmentMethod.BENJAMINI_YEKUTIELI,
    "fdr_by": AdjustmentMethod.BENJAMINI_YEKUTIELI,
    "benjamini_yekutieli": AdjustmentMethod.BENJAMINI_YEKUTIELI,
    "benjamini-yekutieli": AdjustmentMethod.BENJAMINI_YEKUTIELI,
    "bonferroni": AdjustmentMethod.BONFERRONI,
}


def parse_correlation_method(
    value: Union[CorrelationMethod, int, str],
) -> CorrelationMethod:
    """Resolve an enum member, numeric code or name to a CorrelationMethod."""
    return _coerce_enum(value, CorrelationMethod, _CORRELATION_ALIASES)


def parse_adjustment_method(
    value: Union[AdjustmentMethod, int, str],
) -> AdjustmentMethod:
    """Resolve an enum member, numeric code or name to an AdjustmentMethod."""
    return _coerce_enum(value, AdjustmentMethod, _ADJUSTMENT_ALIASES)


def _coerce_enum(value, enum_cls, aliases):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid {enum_cls.__name__}: {value!r}")
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            raise ConfigurationError(
                f"Unknown {enum_cls.__name__} code: {value}"
            ) from None
    if isinstance(value, str):
        key = value.strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return enum_cls[key.upper().replace("-", "_")]
        except KeyError:
            raise ConfigurationError(
                f"Unknown {enum_cls.__name__}: {value}. "
                f"Available: {sorted(aliases)}"
            ) from None
    raise ConfigurationError(f"Invalid {enum_cls.__name__}: {value!r}")


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration of one gene x GEM correlation analysis.

    Constructed once per run and read-only afterwards.

    Example:
        >>> config = AnalysisConfig(
        ...     correlation_method="spearman",
        ...     adjustment_method="bh",
        ...     correlation_threshold=0.6,
        ...     keep_top_n=1000,
        ... )
        >>> pipeline = GGCAPipeline(config)
    """

    correlation_method: CorrelationMethod = CorrelationMethod.PEARSON
    """Correlation test (Pearson, Spearman or Kendall)."""

    adjustment_method: AdjustmentMethod = AdjustmentMethod.BENJAMINI_HOCHBERG
    """P-value adjustment (Benjamini-Hochberg, Benjamini-Yekutieli or Bonferroni)."""

    correlation_threshold: float = 0.5
    """Inclusive lower bound on |correlation| for a result to be kept."""

    is_all_vs_all: bool = True
    """Cartesian product of genes and GEMs; False pairs them by position."""

    keep_top_n: Optional[int] = None
    """Keep only the N results with the largest |correlation| (None = all)."""

    sort_buffer_size: int = 2_000_000
    """Results buffered in memory before a sorted run is spilled to disk."""

    gem_contains_cpg: bool = False
    """GEM rows carry a CpG site id in their second column."""

    collect_gem_dataset: Optional[bool] = None
    """True loads GEMs in RAM, False streams them from disk, None decides by file size."""

    collect_gem_max_mb: float = 256.0
    """With collect_gem_dataset=None, disk-backed GEM files up to this size are loaded in RAM."""

    n_workers: int = 1
    """Worker threads evaluating gene partitions (1 = serial)."""

    queue_size: int = 64
    """Maximum result batches waiting for ingestion (backpressure bound)."""

    batch_size: int = 1000
    """Results per batch handed from a worker to the aggregator."""

    adjustment_denominator: Literal["evaluated", "total"] = "evaluated"
    """Number of tests m: combinations passing the threshold, or all combinations."""

    undefined_policy: Literal["skip", "raise"] = "skip"
    """What to do with combinations whose statistic is undefined (zero variance)."""

    spill_dir: Optional[Path] = None
    """Directory for sorted spill runs (None = system temp dir)."""

    def __post_init__(self):
        """Normalize enum fields and paths, then validate."""
        object.__setattr__(
            self, "correlation_method", parse_correlation_method(self.correlation_method)
        )
        object.__setattr__(
            self, "adjustment_method", parse_adjustment_method(self.adjustment_method)
        )
        object.__setattr__(
            self, "correlation_threshold", float(self.correlation_threshold)
        )
        if self.spill_dir is not None:
            object.__setattr__(self, "spill_dir", Path(self.spill_dir))
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for inconsistent settings."""
        if not 0.0 <= self.correlation_threshold <= 1.0:
            raise ConfigurationError(
                f"correlation_threshold must be in [0, 1], got {self.correlation_threshold}"
            )
        if self.keep_top_n is not None and self.keep_top_n < 1:
            raise ConfigurationError(
                f"keep_top_n must be positive or None, got {self.keep_top_n}"
            )
        if self.sort_buffer_size < 1:
            raise ConfigurationError(
                f"sort_buffer_size must be positive, got {self.sort_buffer_size}"
            )
        if self.collect_gem_max_mb < 0:
            raise ConfigurationError(
                f"collect_gem_max_mb must be non-negative, got {self.collect_gem_max_mb}"
            )
        if self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be positive, got {self.n_workers}")
        if self.queue_size < 1:
            raise ConfigurationError(f"queue_size must be positive, got {self.queue_size}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        if self.adjustment_denominator not in ("evaluated", "total"):
            raise ConfigurationError(
                f"Unknown adjustment_denominator: {self.adjustment_denominator}. "
                "Available: ['evaluated', 'total']"
            )
        if self.undefined_policy not in ("skip", "raise"):
            raise ConfigurationError(
                f"Unknown undefined_policy: {self.undefined_policy}. "
                "Available: ['raise', 'skip']"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["correlation_method"] = self.correlation_method.name.lower()
        d["adjustment_method"] = self.adjustment_method.name.lower()
        if self.spill_dir is not None:
            d["spill_dir"] = str(self.spill_dir)
        return d

    def to_json(self, path: Path | str) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "AnalysisConfig":
        """Create from dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**d)

    @classmethod
    def from_json(cls, path: Path | str) -> "AnalysisConfig":
        """Load configuration from JSON file."""
        path = Path(path)
        with open(path) as f:
            d = json.load(f)
        return cls.from_dict(d)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "AnalysisConfig":
        """Load configuration from a YAML file (top level or under ``config:``)."""
        import yaml

        path = Path(path)
        with open(path) as f:
            d = yaml.safe_load(f) or {}
        if "config" in d and isinstance(d["config"], dict):
            d = d["config"]
        return cls.from_dict(d)

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Create configuration from environment variables."""
        top_n = os.getenv("GGCA_KEEP_TOP_N")
        collect = os.getenv("GGCA_COLLECT_GEM")
        return cls(
            correlation_method=os.getenv("GGCA_CORRELATION_METHOD", "pearson"),
            adjustment_method=os.getenv("GGCA_ADJUSTMENT_METHOD", "bh"),
            correlation_threshold=float(os.getenv("GGCA_THRESHOLD", "0.5")),
            is_all_vs_all=_env_flag("GGCA_ALL_VS_ALL", default=True),
            keep_top_n=int(top_n) if top_n else None,
            sort_buffer_size=int(os.getenv("GGCA_SORT_BUFFER_SIZE", "2000000")),
            gem_contains_cpg=_env_flag("GGCA_GEM_CONTAINS_CPG", default=False),
            collect_gem_dataset=_env_flag("GGCA_COLLECT_GEM", default=False) if collect else None,
            collect_gem_max_mb=float(os.getenv("GGCA_COLLECT_GEM_MAX_MB", "256")),
            n_workers=int(os.getenv("GGCA_WORKERS", "1")),
            queue_size=int(os.getenv("GGCA_QUEUE_SIZE", "64")),
            batch_size=int(os.getenv("GGCA_BATCH_SIZE", "1000")),
            adjustment_denominator=os.getenv("GGCA_ADJUSTMENT_DENOMINATOR", "evaluated"),
            undefined_policy=os.getenv("GGCA_UNDEFINED_POLICY", "skip"),
            spill_dir=os.getenv("GGCA_SPILL_DIR") or None,
        )


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes")
