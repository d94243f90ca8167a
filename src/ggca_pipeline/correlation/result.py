"""
Correlation result entity and its binary spill encoding.

Record layout (little-endian):

    u8   codec version
    u8   presence mask (bit0 cpg_site_id, bit1 correlation,
         bit2 p_value, bit3 adjusted_p_value)
    u32  length + UTF-8 gene
    u32  length + UTF-8 gem
    [u32 length + UTF-8 cpg_site_id]
    [f64 correlation] [f64 p_value] [f64 adjusted_p_value]
"""

from __future__ import annotations

import io
import math
import struct
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ggca_pipeline.core.errors import ComputationError, ResourceError

CODEC_VERSION = 1

RESULT_COLUMNS = ["gene", "gem", "cpg_site_id", "correlation", "p_value", "adjusted_p_value"]

_HEADER = struct.Struct("<BB")
_LENGTH = struct.Struct("<I")
_FLOAT = struct.Struct("<d")

_HAS_CPG = 0x01
_HAS_CORRELATION = 0x02
_HAS_P_VALUE = 0x04
_HAS_ADJUSTED = 0x08


@dataclass
class CorrelationResult:
    """
    Correlation of one gene with one GEM (or CpG site of a GEM).

    Created once per evaluated combination; the adjusted p-value is set
    exactly once by the adjustment step.

    Example:
        >>> result = CorrelationResult("GATA1", "hsa-miR-21", None, 0.93, 1.2e-9)
        >>> result.abs_correlation()
        0.93
    """

    gene: str = ""
    """Gene name."""

    gem: str = ""
    """Gene expression modulator name."""

    cpg_site_id: Optional[str] = None
    """CpG site id, present only for annotated GEM datasets."""

    correlation: Optional[float] = None
    """Correlation statistic (Pearson, Spearman or Kendall)."""

    p_value: Optional[float] = None
    """Raw two-sided p-value."""

    adjusted_p_value: Optional[float] = None
    """Multiple-testing adjusted p-value."""

    def cpg_site_id_description(self) -> str:
        """CpG site id, or an empty string when absent."""
        return self.cpg_site_id if self.cpg_site_id is not None else ""

    def abs_correlation(self) -> float:
        """Absolute correlation; the statistic must be present."""
        if self.correlation is None:
            raise ComputationError(f"Correlation is not set for {self.gene}/{self.gem}")
        return abs(self.correlation)

    def sort_key(self) -> float:
        """Raw p-value used to order results; must be a number."""
        p = self.p_value
        if p is None or math.isnan(p):
            raise ComputationError(
                f"Result {self.gene}/{self.gem} has no sortable p-value: {p!r}"
            )
        return p

    def to_bytes(self) -> bytes:
        """Encode with the spill record layout."""
        mask = 0
        parts = [b"", _encode_str(self.gene), _encode_str(self.gem)]
        if self.cpg_site_id is not None:
            mask |= _HAS_CPG
            parts.append(_encode_str(self.cpg_site_id))
        for flag, value in (
            (_HAS_CORRELATION, self.correlation),
            (_HAS_P_VALUE, self.p_value),
            (_HAS_ADJUSTED, self.adjusted_p_value),
        ):
            if value is not None:
                mask |= flag
                try:
                    parts.append(_FLOAT.pack(value))
                except struct.error as e:
                    raise ResourceError(
                        f"Cannot encode result {self.gene}/{self.gem}: {e}"
                    ) from e
        parts[0] = _HEADER.pack(CODEC_VERSION, mask)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "CorrelationResult":
        """Decode a single record."""
        stream = io.BytesIO(data)
        result = cls.read_from(stream)
        if result is None or stream.read(1):
            raise ResourceError("Encoded result is empty or has trailing bytes")
        return result

    @classmethod
    def read_from(cls, stream: BinaryIO) -> Optional["CorrelationResult"]:
        """Decode the next record from a stream; None at a clean end of stream."""
        header = stream.read(_HEADER.size)
        if not header:
            return None
        if len(header) < _HEADER.size:
            raise ResourceError("Truncated result record header")

        version, mask = _HEADER.unpack(header)
        if version != CODEC_VERSION:
            raise ResourceError(f"Unsupported result codec version: {version}")

        gene = _read_str(stream)
        gem = _read_str(stream)
        cpg_site_id = _read_str(stream) if mask & _HAS_CPG else None
        correlation = _read_float(stream) if mask & _HAS_CORRELATION else None
        p_value = _read_float(stream) if mask & _HAS_P_VALUE else None
        adjusted = _read_float(stream) if mask & _HAS_ADJUSTED else None

        return cls(gene, gem, cpg_site_id, correlation, p_value, adjusted)

    # Pickle support goes through the versioned codec
    def __getstate__(self) -> bytes:
        return self.to_bytes()

    def __setstate__(self, state: bytes) -> None:
        decoded = type(self).from_bytes(state)
        self.__dict__.update(decoded.__dict__)

    def __str__(self) -> str:
        return (
            f'Gene: "{self.gene}" | GEM: "{self.gem}" | '
            f'CpG Site ID: "{self.cpg_site_id_description()}"\n'
            f"    Cor: {_or_zero(self.correlation)}\n"
            f"    P-value: {_or_zero(self.p_value):+e}\n"
            f"    Adjusted p-value: {_or_zero(self.adjusted_p_value):+e}"
        )

    def __repr__(self) -> str:
        return (
            f'CorrelationResult("{self.gene}", "{self.gem}", '
            f'"{self.cpg_site_id_description()}", {_or_zero(self.correlation)}, '
            f"{_or_zero(self.p_value):+e}, {_or_zero(self.adjusted_p_value):+e})"
        )


def p_value_key(result: CorrelationResult) -> float:
    """Sort key: raw p-value ascending."""
    return result.sort_key()


def _or_zero(value: Optional[float]) -> float:
    return value if value is not None else 0.0


def _encode_str(value: str) -> bytes:
    raw = value.encode("utf-8")
    return _LENGTH.pack(len(raw)) + raw


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ResourceError(f"Truncated result record: expected {size} bytes, got {len(data)}")
    return data


def _read_str(stream: BinaryIO) -> str:
    (length,) = _LENGTH.unpack(_read_exact(stream, _LENGTH.size))
    try:
        return _read_exact(stream, length).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ResourceError(f"Corrupt identifier in result record: {e}") from e


def _read_float(stream: BinaryIO) -> float:
    return _FLOAT.unpack(_read_exact(stream, _FLOAT.size))[0]
