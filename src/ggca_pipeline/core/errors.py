"""
Error taxonomy for correlation analyses.

Every fatal condition in a run surfaces as a subclass of GGCAError so callers
can catch a single type at the run boundary.
"""

from __future__ import annotations


class GGCAError(Exception):
    """Base class for all analysis errors."""


class ConfigurationError(GGCAError, ValueError):
    """Invalid configuration or incompatible input datasets.

    Raised before any combination is evaluated (mismatched sample counts,
    unknown methods, too few samples for the selected test).
    """


class ComputationError(GGCAError, ArithmeticError):
    """A correlation or adjustment step could not produce a defined value."""


class ResourceError(GGCAError, OSError):
    """Spill storage or spill encoding failed during external sorting."""
