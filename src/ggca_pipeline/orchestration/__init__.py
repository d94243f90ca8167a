"""
Evaluation orchestration: batch evaluation and gene-partitioned parallelism.
"""

from ggca_pipeline.orchestration.evaluator import BatchEvaluator, evaluate_combination
from ggca_pipeline.orchestration.parallel import ParallelEvaluator

__all__ = [
    "BatchEvaluator",
    "evaluate_combination",
    "ParallelEvaluator",
]
