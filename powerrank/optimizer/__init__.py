"""重み探索モジュール"""

from powerrank.optimizer.random_source import RandomSource, SeededRandomSource
from powerrank.optimizer.search import (
    CombinedScore,
    OptimizationResult,
    RandomSearchOptimizer,
    RankingGenerator,
    TrialResult,
    alignment_score,
    combined_score,
)

__all__ = [
    "CombinedScore",
    "OptimizationResult",
    "RandomSearchOptimizer",
    "RandomSource",
    "RankingGenerator",
    "SeededRandomSource",
    "TrialResult",
    "alignment_score",
    "combined_score",
]
