"""統計モジュール

順位相関・加重Top-Nスコア・メトリクス相関分析を提供する。
"""

from powerrank.stats.correlation import (
    CorrelationEntry,
    MetricStability,
    TrendSummary,
    analyze_metric_stability,
    build_recommended_weights,
    classify_trend,
    compute_metric_correlations,
    compute_top_n_correlations,
)
from powerrank.stats.rank_statistics import (
    mae,
    pearson,
    rank,
    rmse,
    spearman,
    top_n_accuracy,
    weighted_top_n,
)

__all__ = [
    "CorrelationEntry",
    "MetricStability",
    "TrendSummary",
    "analyze_metric_stability",
    "build_recommended_weights",
    "classify_trend",
    "compute_metric_correlations",
    "compute_top_n_correlations",
    "mae",
    "pearson",
    "rank",
    "rmse",
    "spearman",
    "top_n_accuracy",
    "weighted_top_n",
]
