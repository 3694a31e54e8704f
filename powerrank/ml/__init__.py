"""機械学習モジュール

「N位以内」予測のロジスティック回帰と、イベント単位のクロスバリデーションを提供する。
"""

from powerrank.ml.cross_validator import (
    CrossValidationResult,
    CrossValidator,
    ReliabilityScore,
)
from powerrank.ml.feature_builder import FeatureBuilder, build_metric_specs
from powerrank.ml.logistic import ClassifierModel, LogisticClassifier, TrainingResult

__all__ = [
    "ClassifierModel",
    "CrossValidationResult",
    "CrossValidator",
    "FeatureBuilder",
    "LogisticClassifier",
    "ReliabilityScore",
    "TrainingResult",
    "build_metric_specs",
]
