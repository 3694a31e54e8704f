"""データモデルパッケージ"""

from powerrank.models.base import Base
from powerrank.models.records import (
    FeatureVector,
    MetricSpec,
    OutcomeLabel,
    RankedPlayer,
    TrainingSample,
)
from powerrank.models.weight_template import WeightTemplate

__all__ = [
    "Base",
    "FeatureVector",
    "MetricSpec",
    "OutcomeLabel",
    "RankedPlayer",
    "TrainingSample",
    "WeightTemplate",
]
