"""ウェイトモジュール

WeightSetの表現・正規化・合成・ガードレールを提供する。
"""

from powerrank.weights.blender import GuardrailBand, WeightBlender
from powerrank.weights.normalization import normalize, normalize_abs
from powerrank.weights.weight_set import WeightSet

__all__ = [
    "GuardrailBand",
    "WeightBlender",
    "WeightSet",
    "normalize",
    "normalize_abs",
]
