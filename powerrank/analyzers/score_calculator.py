"""ScoreCalculator - 重み付きスコア計算"""

import math
from collections.abc import Mapping, Sequence

import numpy as np

from powerrank.models.records import FeatureVector, MetricSpec, RankedPlayer
from powerrank.weights.weight_set import WeightSet


class ScoreCalculator:
    """メトリクス値の重み付き合計スコアで選手を順位付けする

    特徴ベクトルは符号調整済み（大きいほど良い）であることを前提とする。
    """

    def __init__(self, specs: Sequence[MetricSpec], standardize: bool = True):
        """ScoreCalculatorを初期化する

        Args:
            specs: メトリクス定義（特徴ベクトルの並びに対応）
            standardize: フィールド内でメトリクスごとに標準化してから合計するか
        """
        self._specs = sorted(specs, key=lambda s: s.index)
        self._standardize = standardize

    @staticmethod
    def calculate_total(
        metric_values: Mapping[str, float | None], weights: Mapping[str, float]
    ) -> float | None:
        """重み付き合計スコアを計算する

        Args:
            metric_values: 各メトリクスの値（Noneは無視される）
            weights: メトリクス名 -> 実効重み

        Returns:
            重み付き合計スコア、有効なメトリクスがない場合はNone
        """
        total_score = 0.0
        total_weight = 0.0

        for label, value in metric_values.items():
            if value is not None and label in weights:
                weight = weights[label]
                total_score += value * weight
                total_weight += abs(weight)

        if total_weight == 0:
            return None

        # 正規化（有効なメトリクスの重みで割る）
        return total_score / total_weight

    def _standardized_columns(
        self, field: Sequence[FeatureVector]
    ) -> list[list[float | None]]:
        columns = []
        for spec in self._specs:
            raw = [vector.value_at(spec.index) for vector in field]
            present = [v for v in raw if v is not None]
            if not self._standardize or not present:
                columns.append(raw)
                continue
            mean = float(np.mean(present))
            std = float(np.std(present))
            columns.append(
                [
                    None if v is None else (0.0 if std == 0 else (v - mean) / std)
                    for v in raw
                ]
            )
        return columns

    def rank_players(
        self, field: Sequence[FeatureVector], weight_set: WeightSet
    ) -> list[RankedPlayer]:
        """フィールド全体を順位付けする

        スコアの降順に並べ、同点は選手IDの昇順。スコアが計算できない選手は最後尾。

        Args:
            field: 出場選手の特徴ベクトル
            weight_set: 重みセット

        Returns:
            1始まりの順位を持つRankedPlayerのリスト（順位順）
        """
        weights = weight_set.effective_weights()
        columns = self._standardized_columns(field)

        scored = []
        for row, vector in enumerate(field):
            metric_values = {
                spec.label: columns[col][row] for col, spec in enumerate(self._specs)
            }
            score = self.calculate_total(metric_values, weights)
            scored.append((vector, score))

        scored.sort(
            key=lambda item: (
                item[1] is None,
                -(item[1] if item[1] is not None and not math.isnan(item[1]) else 0.0),
                item[0].player_id,
            )
        )
        return [
            RankedPlayer(
                player_id=vector.player_id,
                rank=position,
                score=score,
                metrics=vector.values,
            )
            for position, (vector, score) in enumerate(scored, start=1)
        ]
