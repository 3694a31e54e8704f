"""特徴量生成モジュール"""

import math
from collections.abc import Collection, Sequence

from powerrank.config.run_config import RunConfig
from powerrank.config.weights import LOWER_BETTER_METRICS
from powerrank.constants import COVERAGE_THRESHOLD
from powerrank.models.records import (
    FeatureVector,
    MetricSpec,
    OutcomeLabel,
    TrainingSample,
)


def build_metric_specs(
    labels: Sequence[str], lower_better: Collection[str] = LOWER_BETTER_METRICS
) -> list[MetricSpec]:
    """メトリクス名の並びからMetricSpecのリストを作る

    Args:
        labels: メトリクス名（特徴ベクトルの並び順）
        lower_better: 値が小さいほど良いメトリクス名

    Returns:
        indexが0からの連番のMetricSpecリスト
    """
    return [
        MetricSpec(label=label, index=index, lower_better=label in lower_better)
        for index, label in enumerate(labels)
    ]


class FeatureBuilder:
    """メトリクス定義に従って特徴ベクトルと学習サンプルを生成するクラス

    「小さいほど良い」メトリクスは符号反転し、全メトリクスを「大きいほど良い」に揃える。
    学習サンプルではカバレッジ不足のベクトルと着順なしの選手を除外し、
    欠損値は標準化後の平均に相当する0.0で補完する。
    """

    # 学習サンプルの欠損値補完値
    MISSING_FILL_VALUE = 0.0

    def __init__(
        self,
        specs: Sequence[MetricSpec],
        coverage_threshold: float = COVERAGE_THRESHOLD,
        top_n: int = 20,
    ):
        """初期化

        Args:
            specs: メトリクス定義（indexは0からの連番である必要がある）
            coverage_threshold: 学習に使う最小カバレッジ
            top_n: 学習ラベル「N位以内」のN

        Raises:
            ValueError: indexが0からの連番でない場合
        """
        indices = sorted(spec.index for spec in specs)
        if indices != list(range(len(specs))):
            raise ValueError("MetricSpec indices must be 0..n-1 without gaps")
        self._specs = sorted(specs, key=lambda s: s.index)
        self._coverage_threshold = coverage_threshold
        self._top_n = top_n

    @classmethod
    def from_config(
        cls, specs: Sequence[MetricSpec], config: RunConfig
    ) -> "FeatureBuilder":
        """RunConfigのカバレッジ閾値とtop_nから生成する"""
        return cls(specs, coverage_threshold=config.coverage_threshold, top_n=config.top_n)

    @property
    def specs(self) -> list[MetricSpec]:
        return list(self._specs)

    @property
    def metric_labels(self) -> list[str]:
        return [spec.label for spec in self._specs]

    def build_vector(
        self, player_id: str, raw_values: Sequence[float | None]
    ) -> FeatureVector:
        """生のメトリクス値から特徴ベクトルを作る

        Args:
            player_id: 選手ID
            raw_values: メトリクス値（specsのindex順）

        Returns:
            符号調整済みのFeatureVector

        Raises:
            ValueError: 選手IDが空の場合、値の数がメトリクス数と一致しない場合
        """
        if not str(player_id or "").strip():
            raise ValueError("player_id is required")
        if len(raw_values) != len(self._specs):
            raise ValueError(
                f"Expected {len(self._specs)} metric values for {player_id}, "
                f"got {len(raw_values)}"
            )

        values: list[float | None] = []
        for spec in self._specs:
            raw = raw_values[spec.index]
            if raw is None or math.isnan(raw):
                values.append(None)
                continue
            values.append(-float(raw) if spec.lower_better else float(raw))
        return FeatureVector(player_id=str(player_id), values=tuple(values))

    def is_trainable(self, vector: FeatureVector) -> bool:
        """カバレッジが閾値以上か判定する"""
        return vector.coverage >= self._coverage_threshold

    def build_training_samples(
        self,
        event_id: str,
        vectors: Sequence[FeatureVector],
        outcomes: Sequence[OutcomeLabel],
    ) -> list[TrainingSample]:
        """1イベント分の学習サンプルを作る

        Args:
            event_id: イベントID
            vectors: 特徴ベクトル
            outcomes: 着順（同一選手は最良着順を採用）

        Returns:
            学習サンプルのリスト（vectorsの順）
        """
        finishes: dict[str, int] = {}
        for outcome in outcomes:
            if outcome.finish_position is None:
                continue
            current = finishes.get(outcome.player_id)
            if current is None or outcome.finish_position < current:
                finishes[outcome.player_id] = outcome.finish_position

        samples = []
        for vector in vectors:
            finish = finishes.get(vector.player_id)
            if finish is None or not self.is_trainable(vector):
                continue
            features = tuple(
                self.MISSING_FILL_VALUE if v is None or math.isnan(v) else float(v)
                for v in vector.values
            )
            samples.append(
                TrainingSample(
                    event_id=str(event_id),
                    player_id=vector.player_id,
                    features=features,
                    finish_position=finish,
                    label=1 if finish <= self._top_n else 0,
                )
            )
        return samples
