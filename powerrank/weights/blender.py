"""WeightBlender - 事前テンプレートと学習シグナルの合成

事前テンプレート、モデル提案ウェイト、検証シグナル（推奨ウェイト・トレンド信頼度）を
設定された比率で合成し、メトリクスごとのガードレールで許容範囲に収める。
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from powerrank.config.run_config import BlendShares, RunConfig
from powerrank.constants import DEFAULT_TREND_STATUS, TREND_GUARDRAIL_RANGES
from powerrank.models.records import MetricSpec
from powerrank.stats.correlation import CorrelationEntry
from powerrank.weights.normalization import normalize, normalize_abs
from powerrank.weights.weight_set import WeightSet

logger = logging.getLogger(__name__)

__all__ = [
    "GuardrailBand",
    "WeightBlender",
    "normalize",
    "normalize_abs",
]


@dataclass(frozen=True)
class GuardrailBand:
    """メトリクス重みの許容範囲"""

    minimum: float
    maximum: float

    def clamp(self, value: float) -> float:
        return min(self.maximum, max(self.minimum, value))

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


class WeightBlender:
    """ウェイトの合成・ガードレール適用を行うクラス"""

    def __init__(
        self,
        shares: BlendShares | None = None,
        invert_disagreeing_lower_better: bool = True,
    ):
        """初期化

        Args:
            shares: 事前 / モデル / 検証の合成比率（Noneの場合はデフォルト）
            invert_disagreeing_lower_better: 符号反転ヒューリスティックを有効にするか
        """
        self._shares = shares or BlendShares()
        self._invert = invert_disagreeing_lower_better

    @classmethod
    def from_config(cls, config: RunConfig) -> "WeightBlender":
        """RunConfigの合成比率と符号反転ポリシーから生成する"""
        return cls(config.blend_shares, config.invert_disagreeing_lower_better)

    normalize = staticmethod(normalize)
    normalize_abs = staticmethod(normalize_abs)

    @staticmethod
    def fill_group_weights(
        suggested: Mapping[str, float], fallback: Mapping[str, float]
    ) -> dict[str, float]:
        """モデル提案のグループ重みをフォールバックに重ねて正規化する

        モデルがエントリを持つグループのみ上書きし、全グループで再正規化する。

        Args:
            suggested: モデル提案のグループ重み
            fallback: フォールバック（テンプレート）のグループ重み

        Returns:
            正規化済みのグループ重み
        """
        merged = dict(fallback)
        for group, weight in suggested.items():
            merged[group] = weight
        return normalize(merged)

    @staticmethod
    def blend(
        prior: Mapping[str, float],
        model: Mapping[str, float],
        prior_share: float,
        model_share: float,
    ) -> dict[str, float]:
        """2つの重みを比率で合成する

        result[k] = prior[k] * prior_share + model[k] * model_share を
        キーの和集合に対して計算し（欠損は0）、正規化して返す。
        """
        keys = list(prior)
        keys.extend(k for k in model if k not in prior)
        raw = {
            key: prior.get(key, 0.0) * prior_share + model.get(key, 0.0) * model_share
            for key in keys
        }
        return normalize(raw)

    @staticmethod
    def _blend_many(
        sources: Sequence[tuple[Mapping[str, float], float]],
    ) -> dict[str, float]:
        keys: list[str] = []
        for weights, _ in sources:
            keys.extend(k for k in weights if k not in keys)
        return {
            key: sum(weights.get(key, 0.0) * share for weights, share in sources)
            for key in keys
        }

    def blend_weight_sets(
        self, sources: Sequence[tuple[WeightSet, float]]
    ) -> WeightSet:
        """複数のWeightSetを比率で合成する

        グループ重みは合計で、各グループのメトリクス重みは絶対値合計で正規化する
        （符号反転メトリクスの符号を保持するため）。比率は合計1に正規化する。

        Args:
            sources: (WeightSet, 比率) のリスト

        Returns:
            合成したWeightSet

        Raises:
            ValueError: 比率が負の場合
        """
        if any(share < 0 for _, share in sources):
            raise ValueError("blend shares must be non-negative")

        active = [(ws, share) for ws, share in sources if share > 0]
        total_share = sum(share for _, share in active)
        if total_share == 0:
            return WeightSet({}, {})
        active = [(ws, share / total_share) for ws, share in active]

        group_weights = normalize(
            self._blend_many([(ws.group_weights, share) for ws, share in active])
        )

        groups: list[str] = []
        for ws, _ in active:
            groups.extend(g for g in ws.metric_weights if g not in groups)
        metric_weights = {
            group: normalize_abs(
                self._blend_many(
                    [(ws.metric_weights.get(group, {}), share) for ws, share in active]
                )
            )
            for group in groups
        }
        return WeightSet(group_weights, metric_weights)

    def blend_sources(
        self,
        prior: WeightSet,
        model: WeightSet | None = None,
        validation: WeightSet | None = None,
    ) -> WeightSet:
        """事前テンプレート・モデル提案・検証シグナルを設定比率で合成する

        欠けているソースの比率は残りのソースに按分される。
        """
        sources = [(prior, self._shares.prior)]
        if model is not None:
            sources.append((model, self._shares.model))
        if validation is not None:
            sources.append((validation, self._shares.validation))
        return self.blend_weight_sets(sources)

    @staticmethod
    def guardrail_range(trend_status: str | None) -> float:
        """トレンド信頼度ラベルに対応する許容幅を返す

        不明なラベルやNoneには DEFAULT_TREND_STATUS（WATCH）の幅を適用する。
        """
        label = str(trend_status or "").strip().upper()
        if label not in TREND_GUARDRAIL_RANGES:
            label = DEFAULT_TREND_STATUS
        return TREND_GUARDRAIL_RANGES[label]

    def build_guardrail_bands(
        self,
        recommended: Mapping[str, float],
        trend_labels: Mapping[str, str] | None = None,
    ) -> dict[str, GuardrailBand]:
        """推奨ウェイトからメトリクスごとの許容範囲を作る

        範囲は [推奨 × (1 - range), 推奨 × (1 + range)]。
        推奨が負の場合は下限/上限を入れ替える。

        Args:
            recommended: メトリクス名 -> 推奨ウェイト
            trend_labels: メトリクス名 -> トレンド信頼度（STABLE/WATCH/CHRONIC）

        Returns:
            メトリクス名 -> GuardrailBand
        """
        trend_labels = trend_labels or {}
        bands = {}
        for metric, value in recommended.items():
            width = self.guardrail_range(trend_labels.get(metric))
            low = value * (1 - width)
            high = value * (1 + width)
            bands[metric] = GuardrailBand(min(low, high), max(low, high))
        return bands

    @staticmethod
    def apply_guardrails(
        weight_set: WeightSet, bands: Mapping[str, GuardrailBand]
    ) -> WeightSet:
        """メトリクス重みを許容範囲にクランプし、グループ内で再正規化する

        グループ重みは変更しない。
        """
        if not bands:
            return weight_set

        metric_weights = {}
        for group, metrics in weight_set.metric_weights.items():
            clamped = {}
            for metric, weight in metrics.items():
                band = bands.get(metric)
                if band is not None and not band.contains(weight):
                    logger.debug(
                        "Clamping %s::%s from %.4f into [%.4f, %.4f]",
                        group,
                        metric,
                        weight,
                        band.minimum,
                        band.maximum,
                    )
                    weight = band.clamp(weight)
                clamped[metric] = weight
            metric_weights[group] = normalize_abs(clamped)
        return weight_set.with_metric_weights(metric_weights)

    def apply_sign_inversion(
        self,
        weight_set: WeightSet,
        specs: Iterable[MetricSpec],
        correlations: Iterable[CorrelationEntry],
    ) -> WeightSet:
        """期待と逆符号の相関を持つ「小さいほど良い」メトリクスの重みを負にする

        符号調整後の値は大きいほど良い前提のため、期待される相関は正。
        学習相関が負の場合に重みを -|w| に強制する。
        無効化されている場合は入力をそのまま返す。
        """
        if not self._invert:
            return weight_set

        lower_better = {spec.label for spec in specs if spec.lower_better}
        disagreeing = {
            entry.label
            for entry in correlations
            if entry.label in lower_better
            and not entry.low_confidence
            and entry.correlation < 0
        }
        if not disagreeing:
            return weight_set

        logger.info("Inverting weights for lower-better metrics: %s", sorted(disagreeing))
        metric_weights = {
            group: {
                metric: -abs(weight) if metric in disagreeing else weight
                for metric, weight in metrics.items()
            }
            for group, metrics in weight_set.metric_weights.items()
        }
        return weight_set.with_metric_weights(metric_weights)
