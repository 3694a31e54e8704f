"""WeightSet - グループ/メトリクス重みの組

内部表現はネストした group -> metric -> weight の辞書に統一する。
"Group::Metric" 形式のフラット表現はテンプレート境界でのみ to_flat/from_flat で変換する。
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from powerrank.constants import FLAT_KEY_SEPARATOR, WEIGHT_SUM_TOLERANCE
from powerrank.weights.normalization import normalize, normalize_abs


def _metric_value(config: Any) -> float:
    """テンプレートのメトリクス値（数値 or {"weight": x}）を数値に変換する"""
    if isinstance(config, Mapping):
        config = config.get("weight", 0.0)
    if config is None:
        return 0.0
    return float(config)


@dataclass(frozen=True)
class WeightSet:
    """グループ重みとグループ内メトリクス重みの組（イミュータブル）

    不変条件（正規化済みの場合）:
    - グループ重みの合計は1.0
    - 各グループ内のメトリクス重みの絶対値合計は1.0（非ゼロの重みが存在する場合）

    全ての変換は新しいWeightSetを返し、既存のインスタンスは変更しない。

    Attributes:
        group_weights: グループ名 -> グループ重み
        metric_weights: グループ名 -> (メトリクス名 -> 重み)
    """

    group_weights: Mapping[str, float]
    metric_weights: Mapping[str, Mapping[str, float]]

    def __post_init__(self):
        # 呼び出し側の辞書との共有を避けるためコピーを保持する
        object.__setattr__(
            self, "group_weights", {g: float(w) for g, w in self.group_weights.items()}
        )
        object.__setattr__(
            self,
            "metric_weights",
            {
                g: {m: float(w) for m, w in metrics.items()}
                for g, metrics in self.metric_weights.items()
            },
        )

    @classmethod
    def from_template(cls, template: Mapping[str, Any]) -> "WeightSet":
        """テンプレート辞書からWeightSetを作る

        Args:
            template: {"group_weights": {...}, "metric_weights": {group: {metric: w}}}
                メトリクス値は数値または {"weight": w} を受け付ける

        Returns:
            WeightSet
        """
        group_weights = template.get("group_weights") or {}
        raw_metrics = template.get("metric_weights") or {}
        metric_weights = {
            group: {metric: _metric_value(cfg) for metric, cfg in metrics.items()}
            for group, metrics in raw_metrics.items()
            if isinstance(metrics, Mapping)
        }
        return cls(group_weights, metric_weights)

    @classmethod
    def from_flat(
        cls, group_weights: Mapping[str, float], flat_metrics: Mapping[str, float]
    ) -> "WeightSet":
        """ "Group::Metric" 形式のフラット表現からWeightSetを作る

        Raises:
            ValueError: キーに区切り文字が含まれない場合
        """
        metric_weights: dict[str, dict[str, float]] = {}
        for key, weight in flat_metrics.items():
            if FLAT_KEY_SEPARATOR not in key:
                raise ValueError(f"Invalid flat metric key: {key!r}")
            group, metric = key.split(FLAT_KEY_SEPARATOR, 1)
            metric_weights.setdefault(group, {})[metric] = weight
        return cls(group_weights, metric_weights)

    @classmethod
    def uniform(cls, groups: Mapping[str, list[str]]) -> "WeightSet":
        """全グループ・全メトリクスが均等なWeightSetを作る"""
        non_empty = {g: m for g, m in groups.items() if m}
        if not non_empty:
            return cls({}, {})
        group_weight = 1.0 / len(non_empty)
        return cls(
            {g: group_weight for g in non_empty},
            {g: {m: 1.0 / len(ms) for m in ms} for g, ms in non_empty.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        """テンプレート辞書形式に変換する"""
        return {
            "group_weights": dict(self.group_weights),
            "metric_weights": {g: dict(m) for g, m in self.metric_weights.items()},
        }

    def to_flat(self) -> dict[str, float]:
        """メトリクス重みを "Group::Metric" 形式のフラット辞書に変換する"""
        return {
            f"{group}{FLAT_KEY_SEPARATOR}{metric}": weight
            for group, metrics in self.metric_weights.items()
            for metric, weight in metrics.items()
        }

    def metric_labels(self) -> list[str]:
        """全メトリクス名（グループ順・出現順、重複なし）"""
        labels: list[str] = []
        for metrics in self.metric_weights.values():
            for metric in metrics:
                if metric not in labels:
                    labels.append(metric)
        return labels

    def group_of(self, metric: str) -> str | None:
        """メトリクスが属するグループ名（存在しない場合はNone）"""
        for group, metrics in self.metric_weights.items():
            if metric in metrics:
                return group
        return None

    def effective_weights(self) -> dict[str, float]:
        """実効重み（グループ重み × メトリクス重み）を返す

        同名メトリクスが複数グループに属する場合は合算する。
        """
        effective: dict[str, float] = {}
        for group, metrics in self.metric_weights.items():
            group_weight = self.group_weights.get(group, 0.0)
            for metric, weight in metrics.items():
                effective[metric] = effective.get(metric, 0.0) + group_weight * weight
        return effective

    def with_group_weights(self, group_weights: Mapping[str, float]) -> "WeightSet":
        """グループ重みを差し替えたWeightSetを返す"""
        return WeightSet(group_weights, self.metric_weights)

    def with_metric_weights(
        self, metric_weights: Mapping[str, Mapping[str, float]]
    ) -> "WeightSet":
        """メトリクス重みを差し替えたWeightSetを返す"""
        return WeightSet(self.group_weights, metric_weights)

    def normalized(self) -> "WeightSet":
        """グループ重みを合計で、各グループのメトリクス重みを絶対値合計で正規化する"""
        return WeightSet(
            normalize(self.group_weights),
            {g: normalize_abs(m) for g, m in self.metric_weights.items()},
        )

    def is_normalized(self, tolerance: float = WEIGHT_SUM_TOLERANCE) -> bool:
        """不変条件を満たしているか判定する"""
        if self.group_weights:
            if abs(sum(self.group_weights.values()) - 1.0) > tolerance:
                return False
        for metrics in self.metric_weights.values():
            total = sum(abs(w) for w in metrics.values())
            if total == 0:
                continue
            if abs(total - 1.0) > tolerance:
                return False
        return True
