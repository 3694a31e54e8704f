"""Top-Nシグナルによるテンプレートブレンド

メトリクス相関とロジスティック回帰の係数から「シグナルマップ」を作り、
そこから提案されるグループ/メトリクス重みをベースラインのテンプレートに
一定比率で混ぜ、変化幅をガードレールで制限する。
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from powerrank.config.weights import DEFAULT_BLEND_OPTIONS
from powerrank.stats.correlation import CorrelationEntry
from powerrank.weights.normalization import normalize, normalize_abs
from powerrank.weights.weight_set import WeightSet

if TYPE_CHECKING:
    from powerrank.ml.logistic import TrainingResult


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def _share_of_abs(values: Mapping[str, float]) -> dict[str, float]:
    total = sum(abs(v) for v in values.values())
    return {k: (abs(v) / total if total > 0 else abs(v)) for k, v in values.items()}


def resolve_blend_options(options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """デフォルト設定に上書き設定をマージする（セクション単位で浅くマージ）"""
    options = options or {}
    return {
        section: {**defaults, **(options.get(section) or {})}
        for section, defaults in DEFAULT_BLEND_OPTIONS.items()
    }


def build_signal_map(
    correlations: Sequence[CorrelationEntry],
    training_result: "TrainingResult | None" = None,
    metric_labels: Sequence[str] = (),
    signal_blend: Mapping[str, float] | None = None,
) -> dict[str, float]:
    """相関とロジスティック回帰係数を合成したシグナルマップを作る

    それぞれ絶対値のシェアに変換し、signal_blend の比率で合成して正規化する。
    学習に失敗した（または未指定の）場合は相関のみを使う。

    Args:
        correlations: メトリクス相関
        training_result: ロジスティック回帰の学習結果
        metric_labels: 学習係数の並びに対応するメトリクス名
        signal_blend: {"correlation": float, "logistic": float}

    Returns:
        メトリクス名 -> シグナル（合計1）
    """
    blend = signal_blend or DEFAULT_BLEND_OPTIONS["signal_blend"]

    correlation_map = _share_of_abs(
        {entry.label: entry.correlation for entry in correlations if entry.label}
    )

    logistic_map: dict[str, float] = {}
    if (
        training_result is not None
        and training_result.success
        and training_result.weights
        and metric_labels
    ):
        logistic_map = _share_of_abs(
            {
                label: weight
                for label, weight in zip(metric_labels, training_result.weights)
                if label
            }
        )

    keys = list(correlation_map)
    keys.extend(k for k in logistic_map if k not in correlation_map)
    merged = {
        key: blend["correlation"] * correlation_map.get(key, 0.0)
        + blend["logistic"] * logistic_map.get(key, 0.0)
        for key in keys
    }
    return normalize_abs(merged)


def suggest_group_weights(
    template: WeightSet, signal_map: Mapping[str, float]
) -> dict[str, float]:
    """シグナルマップをグループ単位に集計した提案グループ重み"""
    totals: dict[str, float] = {}
    for label, weight in signal_map.items():
        group = template.group_of(label)
        if group is None:
            continue
        totals[group] = totals.get(group, 0.0) + abs(weight)
    return normalize(totals)


def suggest_metric_weights(
    template: WeightSet, signal_map: Mapping[str, float]
) -> dict[str, dict[str, float]]:
    """シグナルマップからグループ内の提案メトリクス重みを作る"""
    suggested = {}
    for group, metrics in template.metric_weights.items():
        entries = {metric: signal_map.get(metric, 0.0) for metric in metrics}
        total = sum(abs(v) for v in entries.values())
        suggested[group] = {
            metric: (value / total if total > 0 else 0.0)
            for metric, value in entries.items()
        }
    return suggested


def apply_group_guardrails(
    baseline: Mapping[str, float],
    suggested: Mapping[str, float],
    guardrails: Mapping[str, float],
) -> dict[str, float]:
    """グループ重みをベースライン±最大シフトと上下限に収めて正規化する"""
    min_weight = guardrails.get("min_group_weight", 0.0)
    max_weight = guardrails.get("max_group_weight", 1.0)
    max_shift = guardrails.get("max_group_shift", 1.0)

    output = {}
    for group, base in baseline.items():
        target = suggested.get(group, base)
        shifted = _clamp(target, base - max_shift, base + max_shift)
        output[group] = _clamp(shifted, min_weight, max_weight)
    return normalize_abs(output)


def apply_metric_shift_guardrails(
    baseline: Mapping[str, Mapping[str, float]],
    suggested: Mapping[str, Mapping[str, float]],
    max_shift: float,
) -> dict[str, dict[str, float]]:
    """メトリクス重みをベースライン±最大シフトかつ[0, 1]に収め、グループ内で正規化する"""
    output = {}
    for group, metrics in baseline.items():
        group_suggested = suggested.get(group, {})
        shifted = {}
        for metric, base in metrics.items():
            value = group_suggested.get(metric, base)
            value = _clamp(value, base - max_shift, base + max_shift)
            shifted[metric] = _clamp(value, 0.0, 1.0)
        output[group] = normalize_abs(shifted)
    return output


@dataclass(frozen=True)
class TemplateBlendResult:
    """テンプレートブレンドの結果"""

    weight_set: WeightSet
    signal_map: dict[str, float]
    suggested_groups: dict[str, float]
    suggested_metrics: dict[str, dict[str, float]]
    options: dict[str, Any] = field(default_factory=dict)


def blend_template_weights(
    template: WeightSet,
    signal_map: Mapping[str, float],
    options: Mapping[str, Any] | None = None,
) -> TemplateBlendResult:
    """シグナルマップから提案された重みをテンプレートに混ぜる

    baseline × テンプレート + model × 提案 を計算し（提案がない項目はテンプレート値）、
    グループ/メトリクスのガードレールを適用する。

    Args:
        template: ベースラインのテンプレート
        signal_map: build_signal_mapで作ったシグナルマップ
        options: DEFAULT_BLEND_OPTIONS と同じ構造の上書き設定

    Returns:
        TemplateBlendResult
    """
    resolved = resolve_blend_options(options)
    share = resolved["template_blend"]
    guardrails = resolved["guardrails"]

    suggested_groups = suggest_group_weights(template, signal_map)
    suggested_metrics = suggest_metric_weights(template, signal_map)

    blended_groups = {
        group: share["baseline"] * base
        + share["model"] * suggested_groups.get(group, base)
        for group, base in template.group_weights.items()
    }
    blended_metrics = {
        group: {
            metric: share["baseline"] * base
            + share["model"] * suggested_metrics.get(group, {}).get(metric, base)
            for metric, base in metrics.items()
        }
        for group, metrics in template.metric_weights.items()
    }

    weight_set = WeightSet(
        apply_group_guardrails(template.group_weights, blended_groups, guardrails),
        apply_metric_shift_guardrails(
            template.metric_weights, blended_metrics, guardrails["max_metric_shift"]
        ),
    )
    return TemplateBlendResult(
        weight_set=weight_set,
        signal_map=dict(signal_map),
        suggested_groups=suggested_groups,
        suggested_metrics=suggested_metrics,
        options=resolved,
    )
