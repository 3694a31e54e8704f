"""メトリクス相関分析モジュール

各メトリクスと着順の相関、トレンド信頼度の分類、相関に基づく推奨ウェイト、
複数年にわたる相関の安定性を計算する。
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from powerrank.constants import (
    MIN_CORRELATION_SAMPLES,
    STABILITY_STABLE_THRESHOLD,
    STABILITY_STRONG_THRESHOLD,
    TREND_CHRONIC,
    TREND_CHRONIC_MIN_BIAS_Z,
    TREND_MIN_COUNT,
    TREND_STABLE,
    TREND_STABLE_MAX_BIAS_Z,
    TREND_WATCH,
)
from powerrank.models.records import FeatureVector, MetricSpec, OutcomeLabel
from powerrank.stats.rank_statistics import pearson, spearman

if TYPE_CHECKING:
    from powerrank.weights.weight_set import WeightSet


@dataclass(frozen=True)
class CorrelationEntry:
    """1メトリクスの相関

    Attributes:
        label: メトリクス名
        correlation: 相関係数（-1.0 to 1.0、正の値が良い）
        sample_count: 相関計算に使用したサンプル数
        low_confidence: サンプル不足で相関を0とした場合True
    """

    label: str
    correlation: float
    sample_count: int
    low_confidence: bool = False


@dataclass(frozen=True)
class TrendSummary:
    """モデル予測と実測の乖離トレンド"""

    metric: str
    count: int
    mean_delta: float
    mean_abs_delta: float
    std_dev: float
    bias_z: float
    over_pct: float
    under_pct: float
    status: str


@dataclass(frozen=True)
class MetricStability:
    """複数年にわたる相関の安定性"""

    label: str
    avg_correlation: float
    std_dev: float
    stability: float
    classification: str
    yearly: tuple[tuple[str, float], ...]


def _paired_values(
    spec: MetricSpec,
    vectors: Sequence[FeatureVector],
    finishes: Mapping[str, int],
) -> tuple[list[float], list[int]]:
    values: list[float] = []
    positions: list[int] = []
    for vector in vectors:
        finish = finishes.get(vector.player_id)
        if finish is None:
            continue
        value = vector.value_at(spec.index)
        if value is None:
            continue
        values.append(value)
        positions.append(finish)
    return values, positions


def _finish_lookup(outcomes: Sequence[OutcomeLabel]) -> dict[str, int]:
    lookup: dict[str, int] = {}
    for outcome in outcomes:
        if outcome.finish_position is None:
            continue
        current = lookup.get(outcome.player_id)
        if current is None or outcome.finish_position < current:
            lookup[outcome.player_id] = outcome.finish_position
    return lookup


def compute_metric_correlations(
    specs: Sequence[MetricSpec],
    vectors: Sequence[FeatureVector],
    outcomes: Sequence[OutcomeLabel],
    min_samples: int = MIN_CORRELATION_SAMPLES,
) -> list[CorrelationEntry]:
    """各メトリクスと着順のSpearman相関を計算する

    特徴ベクトルの値は符号調整済み（大きいほど良い）である前提で、
    着順を反転（-finish）して相関を取る。正の相関は「値が大きい選手ほど上位」を意味する。

    Args:
        specs: メトリクス定義
        vectors: 選手ごとの特徴ベクトル
        outcomes: 着順（Noneの選手は除外）
        min_samples: 最小サンプル数（未満は相関0・低信頼）

    Returns:
        メトリクスごとのCorrelationEntry（specsの順）
    """
    finishes = _finish_lookup(outcomes)
    entries = []
    for spec in specs:
        values, positions = _paired_values(spec, vectors, finishes)
        if len(values) < min_samples:
            entries.append(
                CorrelationEntry(spec.label, 0.0, len(values), low_confidence=True)
            )
            continue
        correlation = spearman(values, [-p for p in positions])
        entries.append(CorrelationEntry(spec.label, correlation, len(values)))
    return entries


def compute_top_n_correlations(
    specs: Sequence[MetricSpec],
    vectors: Sequence[FeatureVector],
    outcomes: Sequence[OutcomeLabel],
    top_n: int = 20,
    min_samples: int = MIN_CORRELATION_SAMPLES,
) -> list[CorrelationEntry]:
    """各メトリクスと「N位以内」フラグの相関（point-biserial）を計算する

    Args:
        specs: メトリクス定義
        vectors: 選手ごとの特徴ベクトル
        outcomes: 着順
        top_n: 上位N
        min_samples: 最小サンプル数

    Returns:
        メトリクスごとのCorrelationEntry（specsの順）
    """
    finishes = _finish_lookup(outcomes)
    entries = []
    for spec in specs:
        values, positions = _paired_values(spec, vectors, finishes)
        if len(values) < min_samples:
            entries.append(
                CorrelationEntry(spec.label, 0.0, len(values), low_confidence=True)
            )
            continue
        labels = [1.0 if p <= top_n else 0.0 for p in positions]
        entries.append(CorrelationEntry(spec.label, pearson(values, labels), len(values)))
    return entries


def classify_trend(metric: str, deltas: Sequence[float]) -> TrendSummary:
    """モデル予測と実測の乖離からトレンド信頼度を分類する

    biasZ = |平均| / 標準偏差 を用い、サンプル数が十分な場合のみ
    STABLE（偏りが小さい）/ CHRONIC（慢性的な偏り）に分類する。
    それ以外は WATCH とする。

    Args:
        metric: メトリクス名
        deltas: 乖離（予測 - 実測）のリスト。NaNは無視する

    Returns:
        TrendSummary
    """
    filtered = [d for d in deltas if d is not None and not math.isnan(d)]
    count = len(filtered)
    if count == 0:
        return TrendSummary(metric, 0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, TREND_WATCH)

    arr = np.asarray(filtered, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std())
    if std > 0:
        bias_z = abs(mean) / std
    else:
        bias_z = 1.0 if abs(mean) > 0 else 0.0

    status = TREND_WATCH
    if count >= TREND_MIN_COUNT and bias_z <= TREND_STABLE_MAX_BIAS_Z:
        status = TREND_STABLE
    if count >= TREND_MIN_COUNT and bias_z >= TREND_CHRONIC_MIN_BIAS_Z:
        status = TREND_CHRONIC

    return TrendSummary(
        metric=metric,
        count=count,
        mean_delta=mean,
        mean_abs_delta=float(np.abs(arr).mean()),
        std_dev=std,
        bias_z=bias_z,
        over_pct=100.0 * int((arr > 0).sum()) / count,
        under_pct=100.0 * int((arr < 0).sum()) / count,
        status=status,
    )


def build_recommended_weights(
    correlations: Sequence[CorrelationEntry], template: "WeightSet"
) -> dict[str, float]:
    """相関からメトリクスごとの推奨ウェイトを作る

    グループ内で |相関| / max|相関| を基準値とし、グループ内合計が1になるよう正規化する。
    テンプレートに存在しないメトリクスは対象外。

    Args:
        correlations: メトリクス相関
        template: グループ構成の基準となるテンプレート

    Returns:
        メトリクス名 -> 推奨ウェイト
    """
    correlation_map = {entry.label: entry.correlation for entry in correlations}
    recommended: dict[str, float] = {}

    for group, metrics in template.metric_weights.items():
        bases = {m: abs(correlation_map.get(m, 0.0)) for m in metrics}
        max_abs = max(bases.values(), default=0.0)
        if max_abs > 0:
            bases = {m: v / max_abs for m, v in bases.items()}
        else:
            bases = {m: 0.0 for m in bases}
        total = sum(bases.values())
        for metric, base in bases.items():
            recommended[metric] = base / total if total > 0 else 0.0

    return recommended


def analyze_metric_stability(
    correlations_by_year: Mapping[str, Sequence[CorrelationEntry]],
) -> list[MetricStability]:
    """複数年にわたるメトリクス相関の安定性を分析する

    stability = 平均相関 - 標準偏差 として、ばらつきの大きいメトリクスを減点する。
    平均相関が閾値を超えるものを strong、標準偏差が閾値未満のものを stable、
    それ以外を weak に分類する（strongを優先）。

    Args:
        correlations_by_year: 年 -> その年のメトリクス相関

    Returns:
        stabilityの降順に並んだMetricStabilityのリスト
    """
    by_label: dict[str, list[tuple[str, float]]] = {}
    for year, entries in correlations_by_year.items():
        for entry in entries:
            if entry.low_confidence:
                continue
            by_label.setdefault(entry.label, []).append((str(year), entry.correlation))

    report = []
    for label, yearly in by_label.items():
        values = np.asarray([c for _, c in yearly], dtype=float)
        avg = float(values.mean())
        std = float(values.std())
        if avg > STABILITY_STRONG_THRESHOLD:
            classification = "strong"
        elif std < STABILITY_STABLE_THRESHOLD:
            classification = "stable"
        else:
            classification = "weak"
        report.append(
            MetricStability(
                label=label,
                avg_correlation=avg,
                std_dev=std,
                stability=avg - std,
                classification=classification,
                yearly=tuple(yearly),
            )
        )

    report.sort(key=lambda r: (-r.stability, r.label))
    return report
