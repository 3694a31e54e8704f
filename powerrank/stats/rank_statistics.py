"""順位統計モジュール

順位付け（同順位は平均順位）、Pearson/Spearman相関、
NDCG形式の加重Top-Nスコア、Top-N的中率を計算する。
データ不足やゼロ分散の場合は例外を送出せず0を返す。
"""

import math
from collections.abc import Mapping, Sequence

import numpy as np
from scipy.stats import rankdata

from powerrank.models.records import RankedPlayer


def rank(values: Sequence[float]) -> list[float]:
    """1始まりの順位を付ける

    同値の要素には、それらが占める順位の平均（mid-rank）を割り当てる。
    例: [1, 1, 2] -> [1.5, 1.5, 3.0]

    Args:
        values: 数値列

    Returns:
        入力と同じ並びの順位リスト
    """
    if len(values) == 0:
        return []
    return rankdata(np.asarray(values, dtype=float), method="average").tolist()


def _all_finite(values: Sequence[float]) -> bool:
    return bool(np.isfinite(np.asarray(values, dtype=float)).all())


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson相関係数を計算する

    Args:
        x: 数値列
        y: 数値列

    Returns:
        相関係数（-1.0 to 1.0）。空・長さ不一致・ゼロ分散・NaNを含む場合は0.0
    """
    if len(x) == 0 or len(x) != len(y):
        return 0.0

    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    if not (_all_finite(xs) and _all_finite(ys)):
        return 0.0
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denom = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denom == 0 or not math.isfinite(denom):
        return 0.0

    ratio = float(np.dot(dx, dy)) / denom
    if not math.isfinite(ratio):
        return 0.0
    # 丸め誤差で範囲外に出ないようにクリップ
    return float(min(1.0, max(-1.0, ratio)))


def spearman(x: Sequence[float], y: Sequence[float]) -> float:
    """Spearman順位相関係数を計算する

    Args:
        x: 数値列
        y: 数値列

    Returns:
        相関係数（-1.0 to 1.0）。空・長さ不一致・全て同値・NaNを含む場合は0.0
    """
    if len(x) == 0 or len(x) != len(y):
        return 0.0
    if not (_all_finite(x) and _all_finite(y)):
        return 0.0
    return pearson(rank(x), rank(y))


def rmse(predicted: Sequence[float], actual: Sequence[float]) -> float:
    """二乗平均平方根誤差（空・長さ不一致の場合は0.0）"""
    if len(predicted) == 0 or len(predicted) != len(actual):
        return 0.0
    diff = np.asarray(predicted, dtype=float) - np.asarray(actual, dtype=float)
    return float(np.sqrt(np.mean(diff**2)))


def mae(predicted: Sequence[float], actual: Sequence[float]) -> float:
    """平均絶対誤差（空・長さ不一致の場合は0.0）"""
    if len(predicted) == 0 or len(predicted) != len(actual):
        return 0.0
    diff = np.asarray(predicted, dtype=float) - np.asarray(actual, dtype=float)
    return float(np.mean(np.abs(diff)))


def _gain(finish: int | None, n: int) -> float:
    if finish is None or finish < 1 or finish > n:
        return 0.0
    return float(n - finish + 1)


def weighted_top_n(
    predicted_ids: Sequence[str], actual_finishes: Mapping[str, int], n: int
) -> float:
    """NDCG形式の加重Top-Nスコアを計算する

    実着順 p <= n の選手のゲインを (n - p + 1) とし、予測リスト上の位置で
    1 / log2(位置 + 1) の割引をかけて合計する（DCG）。
    同じ実着順で理想的に並べた場合の値（IDCG）で割り、100倍して返す。
    上位の選手を正しく上位に予測するほど高得点になる。

    Args:
        predicted_ids: 予測順に並んだ選手IDのリスト
        actual_finishes: 選手ID -> 実着順
        n: 評価対象の上位N

    Returns:
        スコア（0-100）。IDCGが0（n以内の選手がいない）の場合は0.0
    """
    if n < 1:
        return 0.0

    dcg = 0.0
    for position, player_id in enumerate(predicted_ids, start=1):
        gain = _gain(actual_finishes.get(player_id), n)
        if gain > 0:
            dcg += gain / math.log2(position + 1)

    ideal_gains = sorted(
        (g for g in (_gain(f, n) for f in actual_finishes.values()) if g > 0),
        reverse=True,
    )
    idcg = sum(
        gain / math.log2(position + 1)
        for position, gain in enumerate(ideal_gains, start=1)
    )
    if idcg == 0:
        return 0.0

    return 100.0 * dcg / idcg


def order_predictions(predictions: Sequence[RankedPlayer]) -> list[RankedPlayer]:
    """予測を順位順に並べる（順位なしの場合はリスト順、同順位は入力順）"""
    if any(p.rank is None for p in predictions):
        return list(predictions)
    return sorted(predictions, key=lambda p: p.rank)


def top_n_accuracy(
    predictions: Sequence[RankedPlayer], actual_finishes: Mapping[str, int], n: int
) -> float:
    """Top-N的中率を計算する

    予測上位N人のうち、実際にN位以内に入った選手の割合を計算する。

    Args:
        predictions: 予測リスト
        actual_finishes: 選手ID -> 実着順
        n: 上位N

    Returns:
        的中率（0-100）。分母は予測上位N人の人数。
        予測が明示的な順位を持たない場合の分母はn
    """
    if not predictions or not actual_finishes or n < 1:
        return 0.0

    has_rank = all(p.rank is not None for p in predictions)
    top_predicted = order_predictions(predictions)[:n]
    hits = 0
    for p in top_predicted:
        finish = actual_finishes.get(p.player_id)
        if finish is not None and finish <= n:
            hits += 1

    denominator = len(top_predicted) if has_rank else n
    if denominator == 0:
        return 0.0

    return 100.0 * hits / denominator
