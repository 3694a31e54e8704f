"""ウェイト正規化ユーティリティ"""

from collections.abc import Mapping


def normalize(weights: Mapping[str, float]) -> dict[str, float]:
    """合計が1になるよう各値を合計で割る

    合計がちょうど0の場合は入力をそのまま（コピーして）返す。

    Args:
        weights: キー -> 重み

    Returns:
        正規化した重み
    """
    total = sum(weights.values())
    if total == 0:
        return dict(weights)
    return {key: value / total for key, value in weights.items()}


def normalize_abs(weights: Mapping[str, float]) -> dict[str, float]:
    """絶対値の合計が1になるよう正規化する

    符号は保持したまま大きさだけを調整する（符号反転メトリクス用）。
    絶対値の合計が0の場合は入力をそのまま返す。

    Args:
        weights: キー -> 重み

    Returns:
        正規化した重み
    """
    total = sum(abs(value) for value in weights.values())
    if total == 0:
        return dict(weights)
    return {key: value / total for key, value in weights.items()}
