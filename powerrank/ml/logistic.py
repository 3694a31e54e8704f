"""ロジスティック回帰モジュール

「N位以内に入るか」を予測するL2正則化ロジスティック回帰を実装する。
特徴量は学習データの平均・標準偏差で標準化し、全バッチ勾配降下法で
固定回数だけ更新する（早期終了なし）。同じ入力・設定なら結果は決定的。
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from scipy.special import expit

from powerrank.constants import LOG_LOSS_EPSILON, MIN_TRAINING_SAMPLES


@dataclass(frozen=True)
class ClassifierModel:
    """学習済みモデル（標準化パラメータを含む）"""

    weights: tuple[float, ...]
    bias: float
    means: tuple[float, ...]
    stds: tuple[float, ...]
    l2: float


@dataclass(frozen=True)
class TrainingResult:
    """学習結果

    学習できなかった場合は success=False と reason を持ち、
    メトリクスはNoneになる。
    """

    success: bool
    samples: int
    reason: str | None = None
    accuracy: float | None = None
    log_loss: float | None = None
    bias: float | None = None
    weights: tuple[float, ...] = ()
    weight_ranking: tuple[tuple[str, float], ...] = ()
    model: ClassifierModel | None = field(default=None, repr=False)

    @property
    def sample_count(self) -> int:
        return self.samples


def build_top_n_labels(finish_positions: Sequence[int], top_n: int) -> list[int]:
    """着順を「N位以内なら1」の二値ラベルに変換する"""
    return [1 if p is not None and p <= top_n else 0 for p in finish_positions]


def log_loss(
    y_true: Sequence[int], probabilities: Sequence[float], eps: float = LOG_LOSS_EPSILON
) -> float:
    """平滑化付きの対数損失

    log(0) を避けるため確率に eps を加算する。
    """
    y = np.asarray(y_true, dtype=float)
    p = np.asarray(probabilities, dtype=float)
    if len(y) == 0:
        return 0.0
    losses = -(y * np.log(p + eps) + (1 - y) * np.log(1 - p + eps))
    return float(np.mean(losses))


def accuracy(y_true: Sequence[int], probabilities: Sequence[float]) -> float:
    """閾値0.5での正解率"""
    y = np.asarray(y_true, dtype=int)
    if len(y) == 0:
        return 0.0
    predicted = (np.asarray(probabilities, dtype=float) >= 0.5).astype(int)
    return float(np.mean(predicted == y))


class LogisticClassifier:
    """L2正則化ロジスティック回帰"""

    def __init__(
        self,
        iterations: int = 350,
        learning_rate: float = 0.1,
        l2: float = 0.0,
        min_samples: int = MIN_TRAINING_SAMPLES,
    ):
        """初期化

        Args:
            iterations: 勾配降下の反復回数
            learning_rate: 学習率
            l2: L2正則化の強さ（重みの勾配にのみ加算、バイアスには加算しない）
            min_samples: 学習に必要な最小サンプル数
        """
        self.iterations = iterations
        self.learning_rate = learning_rate
        self.l2 = l2
        self.min_samples = min_samples
        self.model: ClassifierModel | None = None

    def _validate(
        self, features: Sequence[Sequence[float]], labels: Sequence[int]
    ) -> str | None:
        """学習可能か判定し、不可能な場合は理由を返す"""
        if len(features) != len(labels):
            return "feature/label count mismatch"
        if len(features) == 0 or len(features) < self.min_samples:
            return "insufficient samples"
        width = len(features[0])
        if width == 0:
            return "no features"
        if any(len(row) != width for row in features):
            return "inconsistent feature dimensions"
        return None

    def train(
        self,
        features: Sequence[Sequence[float]],
        labels: Sequence[int],
        feature_names: Sequence[str] | None = None,
    ) -> TrainingResult:
        """モデルを学習する

        データ不足や次元不一致の場合は例外を送出せず、success=False の結果を返す。

        Args:
            features: 特徴量行列 (n_samples, n_features)
            labels: ラベル (n_samples,) - 1: N位以内, 0: それ以外
            feature_names: weight_ranking 用の特徴量名（Noneの場合はインデックス）

        Returns:
            TrainingResult
        """
        reason = self._validate(features, labels)
        if reason is not None:
            return TrainingResult(success=False, samples=len(features), reason=reason)

        X = np.asarray(features, dtype=float)
        y = np.asarray(labels, dtype=float)
        n_samples, n_features = X.shape

        means = X.mean(axis=0)
        stds = X.std(axis=0)
        # ゼロ分散の特徴量はゼロ除算を避けるため1とする
        stds = np.where(stds == 0, 1.0, stds)
        Xs = (X - means) / stds

        weights = np.zeros(n_features)
        bias = 0.0
        for _ in range(self.iterations):
            probabilities = expit(Xs @ weights + bias)
            error = probabilities - y
            grad_w = Xs.T @ error / n_samples + self.l2 * weights
            grad_b = float(error.mean())
            weights = weights - self.learning_rate * grad_w
            bias = bias - self.learning_rate * grad_b

        self.model = ClassifierModel(
            weights=tuple(float(w) for w in weights),
            bias=float(bias),
            means=tuple(float(m) for m in means),
            stds=tuple(float(s) for s in stds),
            l2=self.l2,
        )

        probabilities = self.predict_proba(X)
        names = list(feature_names) if feature_names is not None else []
        ranking = sorted(
            (
                (names[i] if i < len(names) else str(i), float(w))
                for i, w in enumerate(weights)
            ),
            key=lambda item: abs(item[1]),
            reverse=True,
        )[:10]

        return TrainingResult(
            success=True,
            samples=n_samples,
            accuracy=accuracy(labels, probabilities),
            log_loss=log_loss(labels, probabilities),
            bias=float(bias),
            weights=self.model.weights,
            weight_ranking=tuple(ranking),
            model=self.model,
        )

    def predict_proba(
        self, features: Sequence[Sequence[float]], model: ClassifierModel | None = None
    ) -> np.ndarray:
        """N位以内に入る確率を予測する

        Args:
            features: 特徴量行列
            model: 使用するモデル（Noneの場合は学習済みモデル）

        Returns:
            確率の配列

        Raises:
            ValueError: モデルが学習されていない場合、特徴量の次元が一致しない場合
        """
        model = model or self.model
        if model is None:
            raise ValueError("モデルが学習されていません")

        X = np.asarray(features, dtype=float)
        if X.size == 0:
            return np.zeros(0)
        if X.ndim != 2 or X.shape[1] != len(model.weights):
            raise ValueError(
                f"特徴量の次元が一致しません（expected {len(model.weights)}）"
            )
        Xs = (X - np.asarray(model.means)) / np.asarray(model.stds)
        return expit(Xs @ np.asarray(model.weights) + model.bias)

    def evaluate(
        self,
        features: Sequence[Sequence[float]],
        labels: Sequence[int],
        model: ClassifierModel | None = None,
    ) -> dict[str, float]:
        """正解率と対数損失を計算する

        Returns:
            {"accuracy": float, "log_loss": float}
        """
        probabilities = self.predict_proba(features, model)
        return {
            "accuracy": accuracy(labels, probabilities),
            "log_loss": log_loss(labels, probabilities),
        }
