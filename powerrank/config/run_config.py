"""実行設定

全コンポーネントに引き回すイミュータブルな設定値を定義する。
グローバル変数や環境変数を直接参照せず、このRunConfigを経由して設定を受け渡す。
"""

from dataclasses import dataclass, field, replace

from powerrank.config.weights import (
    BLEND_SHARES,
    COMBINED_SCORE_WEIGHTS,
    TOP20_COMPOSITE_WEIGHTS,
)
from powerrank.constants import (
    COVERAGE_THRESHOLD,
    L2_GRID,
    MIN_CORRELATION_SAMPLES,
    MIN_CV_EVENTS,
    MIN_FOLD_TEST_SAMPLES,
    MIN_FOLD_TRAIN_SAMPLES,
    MIN_TRAINING_SAMPLES,
)

_SUM_TOLERANCE = 1e-9


def _check_shares(name: str, values: dict[str, float]) -> None:
    """合成比率が非負かつ合計1.0であることを検証する"""
    if any(v < 0 for v in values.values()):
        raise ValueError(f"{name} must be non-negative: {values}")
    total = sum(values.values())
    if abs(total - 1.0) > _SUM_TOLERANCE:
        raise ValueError(f"{name} must sum to 1.0 (got {total:.6f})")


@dataclass(frozen=True)
class ScoreWeights:
    """オプティマイザ総合スコアの合成比率"""

    correlation: float = COMBINED_SCORE_WEIGHTS["correlation"]
    top20_composite: float = COMBINED_SCORE_WEIGHTS["top20_composite"]
    alignment: float = COMBINED_SCORE_WEIGHTS["alignment"]
    top20_accuracy_share: float = TOP20_COMPOSITE_WEIGHTS["accuracy"]
    top20_weighted_share: float = TOP20_COMPOSITE_WEIGHTS["weighted"]

    def __post_init__(self):
        _check_shares(
            "score weights",
            {
                "correlation": self.correlation,
                "top20_composite": self.top20_composite,
                "alignment": self.alignment,
            },
        )
        _check_shares(
            "top20 composite weights",
            {
                "accuracy": self.top20_accuracy_share,
                "weighted": self.top20_weighted_share,
            },
        )


@dataclass(frozen=True)
class BlendShares:
    """事前テンプレート / モデル提案 / 検証シグナルの合成比率"""

    prior: float = BLEND_SHARES["prior"]
    model: float = BLEND_SHARES["model"]
    validation: float = BLEND_SHARES["validation"]

    def __post_init__(self):
        _check_shares(
            "blend shares",
            {"prior": self.prior, "model": self.model, "validation": self.validation},
        )


@dataclass(frozen=True)
class StressThresholds:
    """ストレステストの下限値"""

    min_players: int = 20
    min_correlation: float = 0.1
    min_top20_weighted: float = 60.0


@dataclass(frozen=True)
class ReliabilityThresholds:
    """信頼度スコアの補間閾値

    品質スコアは good で1.0、bad で0.0となる線形補間。
    イベント数・サンプル数は min-1 で0.0、max で1.0となるランプ。
    """

    log_loss_good: float = 0.40
    log_loss_bad: float = 0.69
    accuracy_good: float = 0.80
    accuracy_bad: float = 0.55
    min_events: int = MIN_CV_EVENTS
    max_events: int = 8
    min_samples: int = 50
    max_samples: int = 500


@dataclass(frozen=True)
class RunConfig:
    """1回の実行で共有される設定

    Attributes:
        top_n: 分類ターゲット「N位以内」のN
        seed: 乱数シード（Noneの場合は非決定的）
        max_tests: オプティマイザの試行回数
        cv_folds: k-fold数（None/0/1/イベント数以上で leave-one-event-out）
        invert_disagreeing_lower_better: 学習相関の符号が期待と逆の
            「小さいほど良い」メトリクスを負の重みに反転するか
        assign_missing_finish: 着順なし（CUT/WD等）の選手に最下位+1を割り当てるか
    """

    top_n: int = 20
    seed: str | None = None
    max_tests: int = 1500
    # 相関・分類器
    coverage_threshold: float = COVERAGE_THRESHOLD
    min_correlation_samples: int = MIN_CORRELATION_SAMPLES
    min_training_samples: int = MIN_TRAINING_SAMPLES
    iterations: int = 350
    learning_rate: float = 0.1
    # クロスバリデーション
    cv_folds: int | None = None
    l2_grid: tuple[float, ...] = L2_GRID
    min_cv_events: int = MIN_CV_EVENTS
    min_fold_train: int = MIN_FOLD_TRAIN_SAMPLES
    min_fold_test: int = MIN_FOLD_TEST_SAMPLES
    reliability: ReliabilityThresholds = field(default_factory=ReliabilityThresholds)
    # オプティマイザ
    min_groups_perturbed: int = 2
    max_groups_perturbed: int = 3
    group_perturbation: float = 0.20
    metric_perturbation: float = 0.15
    score_weights: ScoreWeights = field(default_factory=ScoreWeights)
    # ブレンド・ガードレール
    blend_shares: BlendShares = field(default_factory=BlendShares)
    invert_disagreeing_lower_better: bool = True
    # 評価
    assign_missing_finish: bool = True
    stress: StressThresholds = field(default_factory=StressThresholds)

    def __post_init__(self):
        if self.top_n < 1:
            raise ValueError(f"top_n must be >= 1 (got {self.top_n})")
        if self.max_tests < 0:
            raise ValueError(f"max_tests must be >= 0 (got {self.max_tests})")
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1 (got {self.iterations})")
        if not 0.0 <= self.coverage_threshold <= 1.0:
            raise ValueError(
                f"coverage_threshold must be within [0, 1] (got {self.coverage_threshold})"
            )
        if not 1 <= self.min_groups_perturbed <= self.max_groups_perturbed:
            raise ValueError(
                "group perturbation count must satisfy 1 <= min <= max "
                f"(got {self.min_groups_perturbed}, {self.max_groups_perturbed})"
            )
        if not self.l2_grid:
            raise ValueError("l2_grid must not be empty")

    def replace(self, **changes) -> "RunConfig":
        """指定項目のみ変更したコピーを返す"""
        return replace(self, **changes)
