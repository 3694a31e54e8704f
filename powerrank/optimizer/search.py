"""ランダム探索オプティマイザ

シードとなるWeightSetのグループ重み・メトリクス重みをランダムに揺らし、
ランキング生成 → 評価 → シグナルマップとの整合度 から総合スコアを計算して
最良の候補を選ぶ。試行回数は固定（収束判定なし）。

各試行はシードから独立に摂動を作るため、試行間で状態を共有しない。
最良候補の選択は (総合スコア, 相関, -試行番号) の最大値による決定的な縮約で、
評価順序に依存しない。
"""

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from powerrank.config.run_config import RunConfig, ScoreWeights
from powerrank.evaluation.evaluator import EvaluationResult, RankingEvaluator
from powerrank.models.records import FeatureVector, OutcomeLabel, RankedPlayer
from powerrank.optimizer.random_source import (
    RandomSource,
    SeededRandomSource,
    randint,
    sample,
    uniform,
)
from powerrank.weights.blender import GuardrailBand
from powerrank.weights.normalization import normalize, normalize_abs
from powerrank.weights.weight_set import WeightSet

logger = logging.getLogger(__name__)

# 進捗ログの間隔（試行数）
PROGRESS_LOG_INTERVAL = 100


class RankingGenerator(Protocol):
    """WeightSetから選手ランキングを生成するコラボレータ"""

    def rank_players(
        self, field: Sequence[FeatureVector], weight_set: WeightSet
    ) -> list[RankedPlayer]:
        ...


@dataclass(frozen=True)
class CombinedScore:
    """オプティマイザの適合度

    各要素は0-1に正規化済み。
    """

    correlation_score: float
    top20_composite_score: float
    alignment_score: float
    combined_score: float


@dataclass(frozen=True)
class TrialResult:
    """1試行の結果（trial_index=0はシードそのもの）"""

    trial_index: int
    weight_set: WeightSet
    evaluation: EvaluationResult
    alignment: float
    score: CombinedScore

    @property
    def selection_key(self) -> tuple[float, float, int]:
        return (self.score.combined_score, self.evaluation.correlation, -self.trial_index)


@dataclass(frozen=True)
class OptimizationResult:
    """最適化結果"""

    baseline: TrialResult
    best: TrialResult
    trials_run: int
    failed_trials: int = 0
    seed: str | None = None
    history: tuple[TrialResult, ...] = field(default=(), repr=False)

    @property
    def improved(self) -> bool:
        return self.best.trial_index != self.baseline.trial_index

    @property
    def weight_set(self) -> WeightSet:
        return self.best.weight_set


def alignment_score(weight_set: WeightSet, signal_map: Mapping[str, float]) -> float:
    """実効重みとシグナルマップのコサイン類似度

    Args:
        weight_set: 重みセット
        signal_map: メトリクス名 -> シグナル

    Returns:
        類似度（-1.0 to 1.0）。どちらかがゼロベクトルの場合は0.0
    """
    effective = weight_set.effective_weights()
    keys = list(effective)
    keys.extend(k for k in signal_map if k not in effective)

    dot = sum(effective.get(k, 0.0) * signal_map.get(k, 0.0) for k in keys)
    norm_w = math.sqrt(sum(v * v for v in effective.values()))
    norm_s = math.sqrt(sum(v * v for v in signal_map.values()))
    if norm_w == 0 or norm_s == 0:
        return 0.0
    return float(min(1.0, max(-1.0, dot / (norm_w * norm_s))))


def combined_score(
    evaluation: EvaluationResult,
    alignment: float,
    weights: ScoreWeights | None = None,
) -> CombinedScore:
    """評価結果と整合度から総合スコアを計算する

    combined = w_corr * (相関+1)/2 + w_top20 * top20複合 + w_align * (整合度+1)/2
    top20複合 = a * top20/100 + b * 加重top20/100
    """
    weights = weights or ScoreWeights()
    correlation_component = (evaluation.correlation + 1) / 2
    top20_component = (
        weights.top20_accuracy_share * evaluation.top20 / 100
        + weights.top20_weighted_share * evaluation.top20_weighted / 100
    )
    alignment_component = (alignment + 1) / 2
    return CombinedScore(
        correlation_score=correlation_component,
        top20_composite_score=top20_component,
        alignment_score=alignment_component,
        combined_score=weights.correlation * correlation_component
        + weights.top20_composite * top20_component
        + weights.alignment * alignment_component,
    )


def select_best(trials: Sequence[TrialResult]) -> TrialResult:
    """(総合スコア, 相関, -試行番号) が最大の試行を返す

    Raises:
        ValueError: 試行が空の場合
    """
    if not trials:
        raise ValueError("No trials to select from")
    return max(trials, key=lambda t: t.selection_key)


class RandomSearchOptimizer:
    """ランダム摂動による重み探索を行うクラス"""

    def __init__(
        self,
        ranking_generator: RankingGenerator,
        evaluator: RankingEvaluator | None = None,
        config: RunConfig | None = None,
        random_source: RandomSource | None = None,
    ):
        """初期化

        Args:
            ranking_generator: ランキング生成器（試行ごとに1回呼ばれる）
            evaluator: 評価器（Noneの場合はconfigから生成）
            config: 実行設定
            random_source: 乱数ソース（Noneの場合はconfig.seedで初期化）
        """
        self._generator = ranking_generator
        self._config = config or RunConfig()
        self._evaluator = evaluator or RankingEvaluator(self._config)
        self._random = random_source or SeededRandomSource(self._config.seed)

    def perturb(
        self,
        weight_set: WeightSet,
        bands: Mapping[str, GuardrailBand] | None = None,
    ) -> WeightSet:
        """重みセットをランダムに摂動した新しいWeightSetを返す

        1. 2-3個のグループを選び、それぞれ 1 + U(-20%, +20%) 倍して正規化
        2. 全メトリクス重みを 1 + U(-15%, +15%) 倍し、ガードレールにクランプして
           グループ内で正規化
        """
        config = self._config
        bands = bands or {}

        groups = list(weight_set.group_weights)
        group_weights = dict(weight_set.group_weights)
        if groups:
            count = randint(
                self._random,
                min(config.min_groups_perturbed, len(groups)),
                min(config.max_groups_perturbed, len(groups)),
            )
            for group in sample(self._random, groups, count):
                factor = 1 + uniform(
                    self._random, -config.group_perturbation, config.group_perturbation
                )
                group_weights[group] = group_weights[group] * factor
            group_weights = normalize(group_weights)

        metric_weights = {}
        for group, metrics in weight_set.metric_weights.items():
            perturbed = {}
            for metric, weight in metrics.items():
                factor = 1 + uniform(
                    self._random, -config.metric_perturbation, config.metric_perturbation
                )
                value = weight * factor
                band = bands.get(metric)
                if band is not None:
                    value = band.clamp(value)
                perturbed[metric] = value
            metric_weights[group] = normalize_abs(perturbed)

        return WeightSet(group_weights, metric_weights)

    def score(
        self,
        trial_index: int,
        weight_set: WeightSet,
        field: Sequence[FeatureVector],
        outcomes: Sequence[OutcomeLabel],
        signal_map: Mapping[str, float],
    ) -> TrialResult:
        """候補の重みセットを評価する"""
        predictions = self._generator.rank_players(field, weight_set)
        evaluation = self._evaluator.evaluate(predictions, outcomes)
        alignment = alignment_score(weight_set, signal_map)
        return TrialResult(
            trial_index=trial_index,
            weight_set=weight_set,
            evaluation=evaluation,
            alignment=alignment,
            score=combined_score(evaluation, alignment, self._config.score_weights),
        )

    def optimize(
        self,
        seed_weights: WeightSet,
        field: Sequence[FeatureVector],
        outcomes: Sequence[OutcomeLabel],
        signal_map: Mapping[str, float] | None = None,
        bands: Mapping[str, GuardrailBand] | None = None,
        max_tests: int | None = None,
    ) -> OptimizationResult:
        """シードの周辺を探索して最良の重みセットを返す

        Args:
            seed_weights: 探索の起点（事前テンプレートまたはブレンド結果）
            field: 出場選手の特徴ベクトル
            outcomes: 実着順
            signal_map: メトリクス名 -> シグナル（整合度の計算に使用）
            bands: メトリクス名 -> ガードレール
            max_tests: 試行回数（Noneの場合はconfig.max_tests）

        Returns:
            OptimizationResult（改善がない場合はベースラインがbest）

        Raises:
            ValueError: ランキング生成器が全ての摂動候補を拒否した場合
        """
        signal_map = signal_map or {}
        max_tests = self._config.max_tests if max_tests is None else max_tests

        baseline = self.score(0, seed_weights, field, outcomes, signal_map)
        logger.info(
            "Baseline: combined=%.4f correlation=%.4f top20=%.1f",
            baseline.score.combined_score,
            baseline.evaluation.correlation,
            baseline.evaluation.top20,
        )

        trials = [baseline]
        failed = 0
        last_error: ValueError | None = None
        for trial_index in range(1, max_tests + 1):
            candidate = self.perturb(seed_weights, bands)
            try:
                trials.append(
                    self.score(trial_index, candidate, field, outcomes, signal_map)
                )
            except ValueError as e:
                failed += 1
                last_error = e
                logger.warning("Trial %d skipped: ranking failed (%s)", trial_index, e)
                continue

            if trial_index % PROGRESS_LOG_INTERVAL == 0:
                current = select_best(trials)
                logger.debug(
                    "Trial %d/%d: best combined=%.4f (trial %d)",
                    trial_index,
                    max_tests,
                    current.score.combined_score,
                    current.trial_index,
                )

        if max_tests > 0 and failed == max_tests:
            raise ValueError(
                f"Ranking generator rejected all {max_tests} perturbed candidates"
            ) from last_error

        best = select_best(trials)
        logger.info(
            "Optimization finished: %d trials, best trial %d combined=%.4f "
            "(baseline %.4f)",
            max_tests,
            best.trial_index,
            best.score.combined_score,
            baseline.score.combined_score,
        )
        return OptimizationResult(
            baseline=baseline,
            best=best,
            trials_run=max_tests,
            failed_trials=failed,
            seed=getattr(self._random, "seed", None),
            history=tuple(trials),
        )
