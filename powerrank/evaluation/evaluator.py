"""ランキング評価モジュール

予測ランキングと実着順を突き合わせ、順位相関・誤差・Top-N的中率・
加重Top-20スコアを計算する。部分的な結果しかない場合のsubsetモードと、
フィールドサイズの異なる大会を比較するためのpercentileモードを持つ。
"""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass

import numpy as np

from powerrank.config.run_config import RunConfig, StressThresholds
from powerrank.models.records import OutcomeLabel, RankedPlayer
from powerrank.stats.rank_statistics import (
    mae,
    rank,
    rmse,
    spearman,
    top_n_accuracy,
    weighted_top_n,
)
from powerrank.utils.finish_parser import dedupe_best_finish

logger = logging.getLogger(__name__)

MODE_FULL = "full"
MODE_SUBSET = "subset"
MODE_PERCENTILE = "percentile"
SCORING_MODES = (MODE_FULL, MODE_SUBSET, MODE_PERCENTILE)

STRESS_PASS = "pass"
STRESS_FAIL = "fail"

# 加重平均で集約する項目
_AGGREGATED_FIELDS = (
    "correlation",
    "rmse",
    "mae",
    "mean_error",
    "std_error",
    "top10",
    "top20",
    "top20_weighted",
)


@dataclass(frozen=True)
class EvaluationResult:
    """1大会（または集約）の評価結果

    top10 / top20 / top20_weighted は0-100のパーセント値。
    """

    correlation: float = 0.0
    rmse: float = 0.0
    mae: float = 0.0
    mean_error: float = 0.0
    std_error: float = 0.0
    top10: float = 0.0
    top20: float = 0.0
    top20_weighted: float = 0.0
    matched_players: int = 0
    mode: str = MODE_FULL

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StressTestResult:
    """ストレステスト結果"""

    status: str
    reasons: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status == STRESS_PASS


@dataclass(frozen=True)
class _MatchedPlayer:
    player_id: str
    predicted_rank: float
    actual_finish: float


class RankingEvaluator:
    """予測ランキングの精度を評価するクラス"""

    def __init__(self, config: RunConfig | None = None):
        """初期化

        Args:
            config: 実行設定（着順なしの扱いとストレステスト閾値を参照）
        """
        self._config = config or RunConfig()

    def build_finish_lookup(self, outcomes: Sequence[OutcomeLabel]) -> dict[str, int]:
        """選手ID -> 着順 の辞書を作る

        同一選手は最良着順に集約する。assign_missing_finish が有効な場合、
        着順なしの選手には「最大着順 + 1」を割り当てる。
        """
        deduped = dedupe_best_finish(list(outcomes))
        positions = [o.finish_position for o in deduped if o.finish_position is not None]
        fallback = max(positions) + 1 if positions else None

        lookup: dict[str, int] = {}
        for outcome in deduped:
            finish = outcome.finish_position
            if finish is None and self._config.assign_missing_finish:
                finish = fallback
            if finish is not None:
                lookup[outcome.player_id] = finish
        return lookup

    @staticmethod
    def _match(
        predictions: Sequence[RankedPlayer], lookup: dict[str, int]
    ) -> list[_MatchedPlayer]:
        matched = []
        seen: set[str] = set()
        for idx, prediction in enumerate(predictions):
            player_id = prediction.player_id
            if player_id in seen or player_id not in lookup:
                continue
            seen.add(player_id)
            predicted_rank = prediction.rank if prediction.rank is not None else idx + 1
            matched.append(
                _MatchedPlayer(player_id, float(predicted_rank), float(lookup[player_id]))
            )
        return sorted(matched, key=lambda m: m.predicted_rank)

    @staticmethod
    def _rebase_subset(matched: list[_MatchedPlayer]) -> list[_MatchedPlayer]:
        """一致した選手の中だけで予測順位・実着順を振り直す"""
        actual = rank([m.actual_finish for m in matched])
        return [
            _MatchedPlayer(m.player_id, float(position), actual[position - 1])
            for position, m in enumerate(matched, start=1)
        ]

    @staticmethod
    def _to_percentile(value: float, size: float) -> float:
        if size <= 1:
            return 0.0
        return (value - 1) / (size - 1)

    def evaluate(
        self,
        predictions: Sequence[RankedPlayer],
        outcomes: Sequence[OutcomeLabel],
        mode: str = MODE_FULL,
    ) -> EvaluationResult:
        """予測ランキングを評価する

        実着順のない選手は評価から除外する（ペナルティは与えない）。

        Args:
            predictions: 予測ランキング（rankがNoneの場合はリスト順）
            outcomes: 実着順
            mode: "full" / "subset" / "percentile"

        Returns:
            EvaluationResult。一致する選手がいない場合は全て0

        Raises:
            ValueError: modeが不正な場合
        """
        if mode not in SCORING_MODES:
            raise ValueError(f"Unknown scoring mode: {mode}")

        lookup = self.build_finish_lookup(outcomes)
        matched = self._match(predictions, lookup)
        if not matched:
            logger.debug("No matched players among %d predictions", len(predictions))
            return EvaluationResult(mode=mode)

        if mode == MODE_SUBSET:
            matched = self._rebase_subset(matched)

        finishes = {m.player_id: m.actual_finish for m in matched}
        ranked = [RankedPlayer(m.player_id, m.predicted_rank) for m in matched]
        ordered_ids = [m.player_id for m in matched]

        predicted = [m.predicted_rank for m in matched]
        actual = [m.actual_finish for m in matched]
        if mode == MODE_PERCENTILE:
            field_size = max(len(predictions), max(predicted))
            actual_size = max(lookup.values())
            predicted = [self._to_percentile(p, field_size) for p in predicted]
            actual = [self._to_percentile(a, actual_size) for a in actual]

        errors = np.asarray(predicted) - np.asarray(actual)
        return EvaluationResult(
            correlation=spearman(predicted, actual),
            rmse=rmse(predicted, actual),
            mae=mae(predicted, actual),
            mean_error=float(errors.mean()),
            std_error=float(errors.std()),
            top10=top_n_accuracy(ranked, finishes, 10),
            top20=top_n_accuracy(ranked, finishes, 20),
            top20_weighted=weighted_top_n(ordered_ids, finishes, 20),
            matched_players=len(matched),
            mode=mode,
        )

    @staticmethod
    def aggregate(results: Sequence[EvaluationResult]) -> EvaluationResult:
        """評価結果を一致選手数で加重平均する

        単純平均ではないため、選手数の少ないフォールドが全体を左右しない。

        Args:
            results: 評価結果のリスト

        Returns:
            集約したEvaluationResult（matched_playersは合計）。
            一致選手数の合計が0の場合は全て0
        """
        total = sum(r.matched_players for r in results)
        modes = {r.mode for r in results}
        mode = modes.pop() if len(modes) == 1 else MODE_FULL
        if total == 0:
            return EvaluationResult(mode=mode)

        values = {
            name: sum(getattr(r, name) * r.matched_players for r in results) / total
            for name in _AGGREGATED_FIELDS
        }
        return EvaluationResult(**values, matched_players=total, mode=mode)

    def stress_test(
        self,
        result: EvaluationResult,
        thresholds: StressThresholds | None = None,
    ) -> StressTestResult:
        """評価結果が判断に足るか判定する

        「重みが悪い」のか「判断できるだけのデータがない」のかを区別するための判定。

        Args:
            result: 評価結果
            thresholds: 下限値（Noneの場合は設定値）

        Returns:
            StressTestResult（failの場合は理由のリスト付き）
        """
        thresholds = thresholds or self._config.stress
        reasons = []
        if result.matched_players < thresholds.min_players:
            reasons.append(
                f"matched players {result.matched_players} < {thresholds.min_players}"
            )
        if result.correlation < thresholds.min_correlation:
            reasons.append(
                f"correlation {result.correlation:.3f} < {thresholds.min_correlation}"
            )
        if result.top20_weighted < thresholds.min_top20_weighted:
            reasons.append(
                f"weighted top-20 {result.top20_weighted:.1f} < "
                f"{thresholds.min_top20_weighted}"
            )

        if reasons:
            return StressTestResult(STRESS_FAIL, tuple(reasons))
        return StressTestResult(STRESS_PASS)
