"""複数年検証モジュール

固定のWeightSetを過去の複数年・複数大会に適用し、イベント単位のフォールドで評価して
フォールド / 年 / 全体の順に一致選手数で加重集約する。
2つのWeightSet（ベースラインと最適化後）の差分から解釈ラベルを付けるが、
これは決定的なルール表によるヒューリスティックであり統計的検定ではない。
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from powerrank.config.run_config import RunConfig
from powerrank.constants import (
    INTERPRETATION_IMPROVEMENT,
    INTERPRETATION_MIXED,
    INTERPRETATION_NO_MATERIAL_CHANGE,
    INTERPRETATION_REGRESSION,
    INTERPRETATION_STRONG_IMPROVEMENT,
    MATERIAL_CORRELATION_DELTA,
    MATERIAL_RMSE_DELTA,
    MATERIAL_WEIGHTED_TOP20_DELTA,
)
from powerrank.evaluation.evaluator import (
    EvaluationResult,
    RankingEvaluator,
    StressTestResult,
)
from powerrank.ml.cross_validator import CrossValidator
from powerrank.models.records import FeatureVector, OutcomeLabel
from powerrank.optimizer.search import RankingGenerator
from powerrank.weights.weight_set import WeightSet

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class HistoricalEvent:
    """過去の1大会分のデータ"""

    year: int
    event_id: str
    field: tuple[FeatureVector, ...]
    outcomes: tuple[OutcomeLabel, ...]


@dataclass(frozen=True)
class FoldEvaluation:
    """1フォールド（1つ以上の大会）の評価"""

    fold_index: int
    event_ids: tuple[str, ...]
    evaluation: EvaluationResult


@dataclass(frozen=True)
class YearSummary:
    """1年分の集約結果"""

    year: int
    event_count: int
    folds: tuple[FoldEvaluation, ...]
    evaluation: EvaluationResult
    stress: StressTestResult


@dataclass(frozen=True)
class MultiYearSummary:
    """複数年の集約結果

    大会がない場合は status="unavailable" と reason を持つ。
    """

    status: str
    event_count: int = 0
    reason: str | None = None
    years: tuple[YearSummary, ...] = ()
    overall: EvaluationResult | None = None

    @property
    def available(self) -> bool:
        return self.status == STATUS_OK


@dataclass(frozen=True)
class MetricDeltas:
    """最適化後 - ベースライン の差分"""

    correlation: float
    rmse: float
    top20_weighted: float


@dataclass(frozen=True)
class ComparisonResult:
    """ベースラインと最適化後の比較結果"""

    baseline: MultiYearSummary
    optimized: MultiYearSummary
    interpretation: str
    deltas: MetricDeltas | None = None
    improvements: tuple[str, ...] = field(default=())
    regressions: tuple[str, ...] = field(default=())


def interpret_deltas(deltas: MetricDeltas) -> tuple[str, tuple[str, ...], tuple[str, ...]]:
    """差分から解釈ラベルを決める

    相関・加重Top-20は増加、RMSEは減少を改善とする。閾値未満の変化は無視する。

    | 改善 | 悪化 | ラベル |
    |------|------|--------|
    | なし | なし | no_material_change |
    | 3項目すべて | なし | strong_improvement |
    | あり | なし | improvement |
    | なし | あり | regression |
    | あり | あり | mixed |

    Returns:
        (ラベル, 改善した項目, 悪化した項目)
    """
    improvements = []
    regressions = []

    if deltas.correlation >= MATERIAL_CORRELATION_DELTA:
        improvements.append("correlation")
    elif deltas.correlation <= -MATERIAL_CORRELATION_DELTA:
        regressions.append("correlation")

    if deltas.rmse <= -MATERIAL_RMSE_DELTA:
        improvements.append("rmse")
    elif deltas.rmse >= MATERIAL_RMSE_DELTA:
        regressions.append("rmse")

    if deltas.top20_weighted >= MATERIAL_WEIGHTED_TOP20_DELTA:
        improvements.append("top20_weighted")
    elif deltas.top20_weighted <= -MATERIAL_WEIGHTED_TOP20_DELTA:
        regressions.append("top20_weighted")

    if not improvements and not regressions:
        label = INTERPRETATION_NO_MATERIAL_CHANGE
    elif improvements and regressions:
        label = INTERPRETATION_MIXED
    elif regressions:
        label = INTERPRETATION_REGRESSION
    elif len(improvements) == 3:
        label = INTERPRETATION_STRONG_IMPROVEMENT
    else:
        label = INTERPRETATION_IMPROVEMENT
    return label, tuple(improvements), tuple(regressions)


class MultiYearValidationRunner:
    """固定のWeightSetを複数年にわたって再検証するクラス"""

    def __init__(
        self,
        ranking_generator: RankingGenerator,
        evaluator: RankingEvaluator | None = None,
        cross_validator: CrossValidator | None = None,
        config: RunConfig | None = None,
    ):
        """初期化

        Args:
            ranking_generator: ランキング生成器
            evaluator: 評価器（Noneの場合はconfigから生成）
            cross_validator: フォールド分割に使うクロスバリデータ
            config: 実行設定
        """
        self._config = config or RunConfig()
        self._generator = ranking_generator
        self._evaluator = evaluator or RankingEvaluator(self._config)
        self._cross_validator = cross_validator or CrossValidator(self._config)

    def evaluate_event(
        self, weight_set: WeightSet, event: HistoricalEvent
    ) -> EvaluationResult:
        """1大会をランキングして評価する"""
        predictions = self._generator.rank_players(event.field, weight_set)
        return self._evaluator.evaluate(predictions, event.outcomes)

    @staticmethod
    def _group_by_year(
        events: Sequence[HistoricalEvent],
    ) -> dict[int, list[HistoricalEvent]]:
        by_year: dict[int, list[HistoricalEvent]] = {}
        for event in events:
            by_year.setdefault(event.year, []).append(event)
        return by_year

    def plan_folds(
        self, events: Sequence[HistoricalEvent]
    ) -> dict[int, list[list[str]]]:
        """年ごとのフォールド分割（イベントIDのリスト）を決める"""
        return {
            year: self._cross_validator.build_folds([e.event_id for e in year_events])
            for year, year_events in self._group_by_year(events).items()
        }

    def _run_year(
        self,
        year: int,
        events: Sequence[HistoricalEvent],
        weight_set: WeightSet,
        folds: Sequence[Sequence[str]],
    ) -> YearSummary:
        by_id: dict[str, list[HistoricalEvent]] = {}
        for event in events:
            by_id.setdefault(str(event.event_id), []).append(event)

        fold_results = []
        for fold_index, event_ids in enumerate(folds):
            evaluations = [
                self.evaluate_event(weight_set, event)
                for event_id in event_ids
                for event in by_id.get(str(event_id), [])
            ]
            fold_results.append(
                FoldEvaluation(
                    fold_index=fold_index,
                    event_ids=tuple(event_ids),
                    evaluation=self._evaluator.aggregate(evaluations),
                )
            )

        aggregate = self._evaluator.aggregate([f.evaluation for f in fold_results])
        logger.debug(
            "Year %d: %d events, %d folds, correlation=%.4f",
            year,
            len(events),
            len(fold_results),
            aggregate.correlation,
        )
        return YearSummary(
            year=year,
            event_count=len(events),
            folds=tuple(fold_results),
            evaluation=aggregate,
            stress=self._evaluator.stress_test(aggregate),
        )

    def run(
        self,
        weight_set: WeightSet,
        events: Sequence[HistoricalEvent],
        fold_plan: Mapping[int, Sequence[Sequence[str]]] | None = None,
    ) -> MultiYearSummary:
        """全年を評価して集約する

        Args:
            weight_set: 検証する重みセット
            events: 過去の大会
            fold_plan: 年 -> フォールド分割（Noneの場合はplan_foldsで決める）

        Returns:
            MultiYearSummary（大会がない場合は status="unavailable"）
        """
        if not events:
            logger.warning("Multi-year validation unavailable: no events")
            return MultiYearSummary(status=STATUS_UNAVAILABLE, reason="no events")

        by_year = self._group_by_year(events)
        if fold_plan is None:
            fold_plan = self.plan_folds(events)
        years = tuple(
            self._run_year(year, by_year[year], weight_set, fold_plan[year])
            for year in sorted(by_year)
        )
        overall = self._evaluator.aggregate([y.evaluation for y in years])
        if overall.matched_players == 0:
            logger.warning("Multi-year validation unavailable: no matched players")
            return MultiYearSummary(
                status=STATUS_UNAVAILABLE,
                event_count=len(events),
                reason="no matched players",
                years=years,
                overall=overall,
            )

        return MultiYearSummary(
            status=STATUS_OK,
            event_count=len(events),
            years=years,
            overall=overall,
        )

    def compare(
        self,
        baseline: WeightSet,
        optimized: WeightSet,
        events: Sequence[HistoricalEvent],
    ) -> ComparisonResult:
        """ベースラインと最適化後の重みセットを同じ大会群で比較する

        両者には同じフォールド分割を使うため、フォールド単位でも比較できる。
        どちらかの集約が得られない場合は差分なしで no_material_change とする。
        """
        fold_plan = self.plan_folds(events)
        baseline_summary = self.run(baseline, events, fold_plan)
        optimized_summary = self.run(optimized, events, fold_plan)

        if not (baseline_summary.available and optimized_summary.available):
            return ComparisonResult(
                baseline=baseline_summary,
                optimized=optimized_summary,
                interpretation=INTERPRETATION_NO_MATERIAL_CHANGE,
            )

        before = baseline_summary.overall
        after = optimized_summary.overall
        deltas = MetricDeltas(
            correlation=after.correlation - before.correlation,
            rmse=after.rmse - before.rmse,
            top20_weighted=after.top20_weighted - before.top20_weighted,
        )
        label, improvements, regressions = interpret_deltas(deltas)
        logger.info(
            "Comparison: %s (correlation %+.4f, rmse %+.3f, weighted top-20 %+.2f)",
            label,
            deltas.correlation,
            deltas.rmse,
            deltas.top20_weighted,
        )
        return ComparisonResult(
            baseline=baseline_summary,
            optimized=optimized_summary,
            interpretation=label,
            deltas=deltas,
            improvements=improvements,
            regressions=regressions,
        )
