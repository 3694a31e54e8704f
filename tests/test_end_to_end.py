"""特徴量生成から重み最適化までの結合テスト"""

import pytest

from powerrank.analyzers.score_calculator import ScoreCalculator
from powerrank.config.run_config import RunConfig
from powerrank.evaluation.calibration import build_event_calibration
from powerrank.evaluation.evaluator import RankingEvaluator
from powerrank.ml.feature_builder import FeatureBuilder
from powerrank.ml.logistic import LogisticClassifier
from powerrank.models.records import MetricSpec, OutcomeLabel
from powerrank.optimizer.search import RandomSearchOptimizer
from powerrank.repositories.template_repository import InMemoryTemplateRepository
from powerrank.stats.correlation import compute_metric_correlations
from powerrank.stats.rank_statistics import top_n_accuracy
from powerrank.weights.template_blend import blend_template_weights, build_signal_map
from powerrank.weights.weight_set import WeightSet

FIELD_SIZE = 25
METRICS = ["Scoring Average", "Flat 1", "Flat 2", "Flat 3", "Flat 4"]


@pytest.fixture
def specs():
    # Scoring Averageは小さいほど良い
    return [
        MetricSpec(label, index, lower_better=(index == 0))
        for index, label in enumerate(METRICS)
    ]


@pytest.fixture
def event(specs):
    """Scoring Averageだけが着順と完全に一致する大会"""
    builder = FeatureBuilder.from_config(specs, RunConfig(seed="e2e-seed"))
    field = [
        builder.build_vector(f"player-{finish:02d}", [68.0 + finish * 0.1, 1.0, 1.0, 1.0, 1.0])
        for finish in range(FIELD_SIZE, 0, -1)
    ]
    outcomes = [
        OutcomeLabel(f"player-{finish:02d}", finish) for finish in range(1, FIELD_SIZE + 1)
    ]
    return builder, field, outcomes


class TestPipeline:
    """シグナル抽出 → テンプレートブレンド → ランダム探索の流れ"""

    def test_weight_concentrates_on_signal_metric(self, specs, event):
        """有効なメトリクスに重みが集まる"""
        builder, field, outcomes = event

        config = RunConfig(seed="e2e-seed")
        correlations = compute_metric_correlations(
            specs, field, outcomes, min_samples=config.min_correlation_samples
        )
        assert correlations[0].correlation == pytest.approx(1.0)
        assert all(entry.correlation == 0.0 for entry in correlations[1:])

        samples = builder.build_training_samples("genesis", field, outcomes)
        assert len(samples) == FIELD_SIZE
        training = LogisticClassifier().train(
            [s.features for s in samples],
            [s.label for s in samples],
            feature_names=builder.metric_labels,
        )
        assert training.success
        assert training.weight_ranking[0][0] == "Scoring Average"

        signal_map = build_signal_map(correlations, training, builder.metric_labels)
        assert max(signal_map, key=lambda k: abs(signal_map[k])) == "Scoring Average"

        template = WeightSet.uniform({"Core": METRICS})
        blended = blend_template_weights(
            template, signal_map, {"guardrails": {"max_group_weight": 1.0}}
        ).weight_set

        optimizer = RandomSearchOptimizer(ScoreCalculator(specs), config=config)
        result = optimizer.optimize(blended, field, outcomes, signal_map, max_tests=500)

        effective = result.weight_set.effective_weights()
        assert max(effective, key=lambda k: abs(effective[k])) == "Scoring Average"
        assert result.best.evaluation.top20 == 100.0

        predictions = ScoreCalculator(specs).rank_players(field, result.weight_set)
        finishes = {o.player_id: o.finish_position for o in outcomes}
        assert top_n_accuracy(predictions, finishes, 20) == 100.0

    def test_saved_result_can_be_reevaluated(self, specs, event):
        """最適化結果を保存して再評価できる"""
        _, field, outcomes = event
        calculator = ScoreCalculator(specs)
        config = RunConfig(seed="e2e-seed")
        seed_weights = WeightSet.uniform({"Core": METRICS})

        result = RandomSearchOptimizer(calculator, config=config).optimize(
            seed_weights, field, outcomes, max_tests=50
        )
        repository = InMemoryTemplateRepository()
        repository.put("genesis", result.weight_set)

        predictions = calculator.rank_players(field, repository.get("genesis"))
        evaluation = RankingEvaluator(config).evaluate(predictions, outcomes)
        calibration = build_event_calibration(predictions, outcomes, "genesis")

        assert evaluation.correlation == pytest.approx(1.0)
        assert evaluation.matched_players == FIELD_SIZE
        assert calibration.total_top10 == 10
        assert calibration.avg_miss_top10 == 0.0
