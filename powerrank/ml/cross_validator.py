"""イベント単位クロスバリデーションモジュール

同一イベントの行が学習側とテスト側に分かれると情報が漏洩するため、
サンプルをイベント単位でまとめてからフォールドに分割する。
L2正則化の強さをホールドアウトの対数損失で選択し、信頼度スコアを算出する。
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from sklearn.metrics import roc_auc_score

from powerrank.config.run_config import ReliabilityThresholds, RunConfig
from powerrank.ml.logistic import LogisticClassifier, TrainingResult
from powerrank.models.records import TrainingSample
from powerrank.optimizer.random_source import (
    RandomSource,
    SeededRandomSource,
    shuffle,
)

logger = logging.getLogger(__name__)

LEAVE_ONE_EVENT_OUT = "leave_one_event_out"
K_FOLD = "k_fold"


@dataclass(frozen=True)
class FoldMetrics:
    """1フォールドの評価結果"""

    fold_index: int
    train_samples: int
    test_samples: int
    accuracy: float
    log_loss: float
    auc: float | None = None


@dataclass(frozen=True)
class L2CandidateResult:
    """L2候補1つ分のクロスバリデーション結果"""

    l2: float
    mean_log_loss: float | None
    mean_accuracy: float | None
    mean_auc: float | None
    valid_folds: int
    skipped_folds: int
    folds: tuple[FoldMetrics, ...] = ()


@dataclass(frozen=True)
class ReliabilityScore:
    """信頼度スコア（各要素の積）"""

    score: float
    quality: float
    event_adequacy: float
    sample_adequacy: float


@dataclass(frozen=True)
class CrossValidationResult:
    """クロスバリデーション結果

    データ不足の場合は status="unavailable" と reason を持つ。
    """

    status: str
    event_count: int
    sample_count: int
    reason: str | None = None
    mode: str | None = None
    fold_count: int = 0
    best_l2: float | None = None
    candidates: tuple[L2CandidateResult, ...] = ()
    final: TrainingResult | None = None
    reliability: ReliabilityScore | None = None

    @property
    def available(self) -> bool:
        return self.status == "ok"


def _interpolate(value: float, good: float, bad: float) -> float:
    """bad で0.0、good で1.0 となる線形補間（[0, 1]にクリップ）"""
    if good == bad:
        return 1.0 if value == good else 0.0
    return float(min(1.0, max(0.0, (bad - value) / (bad - good))))


def _ramp(value: float, minimum: int, maximum: int) -> float:
    """minimum - 1 で0.0、maximum で1.0 となるランプ"""
    lower = minimum - 1
    if value <= lower:
        return 0.0
    if value >= maximum:
        return 1.0
    return (value - lower) / (maximum - lower)


class CrossValidator:
    """イベント単位のクロスバリデーションを行うクラス"""

    def __init__(
        self,
        config: RunConfig | None = None,
        random_source: RandomSource | None = None,
    ):
        """初期化

        Args:
            config: 実行設定（Noneの場合はデフォルト）
            random_source: k-fold時のイベントシャッフルに使う乱数ソース
                （Noneの場合はbuild_foldsの呼び出しごとにconfig.seedで初期化する）
        """
        self._config = config or RunConfig()
        self._random_source = random_source

    def resolve_mode(self, event_count: int) -> str:
        """分割方式を決める

        kが未指定・0・1、またはイベント数以上の場合は leave-one-event-out。
        """
        k = self._config.cv_folds
        if not k or k <= 1 or k >= event_count:
            return LEAVE_ONE_EVENT_OUT
        return K_FOLD

    def build_folds(self, event_ids: Sequence[str]) -> list[list[str]]:
        """イベントIDをフォールドに分割する

        leave-one-event-out では各イベントがちょうど1回ずつ単独のフォールドになる。
        k-fold ではイベントをソート後にシャッフルし、ラウンドロビンでk個に配る。
        乱数ソースを注入していない場合は呼び出しごとにシードから作り直すため、
        同じシード・同じイベントなら何度呼んでも同じ分割になる。

        Args:
            event_ids: イベントID（重複可）

        Returns:
            フォールドごとのイベントIDリスト
        """
        events = sorted({str(e) for e in event_ids})
        if not events:
            return []

        if self.resolve_mode(len(events)) == LEAVE_ONE_EVENT_OUT:
            return [[event] for event in events]

        k = self._config.cv_folds
        folds: list[list[str]] = [[] for _ in range(k)]
        source = self._random_source
        if source is None:
            source = SeededRandomSource(self._config.seed)
        for i, event in enumerate(shuffle(source, events)):
            folds[i % k].append(event)
        return folds

    @staticmethod
    def group_by_event(
        samples: Sequence[TrainingSample],
    ) -> dict[str, list[TrainingSample]]:
        """サンプルをイベントIDでまとめる"""
        grouped: dict[str, list[TrainingSample]] = {}
        for sample in samples:
            grouped.setdefault(sample.event_id, []).append(sample)
        return grouped

    def reliability(
        self,
        mean_log_loss: float,
        mean_accuracy: float,
        event_count: int,
        sample_count: int,
    ) -> ReliabilityScore:
        """信頼度スコアを計算する

        品質（対数損失と正解率の補間の平均）、イベント数の充足度、
        サンプル数の充足度の積。いずれか1つでも弱いと全体が下がる。
        """
        thresholds: ReliabilityThresholds = self._config.reliability
        quality = (
            _interpolate(mean_log_loss, thresholds.log_loss_good, thresholds.log_loss_bad)
            + _interpolate(
                mean_accuracy, thresholds.accuracy_good, thresholds.accuracy_bad
            )
        ) / 2
        event_adequacy = _ramp(event_count, thresholds.min_events, thresholds.max_events)
        sample_adequacy = _ramp(
            sample_count, thresholds.min_samples, thresholds.max_samples
        )
        return ReliabilityScore(
            score=quality * event_adequacy * sample_adequacy,
            quality=quality,
            event_adequacy=event_adequacy,
            sample_adequacy=sample_adequacy,
        )

    def _classifier(self, l2: float) -> LogisticClassifier:
        return LogisticClassifier(
            iterations=self._config.iterations,
            learning_rate=self._config.learning_rate,
            l2=l2,
            min_samples=self._config.min_training_samples,
        )

    def _evaluate_candidate(
        self,
        l2: float,
        folds: list[list[str]],
        grouped: dict[str, list[TrainingSample]],
    ) -> L2CandidateResult:
        fold_metrics = []
        skipped = 0
        for fold_index, held_out in enumerate(folds):
            held_out_set = set(held_out)
            train = [s for e, rows in grouped.items() if e not in held_out_set for s in rows]
            test = [s for e in held_out for s in grouped.get(e, [])]

            if (
                len(train) < self._config.min_fold_train
                or len(test) < self._config.min_fold_test
            ):
                logger.debug(
                    "Skipping fold %d (l2=%s): train=%d test=%d",
                    fold_index,
                    l2,
                    len(train),
                    len(test),
                )
                skipped += 1
                continue

            classifier = self._classifier(l2)
            result = classifier.train(
                [s.features for s in train], [s.label for s in train]
            )
            if not result.success:
                logger.debug("Skipping fold %d (l2=%s): %s", fold_index, l2, result.reason)
                skipped += 1
                continue

            y_test = [s.label for s in test]
            probabilities = classifier.predict_proba([s.features for s in test])
            metrics = classifier.evaluate([s.features for s in test], y_test)
            auc = None
            if len(set(y_test)) == 2:
                auc = float(roc_auc_score(y_test, probabilities))

            fold_metrics.append(
                FoldMetrics(
                    fold_index=fold_index,
                    train_samples=len(train),
                    test_samples=len(test),
                    accuracy=metrics["accuracy"],
                    log_loss=metrics["log_loss"],
                    auc=auc,
                )
            )

        if not fold_metrics:
            return L2CandidateResult(l2, None, None, None, 0, skipped)

        aucs = [m.auc for m in fold_metrics if m.auc is not None]
        return L2CandidateResult(
            l2=l2,
            mean_log_loss=float(np.mean([m.log_loss for m in fold_metrics])),
            mean_accuracy=float(np.mean([m.accuracy for m in fold_metrics])),
            mean_auc=float(np.mean(aucs)) if aucs else None,
            valid_folds=len(fold_metrics),
            skipped_folds=skipped,
            folds=tuple(fold_metrics),
        )

    def run(
        self,
        samples: Sequence[TrainingSample],
        feature_names: Sequence[str] | None = None,
    ) -> CrossValidationResult:
        """クロスバリデーションを実行し、最良のL2で全データを再学習する

        Args:
            samples: 学習サンプル（event_idでグループ化される）
            feature_names: 特徴量名（最終モデルのweight_ranking用）

        Returns:
            CrossValidationResult。イベント不足や有効フォールドなしの場合は
            status="unavailable"
        """
        grouped = self.group_by_event(samples)
        event_count = len(grouped)
        sample_count = len(samples)

        if event_count < self._config.min_cv_events:
            logger.warning(
                "Cross-validation unavailable: %d events (need %d)",
                event_count,
                self._config.min_cv_events,
            )
            return CrossValidationResult(
                status="unavailable",
                event_count=event_count,
                sample_count=sample_count,
                reason=f"insufficient events ({event_count} < {self._config.min_cv_events})",
            )

        mode = self.resolve_mode(event_count)
        folds = self.build_folds(list(grouped))
        candidates = tuple(
            self._evaluate_candidate(l2, folds, grouped) for l2 in self._config.l2_grid
        )

        scored = [c for c in candidates if c.mean_log_loss is not None]
        if not scored:
            logger.warning("Cross-validation unavailable: no fold had enough data")
            return CrossValidationResult(
                status="unavailable",
                event_count=event_count,
                sample_count=sample_count,
                reason="no valid folds",
                mode=mode,
                fold_count=len(folds),
                candidates=candidates,
            )

        # 対数損失が同じ場合はグリッドの先頭側（弱い正則化）を優先
        best = min(scored, key=lambda c: c.mean_log_loss)
        logger.info(
            "Selected l2=%s (log_loss=%.4f, accuracy=%.4f, folds=%d)",
            best.l2,
            best.mean_log_loss,
            best.mean_accuracy,
            best.valid_folds,
        )

        final = self._classifier(best.l2).train(
            [s.features for s in samples],
            [s.label for s in samples],
            feature_names=feature_names,
        )

        return CrossValidationResult(
            status="ok",
            event_count=event_count,
            sample_count=sample_count,
            mode=mode,
            fold_count=len(folds),
            best_l2=best.l2,
            candidates=candidates,
            final=final,
            reliability=self.reliability(
                best.mean_log_loss, best.mean_accuracy, event_count, sample_count
            ),
        )
