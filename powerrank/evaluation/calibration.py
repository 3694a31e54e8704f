"""上位入賞者のキャリブレーション分析

実際に上位10位以内に入った選手を、予測ランキングでどこに置いていたかを集計する。
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from powerrank.constants import UNRANKED_PREDICTED_RANK
from powerrank.models.records import OutcomeLabel, RankedPlayer
from powerrank.utils.finish_parser import dedupe_best_finish

BUCKET_TOP_20 = "Top 20"
BUCKET_TOP_50 = "Top 50"
BUCKET_OUTSIDE_TOP_50 = "Outside Top 50"


def predicted_bucket(predicted_rank: int) -> str:
    """予測順位の区分"""
    if predicted_rank <= 20:
        return BUCKET_TOP_20
    if predicted_rank <= 50:
        return BUCKET_TOP_50
    return BUCKET_OUTSIDE_TOP_50


@dataclass(frozen=True)
class TopFinisherMiss:
    """上位入賞者1人分の予測のずれ"""

    player_id: str
    actual_finish: int
    predicted_rank: int
    miss: int
    bucket: str


@dataclass
class EventCalibration:
    """1大会分のキャリブレーション"""

    event_name: str
    top_finishers: list[TopFinisherMiss] = field(default_factory=list)
    total_top5: int = 0
    predicted_top5_in_top20: int = 0
    total_top10: int = 0
    predicted_top10_in_top30: int = 0

    def _average_miss(self, max_finish: int) -> float:
        misses = [f.miss for f in self.top_finishers if f.actual_finish <= max_finish]
        return sum(misses) / len(misses) if misses else 0.0

    @property
    def avg_miss_top5(self) -> float:
        return self._average_miss(5)

    @property
    def avg_miss_top10(self) -> float:
        return self._average_miss(10)


@dataclass
class CalibrationReport:
    """複数大会を合算したキャリブレーション"""

    events: list[EventCalibration] = field(default_factory=list)
    total_top5: int = 0
    predicted_top5_in_top20: int = 0
    total_top10: int = 0
    predicted_top10_in_top30: int = 0

    def merge(self, event: EventCalibration) -> "CalibrationReport":
        """大会分の結果を加算する（自身を返す）"""
        self.events.append(event)
        self.total_top5 += event.total_top5
        self.predicted_top5_in_top20 += event.predicted_top5_in_top20
        self.total_top10 += event.total_top10
        self.predicted_top10_in_top30 += event.predicted_top10_in_top30
        return self

    @property
    def top5_in_top20_rate(self) -> float:
        """実際のTop5のうち予測Top20に入っていた割合（0-100）"""
        if self.total_top5 == 0:
            return 0.0
        return 100.0 * self.predicted_top5_in_top20 / self.total_top5

    @property
    def top10_in_top30_rate(self) -> float:
        """実際のTop10のうち予測Top30に入っていた割合（0-100）"""
        if self.total_top10 == 0:
            return 0.0
        return 100.0 * self.predicted_top10_in_top30 / self.total_top10


def build_event_calibration(
    predictions: Sequence[RankedPlayer],
    outcomes: Sequence[OutcomeLabel],
    event_name: str = "",
) -> EventCalibration:
    """1大会のキャリブレーションを計算する

    予測に含まれない上位入賞者の予測順位は UNRANKED_PREDICTED_RANK とする。

    Args:
        predictions: 予測ランキング（rankがNoneの場合はリスト順）
        outcomes: 実着順
        event_name: 大会名

    Returns:
        EventCalibration
    """
    predicted_ranks: dict[str, int] = {}
    for idx, prediction in enumerate(predictions):
        if prediction.player_id in predicted_ranks:
            continue
        predicted_ranks[prediction.player_id] = (
            prediction.rank if prediction.rank is not None else idx + 1
        )

    top_finishers = sorted(
        (
            o
            for o in dedupe_best_finish(list(outcomes))
            if o.finish_position is not None and o.finish_position <= 10
        ),
        key=lambda o: o.finish_position,
    )

    calibration = EventCalibration(event_name=event_name)
    for outcome in top_finishers:
        predicted = predicted_ranks.get(outcome.player_id, UNRANKED_PREDICTED_RANK)
        calibration.top_finishers.append(
            TopFinisherMiss(
                player_id=outcome.player_id,
                actual_finish=outcome.finish_position,
                predicted_rank=predicted,
                miss=abs(predicted - outcome.finish_position),
                bucket=predicted_bucket(predicted),
            )
        )
        if outcome.finish_position <= 5:
            calibration.total_top5 += 1
            if predicted <= 20:
                calibration.predicted_top5_in_top20 += 1
        calibration.total_top10 += 1
        if predicted <= 30:
            calibration.predicted_top10_in_top30 += 1
    return calibration
