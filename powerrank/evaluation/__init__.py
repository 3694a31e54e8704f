"""ランキング評価モジュール"""

from powerrank.evaluation.calibration import (
    CalibrationReport,
    EventCalibration,
    build_event_calibration,
)
from powerrank.evaluation.evaluator import (
    EvaluationResult,
    RankingEvaluator,
    StressTestResult,
)

__all__ = [
    "CalibrationReport",
    "EvaluationResult",
    "EventCalibration",
    "RankingEvaluator",
    "StressTestResult",
    "build_event_calibration",
]
