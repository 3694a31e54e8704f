"""Constants for powerrank weight tuning engine."""

# 相関計算に必要な最小サンプル数（未満は相関0・低信頼として扱う）
MIN_CORRELATION_SAMPLES = 5

# ロジスティック回帰の学習に必要な最小サンプル数
MIN_TRAINING_SAMPLES = 10

# クロスバリデーションに必要な最小イベント数
MIN_CV_EVENTS = 3

# 1フォールドあたりの最小学習/テスト行数（満たさないフォールドはスキップ）
MIN_FOLD_TRAIN_SAMPLES = 20
MIN_FOLD_TEST_SAMPLES = 10

# 学習対象とする特徴ベクトルの最小カバレッジ（有効メトリクス数 / 全メトリクス数）
COVERAGE_THRESHOLD = 0.70

# L2正則化の探索グリッド
L2_GRID: tuple[float, ...] = (0.0, 0.001, 0.005, 0.01, 0.05, 0.1)

# log(0) 回避用の平滑化項
LOG_LOSS_EPSILON = 1e-9

# WeightSetの正規化判定の許容誤差
WEIGHT_SUM_TOLERANCE = 1e-6

# トレンド信頼度ラベル
TREND_STABLE = "STABLE"
TREND_WATCH = "WATCH"
TREND_CHRONIC = "CHRONIC"

# トレンド信頼度ごとのガードレール許容幅（推奨ウェイト比 ±range）
TREND_GUARDRAIL_RANGES: dict[str, float] = {
    TREND_STABLE: 0.10,
    TREND_WATCH: 0.20,
    TREND_CHRONIC: 0.35,
}

# ラベル不明・未指定のメトリクスに適用するトレンド信頼度
DEFAULT_TREND_STATUS = TREND_WATCH

# トレンド分類の閾値（モデル予測と実測の乖離から算出するbiasZ）
TREND_MIN_COUNT = 20
TREND_STABLE_MAX_BIAS_Z = 0.2
TREND_CHRONIC_MIN_BIAS_Z = 0.75

# 複数年安定性分析の閾値
STABILITY_STRONG_THRESHOLD = 0.05
STABILITY_STABLE_THRESHOLD = 0.02

# フラット表現のグループ/メトリクス区切り
FLAT_KEY_SEPARATOR = "::"

# 未ランク選手の予測順位（キャリブレーション用）
UNRANKED_PREDICTED_RANK = 999

# 着順として扱わない結果コード
NON_FINISH_CODES = frozenset({"CUT", "WD", "DQ", "MDF", "DNS"})

# ベースライン比較で「実質的な変化」とみなす差分
MATERIAL_CORRELATION_DELTA = 0.02
MATERIAL_RMSE_DELTA = 0.5
MATERIAL_WEIGHTED_TOP20_DELTA = 2.0

# ベースライン比較の解釈ラベル
INTERPRETATION_STRONG_IMPROVEMENT = "strong_improvement"
INTERPRETATION_IMPROVEMENT = "improvement"
INTERPRETATION_MIXED = "mixed"
INTERPRETATION_NO_MATERIAL_CHANGE = "no_material_change"
INTERPRETATION_REGRESSION = "regression"
