"""ウェイト関連のデフォルト設定

テンプレートのグループ/メトリクス重みと、オプティマイザの評価関数の合成比率を定義する。
グループ重みの合計、および各グループ内のメトリクス重みの合計は1.0になる必要がある。
"""

# オプティマイザの総合スコア合成比率（相関 / Top20複合 / アラインメント）
COMBINED_SCORE_WEIGHTS = {
    "correlation": 0.3,
    "top20_composite": 0.5,
    "alignment": 0.2,
}

# Top20複合スコアの内訳（Top20的中率 / 加重Top20スコア）
TOP20_COMPOSITE_WEIGHTS = {
    "accuracy": 0.5,
    "weighted": 0.5,
}

# テンプレートブレンドのデフォルト設定
DEFAULT_BLEND_OPTIONS = {
    "signal_blend": {
        "correlation": 0.55,
        "logistic": 0.45,
    },
    "template_blend": {
        "baseline": 0.7,
        "model": 0.3,
    },
    "guardrails": {
        "min_group_weight": 0.03,
        "max_group_weight": 0.35,
        "max_group_shift": 0.08,
        "max_metric_shift": 0.2,
    },
}

# 事前テンプレート / モデル提案 / 検証シグナルの合成比率
BLEND_SHARES = {
    "prior": 0.5,
    "model": 0.3,
    "validation": 0.2,
}

DEFAULT_GROUP_WEIGHTS = {
    "Driving Performance": 0.14,
    "Approach": 0.30,
    "Around the Green": 0.10,
    "Putting": 0.12,
    "Scoring": 0.22,
    "Course Management": 0.12,
}

DEFAULT_METRIC_WEIGHTS = {
    "Driving Performance": {
        "Driving Distance": 0.35,
        "Driving Accuracy": 0.25,
        "SG OTT": 0.40,
    },
    "Approach": {
        "Approach <150 FW SG": 0.40,
        "Approach <200 FW SG": 0.35,
        "Approach <150 FW Prox": 0.25,
    },
    "Around the Green": {
        "SG Around Green": 1.0,
    },
    "Putting": {
        "SG Putting": 1.0,
    },
    "Scoring": {
        "SG T2G": 0.45,
        "Scoring Average": 0.30,
        "Birdies or Better": 0.25,
    },
    "Course Management": {
        "Scrambling": 0.40,
        "Poor Shots": 0.35,
        "Great Shots": 0.25,
    },
}

# DEFAULT_GROUP_WEIGHTSのキーをイミュータブルなタプルとして提供
GROUP_NAMES = tuple(DEFAULT_GROUP_WEIGHTS.keys())

# 値が小さいほど良いメトリクス（使用前に符号反転する）
LOWER_BETTER_METRICS = frozenset(
    {
        "Approach <150 FW Prox",
        "Scoring Average",
        "Poor Shots",
    }
)

# WeightSet.from_template に渡せる形式のデフォルトテンプレート
DEFAULT_TEMPLATE = {
    "group_weights": DEFAULT_GROUP_WEIGHTS,
    "metric_weights": DEFAULT_METRIC_WEIGHTS,
}
