"""着順文字列の解析モジュール

結果表の着順表記を整数に変換する。

対応表記:
- 通常: "1", "12"
- 同着: "T5", "5T"
- 着順なし: "CUT", "WD", "DQ" など（Noneを返す）
"""

import re

from powerrank.constants import NON_FINISH_CODES
from powerrank.models.records import OutcomeLabel

_TIED_SUFFIX = re.compile(r"^(\d+)T$")


def parse_finish_position(value) -> int | None:
    """着順表記を整数に変換する

    Args:
        value: 着順（int, str, None）

    Returns:
        着順（1以上の整数）、解析できない場合や着順なしの場合はNone
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if value != value or value <= 0:  # NaN
            return None
        return int(value)

    raw = str(value).strip().upper()
    if not raw or raw in NON_FINISH_CODES:
        return None

    if raw.startswith("T"):
        raw = raw[1:]
    else:
        match = _TIED_SUFFIX.match(raw)
        if match:
            raw = match.group(1)

    try:
        parsed = int(raw)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def dedupe_best_finish(outcomes: list[OutcomeLabel]) -> list[OutcomeLabel]:
    """選手ごとに最良（最小）の着順1件に集約する

    着順ありの記録は着順なしの記録より優先する。入力順は最初の出現順で保持する。

    Args:
        outcomes: 着順リスト（同一選手の重複を含みうる）

    Returns:
        選手ごとに1件へ集約した着順リスト
    """
    best: dict[str, OutcomeLabel] = {}
    for outcome in outcomes:
        player_id = str(outcome.player_id).strip()
        if not player_id:
            continue
        current = best.get(player_id)
        if current is None:
            best[player_id] = OutcomeLabel(player_id, outcome.finish_position)
            continue
        if outcome.finish_position is None:
            continue
        if (
            current.finish_position is None
            or outcome.finish_position < current.finish_position
        ):
            best[player_id] = OutcomeLabel(player_id, outcome.finish_position)
    return list(best.values())
