"""乱数ソース

オプティマイザとクロスバリデータが共有する、注入可能な乱数生成器を提供する。
シード文字列をSHA256でハッシュしてnumpyのGeneratorを初期化するため、
同じシード文字列からは同じ乱数列が得られる。
"""

import hashlib
from collections.abc import Sequence
from typing import Protocol, TypeVar

import numpy as np

T = TypeVar("T")


class RandomSource(Protocol):
    """[0, 1) の浮動小数点数を返す乱数ソースのプロトコル"""

    def random(self) -> float:
        """[0, 1) の一様乱数を返す"""
        ...


def seed_to_int(seed: str) -> int:
    """シード文字列を64bit整数に変換する"""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class SeededRandomSource:
    """シード文字列から決定的に乱数を生成する乱数ソース

    Attributes:
        seed: シード文字列（Noneの場合は非決定的）
    """

    def __init__(self, seed: str | None = None):
        """初期化

        Args:
            seed: シード文字列。Noneの場合はOSのエントロピーで初期化する
        """
        self.seed = seed
        if seed is None:
            self._generator = np.random.default_rng()
        else:
            self._generator = np.random.default_rng(seed_to_int(seed))

    @property
    def deterministic(self) -> bool:
        return self.seed is not None

    def random(self) -> float:
        return float(self._generator.random())

    def __repr__(self) -> str:
        return f"SeededRandomSource(seed={self.seed!r})"


def uniform(source: RandomSource, low: float, high: float) -> float:
    """[low, high) の一様乱数"""
    return low + (high - low) * source.random()


def randint(source: RandomSource, low: int, high: int) -> int:
    """[low, high] の整数乱数"""
    span = high - low + 1
    return low + min(span - 1, int(source.random() * span))


def shuffle(source: RandomSource, items: Sequence[T]) -> list[T]:
    """Fisher-Yatesでシャッフルした新しいリストを返す"""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = randint(source, 0, i)
        result[i], result[j] = result[j], result[i]
    return result


def sample(source: RandomSource, items: Sequence[T], k: int) -> list[T]:
    """重複なしでk個を抽出する（kが要素数以上なら全要素をシャッフルして返す）"""
    return shuffle(source, items)[: max(0, k)]
