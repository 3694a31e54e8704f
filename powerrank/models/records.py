"""Record DTOs shared by the modeling engine.

This module provides immutable data transfer objects for metric
definitions, per-player feature vectors, outcomes and rankings.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class MetricSpec:
    """Identifies one scoring dimension.

    Attributes:
        label: The metric's display label (e.g., "SG Putting").
        index: Position of the metric within a FeatureVector.
        lower_better: True when smaller raw values are better. Such values
            are sign-flipped before use.
    """

    label: str
    index: int
    lower_better: bool = False


@dataclass(frozen=True)
class FeatureVector:
    """One player's adjusted metric readings.

    Attributes:
        player_id: The player's unique identifier.
        values: Tuple of metric values; None or NaN marks a missing reading.
    """

    player_id: str
    values: tuple[float | None, ...]

    @property
    def valid_count(self) -> int:
        """Number of present, finite readings."""
        return sum(
            1 for v in self.values if v is not None and not math.isnan(v)
        )

    @property
    def coverage(self) -> float:
        """Share of metrics with a valid reading (0.0 for an empty vector)."""
        if not self.values:
            return 0.0
        return self.valid_count / len(self.values)

    def value_at(self, index: int) -> float | None:
        """Return the reading at index, or None when missing."""
        if index < 0 or index >= len(self.values):
            return None
        value = self.values[index]
        if value is None or math.isnan(value):
            return None
        return value


@dataclass(frozen=True)
class OutcomeLabel:
    """A player's finish in one event.

    Attributes:
        player_id: The player's unique identifier.
        finish_position: Final position (smaller is better), or None for
            cut / withdrawn / disqualified records.
    """

    player_id: str
    finish_position: int | None


@dataclass(frozen=True)
class RankedPlayer:
    """One entry of a ranking produced by a ranking generator.

    Attributes:
        player_id: The player's unique identifier.
        rank: 1-based predicted rank, or None when the producer carries
            no explicit rank (list order is used instead).
        score: The weighted score behind the rank (optional).
        metrics: The metric values used to score the player.
    """

    player_id: str
    rank: int | None
    score: float | None = None
    metrics: tuple[float | None, ...] = ()


@dataclass(frozen=True)
class TrainingSample:
    """A labeled classifier row tied to its source event.

    Attributes:
        event_id: Identifier of the event the row comes from.
        player_id: The player's unique identifier.
        features: Complete (imputed) feature values.
        finish_position: The player's finish in the event.
        label: 1 when the player finished inside the top N, else 0.
    """

    event_id: str
    player_id: str
    features: tuple[float, ...]
    finish_position: int
    label: int
