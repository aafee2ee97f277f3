"""Baseline Estimator — the shrinkage reference for tag contributions.

The baseline is the lag-weighted mean score over the same pool of lagged
observations the correlation estimator uses, not the plain mean of all daily
summaries.  Tags that contribute many observations pull it harder, and a
contribution is a deviation from what a tag-linked observation looks like on
average.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class LagObservation:
    """A daily score seen ``lag_rank`` offsets after a tagged event."""
    score: int
    weight: float
    lag_rank: int


class BaselineEstimator:
    """Running weighted sum over every observation in the pool."""

    def __init__(self):
        self.weighted_sum = 0.0
        self.total_weight = 0.0
        self.observation_count = 0

    def add(self, observation: LagObservation) -> None:
        self.weighted_sum += observation.score * observation.weight
        self.total_weight += observation.weight
        self.observation_count += 1

    def add_all(self, observations: Iterable[LagObservation]) -> None:
        for obs in observations:
            self.add(obs)

    @property
    def mean(self) -> float:
        """Weighted mean; 0.0 (neutral) when the pool is empty."""
        if self.total_weight <= 0:
            return 0.0
        return self.weighted_sum / self.total_weight


def estimate_baseline(pool: Mapping[str, Iterable[LagObservation]]) -> float:
    """Baseline over per-tag observation lists."""
    estimator = BaselineEstimator()
    for observations in pool.values():
        estimator.add_all(observations)
    return estimator.mean
