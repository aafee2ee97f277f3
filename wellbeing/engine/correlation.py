"""Lag-Correlation Estimator — how much each tag moves future wellbeing.

For every tagged event the daily scores 1, 2 and 3 slot-widths later are
looked up (``Granularity.lag_days``).  A lag without a daily summary is
skipped, never read as zero.  Observations carry a recency-decay weight by lag
rank, so the day after counts more than three days after.

Two passes:

  1. collect per-tag ``(score, weight)`` observations and feed every one of
     them into the baseline estimator;
  2. with the baseline known, compute per tag

       raw_mean          = sum(score * w) / sum(w)
       raw_contribution  = raw_mean - baseline
       contribution      = (raw * n + prior_mean * k) / (n + k)
       confidence        = min(1, n / threshold)
       stderr            = sqrt(((s2 * n + prior_var * k) / (n + k)) / (n + k))
       interval          = contribution +/- 1.96 * stderr
       P(same sign)      = Phi(|contribution| / stderr)

     where n is the observation count, k the prior's virtual sample count and
     s2 the tag's weighted sample variance.

Confidence is a saturating stand-in for statistical power, not a p-value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from statistics import NormalDist
from typing import Iterable, Mapping, Optional

from wellbeing.config.settings import CONFIDENCE_THRESHOLD, PRIOR_VARIANCE, PRIOR_WEIGHT
from wellbeing.engine.baseline import BaselineEstimator, LagObservation
from wellbeing.engine.granularity import LAG_RANKS, Granularity
from wellbeing.engine.timezone import to_reference_date
from wellbeing.models.entry import Event

logger = logging.getLogger(__name__)

# Recency decay by lag rank: next slot, two slots, three slots ahead
LAG_WEIGHTS: tuple[float, ...] = (1.0, 0.67, 0.5)
PRIOR_MEAN: float = 0.0  # "no effect" prior on the deviation from baseline
CREDIBLE_Z: float = 1.96  # 95% two-sided, normal approximation

_STANDARD_NORMAL = NormalDist()


@dataclass(frozen=True)
class TagOccurrence:
    event_id: str
    timestamp: datetime
    tag_id: str


def occurrences_from_events(events: Iterable[Event]) -> list[TagOccurrence]:
    """Flatten events into one occurrence per (event, tag)."""
    occurrences = []
    for event in events:
        for tag_id in sorted(event.tag_ids):
            occurrences.append(TagOccurrence(event.event_id, event.timestamp, tag_id))
    return occurrences


# ── Pure statistics helpers ──────────────────────────────────────────────

def shrink(raw: float, observation_count: int, prior_weight: float = PRIOR_WEIGHT,
           prior_mean: float = PRIOR_MEAN) -> float:
    """Pull ``raw`` toward ``prior_mean`` by ``prior_weight`` virtual samples."""
    denominator = observation_count + prior_weight
    if denominator <= 0:
        return prior_mean
    return (raw * observation_count + prior_mean * prior_weight) / denominator


def confidence_score(observation_count: int, threshold: int = CONFIDENCE_THRESHOLD) -> float:
    """Saturating in [0, 1]; reaches 1.0 at ``threshold`` observations."""
    if threshold <= 0:
        return 1.0
    return max(0.0, min(1.0, observation_count / threshold))


def posterior_stderr(sample_variance: float, observation_count: int,
                     prior_weight: float = PRIOR_WEIGHT,
                     prior_variance: float = PRIOR_VARIANCE) -> float:
    """Standard error of the shrunk mean.

    Falls back to the prior variance when the sample has no spread.
    """
    denominator = observation_count + prior_weight
    if denominator <= 0:
        return math.sqrt(prior_variance)
    variance = sample_variance if observation_count > 0 and sample_variance > 0 else prior_variance
    posterior_variance = (variance * observation_count + prior_variance * prior_weight) / denominator
    return math.sqrt(posterior_variance / denominator)


def same_sign_probability(mean: float, stderr: float) -> float:
    """One-sided normal probability that the true effect keeps ``mean``'s sign."""
    if stderr <= 0:
        return 1.0
    return _STANDARD_NORMAL.cdf(abs(mean) / stderr)


# ── Per-tag accumulation ─────────────────────────────────────────────────

@dataclass
class ObservationStats:
    observation_count: int
    total_weight: float
    weighted_sum: float
    sum_weights_squared: float
    weighted_variance: float
    effective_count: float
    raw_mean: Optional[float]


@dataclass
class TagObservations:
    tag_id: str
    event_ids: set = field(default_factory=set)
    observations: list[LagObservation] = field(default_factory=list)

    @property
    def occurrence_count(self) -> int:
        return len(self.event_ids)

    def stats(self) -> ObservationStats:
        total_weight = sum(o.weight for o in self.observations)
        weighted_sum = sum(o.score * o.weight for o in self.observations)
        sum_w2 = sum(o.weight * o.weight for o in self.observations)

        if total_weight <= 0:
            return ObservationStats(len(self.observations), total_weight, weighted_sum,
                                    sum_w2, 0.0, 0.0, None)

        raw_mean = weighted_sum / total_weight
        variance = sum(o.weight * (o.score - raw_mean) ** 2 for o in self.observations) / total_weight
        effective = (total_weight * total_weight) / sum_w2 if sum_w2 > 0 else 0.0
        return ObservationStats(
            observation_count=len(self.observations),
            total_weight=total_weight,
            weighted_sum=weighted_sum,
            sum_weights_squared=sum_w2,
            weighted_variance=variance,
            effective_count=effective,
            raw_mean=raw_mean,
        )


@dataclass
class ContributionRecord:
    tag_id: str
    tag_name: str
    occurrence_count: int
    observation_count: int
    effective_sample_size: float
    total_weight: float
    raw_mean: float
    raw_contribution: float
    contribution: float
    baseline_mean: float
    confidence: float
    probability_same_sign: float
    credible_lower: float
    credible_upper: float

    @property
    def rank_score(self) -> float:
        return abs(self.contribution) * self.confidence

    def to_dict(self) -> dict:
        return {
            "tagId": self.tag_id,
            "tagName": self.tag_name,
            "occurrenceCount": self.occurrence_count,
            "observationCount": self.observation_count,
            "effectiveSampleSize": self.effective_sample_size,
            "totalWeight": self.total_weight,
            "rawMean": self.raw_mean,
            "rawContribution": self.raw_contribution,
            "contribution": self.contribution,
            "baselineMean": self.baseline_mean,
            "confidence": self.confidence,
            "probabilitySameSign": self.probability_same_sign,
            "credibleInterval": {"lower": self.credible_lower, "upper": self.credible_upper},
        }


def _rank_key(record: ContributionRecord) -> tuple[float, str]:
    """Strong-but-uncertain effects must not outrank moderate-but-confident ones."""
    return (-record.rank_score, record.tag_id)


@dataclass
class CorrelationResult:
    positive: list[ContributionRecord]
    negative: list[ContributionRecord]
    metadata: dict

    def to_dict(self) -> dict:
        return {
            "positive": [r.to_dict() for r in self.positive],
            "negative": [r.to_dict() for r in self.negative],
            "metadata": dict(self.metadata),
        }


# ── Estimator ────────────────────────────────────────────────────────────

@dataclass
class LagCorrelationEstimator:
    granularity: Granularity
    lag_weights: tuple[float, ...] = LAG_WEIGHTS
    prior_weight: float = PRIOR_WEIGHT
    prior_mean: float = PRIOR_MEAN
    prior_variance: float = PRIOR_VARIANCE
    confidence_threshold: int = CONFIDENCE_THRESHOLD

    @property
    def lag_days(self) -> list[int]:
        return self.granularity.lag_days

    def collect(
        self,
        occurrences: Iterable[TagOccurrence],
        daily_scores: Mapping[date, Optional[int]],
    ) -> dict[str, TagObservations]:
        """Pass 1: lagged observations per tag, one lookup set per distinct event."""
        by_tag: dict[str, TagObservations] = {}
        offsets = list(zip(LAG_RANKS, self.lag_days, self.lag_weights))

        for occ in occurrences:
            bucket = by_tag.get(occ.tag_id)
            if bucket is None:
                bucket = by_tag[occ.tag_id] = TagObservations(tag_id=occ.tag_id)
            if occ.event_id in bucket.event_ids:
                continue
            bucket.event_ids.add(occ.event_id)

            event_day = to_reference_date(occ.timestamp)
            for rank, offset, weight in offsets:
                score = daily_scores.get(event_day + timedelta(days=offset))
                if score is None:
                    continue
                bucket.observations.append(LagObservation(score=int(score), weight=weight, lag_rank=rank))

        return by_tag

    def metadata(self, baseline_mean: float) -> dict:
        return {
            "priorWeight": self.prior_weight,
            "priorMean": self.prior_mean,
            "priorVariance": self.prior_variance,
            "lagWeights": list(self.lag_weights),
            "lagDays": self.lag_days,
            "granularity": self.granularity.spec,
            "baselineMean": baseline_mean,
            "confidenceThreshold": self.confidence_threshold,
        }

    def estimate(
        self,
        occurrences: Iterable[TagOccurrence],
        daily_scores: Mapping[date, Optional[int]],
        tag_names: Optional[Mapping[str, str]] = None,
    ) -> CorrelationResult:
        """Both passes: collect, derive the baseline, then score every tag."""
        tag_names = tag_names or {}
        by_tag = self.collect(occurrences, daily_scores)

        baseline = BaselineEstimator()
        for bucket in by_tag.values():
            baseline.add_all(bucket.observations)
        baseline_mean = baseline.mean

        records = []
        for tag_id, bucket in by_tag.items():
            record = self._score_tag(bucket, baseline_mean, tag_names.get(tag_id, "Unknown"))
            if record is not None:
                records.append(record)

        positive = sorted((r for r in records if r.contribution > 0), key=_rank_key)
        negative = sorted((r for r in records if r.contribution < 0), key=_rank_key)

        logger.info(
            "Tag correlation (%s): %d tag(s), %d observation(s), baseline=%.3f, +%d/-%d",
            self.granularity.spec, len(by_tag), baseline.observation_count,
            baseline_mean, len(positive), len(negative),
        )
        return CorrelationResult(positive, negative, self.metadata(baseline_mean))

    def _score_tag(
        self,
        bucket: TagObservations,
        baseline_mean: float,
        tag_name: str,
    ) -> Optional[ContributionRecord]:
        """Pass 2 for one tag; None when the tag has no usable observations."""
        stats = bucket.stats()
        if stats.raw_mean is None or stats.observation_count == 0:
            return None

        n = stats.observation_count
        raw_contribution = stats.raw_mean - baseline_mean
        contribution = shrink(raw_contribution, n, self.prior_weight, self.prior_mean)
        stderr = posterior_stderr(stats.weighted_variance, n, self.prior_weight, self.prior_variance)
        half_width = CREDIBLE_Z * stderr

        return ContributionRecord(
            tag_id=bucket.tag_id,
            tag_name=tag_name,
            occurrence_count=bucket.occurrence_count,
            observation_count=n,
            effective_sample_size=stats.effective_count,
            total_weight=stats.total_weight,
            raw_mean=stats.raw_mean,
            raw_contribution=raw_contribution,
            contribution=contribution,
            baseline_mean=baseline_mean,
            confidence=confidence_score(n, self.confidence_threshold),
            probability_same_sign=same_sign_probability(contribution, stderr),
            credible_lower=contribution - half_width,
            credible_upper=contribution + half_width,
        )
