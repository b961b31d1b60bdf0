from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .components import AddressRecord, ComponentScores, Coordinates, MatchResult, NormalizedAddress
from .config import MatcherConfig
from .parser import analyze_address
from .scorer import (
    distance_score,
    geo_distance,
    semantic_similarity,
    structural_similarity,
    text_similarity,
)


@dataclass(frozen=True)
class ScoredCandidate:
    address: AddressRecord
    distance: float
    scores: ComponentScores
    total: float


class MatchContext:
    """Listing analysis plus lazily computed candidate scores for one match call."""

    def __init__(
        self,
        point: Coordinates,
        analysis: NormalizedAddress,
        candidates: Sequence[Tuple[AddressRecord, Coordinates]],
        config: MatcherConfig,
    ) -> None:
        self.point = point
        self.analysis = analysis
        self.config = config
        self._candidates = list(candidates)
        self._distances = [geo_distance(point, coords) for _, coords in self._candidates]
        self._scored: Dict[int, ScoredCandidate] = {}

    def within(self, radius: Optional[float]) -> List[int]:
        if radius is None:
            return list(range(len(self._candidates)))
        return [idx for idx, distance in enumerate(self._distances) if distance <= radius]

    def score(self, index: int) -> ScoredCandidate:
        cached = self._scored.get(index)
        if cached is not None:
            return cached

        address, _ = self._candidates[index]
        candidate_analysis = analyze_address(address.address_text)
        weights = self.config.weights
        scores = ComponentScores(
            text=text_similarity(self.analysis.normalized_text, candidate_analysis.normalized_text),
            semantic=semantic_similarity(self.analysis, candidate_analysis),
            structural=structural_similarity(self.analysis, candidate_analysis),
            # Always normalised against the widest tier so scores compare across tiers.
            distance=distance_score(self._distances[index], self.config.radius_tiers.largest),
        )
        total = (
            scores.distance * weights.distance
            + scores.text * weights.text
            + scores.semantic * weights.semantic
            + scores.structural * weights.structural
        )
        scored = ScoredCandidate(
            address=address,
            distance=self._distances[index],
            scores=scores,
            total=min(1.0, max(0.0, total)),
        )
        self._scored[index] = scored
        return scored

    def best(self, indexes: Sequence[int]) -> Optional[ScoredCandidate]:
        best: Optional[ScoredCandidate] = None
        for index in indexes:
            scored = self.score(index)
            if best is None or scored.total > best.total:
                best = scored
        return best


def _result(scored: ScoredCandidate, confidence: str, method: str, total: float, analysis) -> MatchResult:
    return MatchResult(
        address=scored.address,
        confidence=confidence,
        method=method,
        distance_meters=scored.distance,
        component_scores=scored.scores,
        total_score=total,
        analysis=analysis,
    )


class MatchTier(ABC):
    name: str
    method: str
    radius: Optional[float]

    @abstractmethod
    def evaluate(self, context: MatchContext) -> Optional[MatchResult]:
        raise NotImplementedError


class ExactTier(MatchTier):
    """A single address inside the tight radius is taken as-is."""

    name = "exact"
    method = "exact_geo_precise"

    def __init__(self, radius: float) -> None:
        self.radius = radius

    def evaluate(self, context: MatchContext) -> Optional[MatchResult]:
        in_radius = context.within(self.radius)
        if len(in_radius) != 1:
            return None
        return _result(context.score(in_radius[0]), "high", self.method, 1.0, context.analysis)


class ScoredTier(MatchTier):
    """Best composite score inside ``radius``, graded by :meth:`grade`."""

    def __init__(self, radius: Optional[float], threshold: float) -> None:
        self.radius = radius
        self.threshold = threshold

    @abstractmethod
    def grade(self, score: float) -> str:
        raise NotImplementedError

    def confidence(self, score: float) -> str:
        if score < self.threshold:
            return "none"
        return self.grade(score)

    def evaluate(self, context: MatchContext) -> Optional[MatchResult]:
        in_radius = context.within(self.radius)
        best = context.best(in_radius)
        if best is None:
            return None
        confidence = self.confidence(best.total)
        if confidence == "none":
            return None
        return _result(best, confidence, self.method, best.total, context.analysis)


class NearTier(ScoredTier):
    name = "near"
    method = "semantic_near_geo"

    def grade(self, score: float) -> str:
        return "high"


class ExtendedTier(ScoredTier):
    name = "extended"
    method = "semantic_extended_geo"

    def __init__(self, radius: float, threshold: float, high: float) -> None:
        super().__init__(radius, threshold)
        self.high = high

    def grade(self, score: float) -> str:
        return "high" if score >= self.high else "medium"


class FarTier(ScoredTier):
    name = "far"
    method = "semantic_far_geo"

    def __init__(self, radius: float, threshold: float, medium: float) -> None:
        super().__init__(radius, threshold)
        self.medium = medium

    def grade(self, score: float) -> str:
        return "medium" if score >= self.medium else "low"


class GlobalTier(ScoredTier):
    name = "global"
    method = "semantic_global"

    def __init__(self, threshold: float) -> None:
        super().__init__(None, threshold)

    def grade(self, score: float) -> str:
        return "very_low"


def build_tiers(config: MatcherConfig) -> Tuple[MatchTier, ...]:
    radii = config.radius_tiers
    th = config.thresholds
    return (
        ExactTier(radii.exact),
        NearTier(radii.near, th.high),
        ExtendedTier(radii.extended, th.medium, high=th.high),
        FarTier(radii.far, th.low, medium=th.medium),
        GlobalTier(th.very_low),
    )


DEFAULT_TIERS = build_tiers(MatcherConfig())
