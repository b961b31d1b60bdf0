from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from rapidfuzz.distance import LCSseq, Levenshtein

from .components import Coordinates, NormalizedAddress, RawListing
from .normalize import normalize_title, strip_street_types

EARTH_RADIUS_METERS = 6371000.0

_TEXT_WEIGHTS = {
    "levenshtein": 0.3,
    "tokens": 0.3,
    "bigrams": 0.2,
    "trigrams": 0.1,
    "lcs": 0.1,
}

_TITLE_WEIGHTS = {
    "levenshtein": 0.4,
    "tokens": 0.4,
    "bigrams": 0.2,
}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    a: Set[str] = set(left)
    b: Set[str] = set(right)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def ngrams(text: str, n: int) -> Set[str]:
    return {text[i : i + n] for i in range(len(text) - n + 1)}


def text_similarity(a: str, b: str) -> float:
    """Blend of edit distance, token overlap, n-gram overlap and LCS."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    max_len = max(len(a), len(b))
    score = (
        _TEXT_WEIGHTS["levenshtein"] * (1.0 - Levenshtein.distance(a, b) / max_len)
        + _TEXT_WEIGHTS["tokens"] * jaccard(a.split(), b.split())
        + _TEXT_WEIGHTS["bigrams"] * jaccard(ngrams(a, 2), ngrams(b, 2))
        + _TEXT_WEIGHTS["trigrams"] * jaccard(ngrams(a, 3), ngrams(b, 3))
        + _TEXT_WEIGHTS["lcs"] * (LCSseq.similarity(a, b) / max_len)
    )
    return _clamp(score)


def semantic_similarity(left: NormalizedAddress, right: NormalizedAddress) -> float:
    """Average of the component checks both addresses can take part in."""
    checks = []

    if left.city and right.city:
        checks.append(1.0 if left.city == right.city else 0.0)
    if left.house_number and right.house_number:
        checks.append(1.0 if left.house_number == right.house_number else 0.0)
    if left.building and right.building:
        checks.append(1.0 if left.building == right.building else 0.0)
    if left.street and right.street:
        street_left = strip_street_types(left.street)
        street_right = strip_street_types(right.street)
        if street_left and street_right:
            checks.append(text_similarity(street_left, street_right))

    if not checks:
        return 0.0
    return _clamp(sum(checks) / len(checks))


def structural_similarity(left: NormalizedAddress, right: NormalizedAddress) -> float:
    """Compare word counts, lengths and token sets."""
    checks = []

    max_words = max(left.word_count, right.word_count)
    if max_words > 0:
        checks.append(1.0 - abs(left.word_count - right.word_count) / max_words)

    max_length = max(left.length, right.length)
    if max_length > 0:
        checks.append(1.0 - abs(left.length - right.length) / max_length)

    if left.tokens or right.tokens:
        checks.append(jaccard(left.tokens, right.tokens))

    if not checks:
        return 0.0
    return _clamp(sum(checks) / len(checks))


def geo_distance(first: Coordinates, second: Coordinates) -> float:
    """Haversine distance in meters."""
    phi1 = math.radians(first.lat)
    phi2 = math.radians(second.lat)
    dphi = math.radians(second.lat - first.lat)
    dlambda = math.radians(second.lng - first.lng)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can leave a just outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_score(distance_meters: float, max_radius: float) -> float:
    if max_radius <= 0:
        return 0.0
    return 1.0 - min(distance_meters / max_radius, 1.0)


# Listing-to-listing scoring used by the grouping engine.


def title_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0

    left = normalize_title(a)
    right = normalize_title(b)
    if not left or not right:
        return 0.0

    score = (
        _TITLE_WEIGHTS["levenshtein"] * Levenshtein.normalized_similarity(left, right)
        + _TITLE_WEIGHTS["tokens"] * jaccard(left.split(), right.split())
        + _TITLE_WEIGHTS["bigrams"] * jaccard(ngrams(left, 2), ngrams(right, 2))
    )
    return _clamp(score)


def tolerance_score(left: Optional[float], right: Optional[float], tolerance: float) -> Optional[float]:
    """1.0 for equal values, falling to 0 once the gap reaches ``tolerance`` of the mean."""
    if not left or not right:
        return None
    average = (left + right) / 2
    if average <= 0:
        return None
    return max(0.0, 1.0 - abs(left - right) / (average * tolerance))


def characteristics_similarity(left: RawListing, right: RawListing) -> float:
    checks = []

    if left.property_type and right.property_type:
        checks.append(1.0 if left.property_type == right.property_type else 0.0)

    area = tolerance_score(left.area_total, right.area_total, 0.2)
    if area is not None:
        checks.append(area)

    if left.floors_total and right.floors_total:
        checks.append(1.0 if left.floors_total == right.floors_total else 0.0)
    if left.rooms and right.rooms:
        checks.append(1.0 if left.rooms == right.rooms else 0.0)

    if not checks:
        return 0.0
    return sum(checks) / len(checks)


def price_similarity(left: Optional[float], right: Optional[float]) -> float:
    score = tolerance_score(left, right, 0.3)
    return 0.0 if score is None else score


@dataclass(frozen=True)
class ListingSimilarity:
    overall: float
    coordinates: float
    title: float
    characteristics: float
    price: float
    distance: Optional[float]


def listing_similarity(
    left: RawListing,
    right: RawListing,
    max_distance: float,
    weights,
) -> ListingSimilarity:
    """Pairwise score deciding whether two unresolved listings share an address.

    ``weights`` is a :class:`~address_resolution.config.GroupingWeights`.
    """
    left_point = left.point
    right_point = right.point
    distance = None
    coord_score = 0.0
    if left_point is not None and right_point is not None:
        distance = geo_distance(left_point, right_point)
        coord_score = max(0.0, 1.0 - distance / max_distance) if max_distance > 0 else 0.0

    title_score = title_similarity(left.title, right.title)
    char_score = characteristics_similarity(left, right)
    price_score = price_similarity(left.price, right.price)

    overall = (
        coord_score * weights.coordinates
        + title_score * weights.title
        + char_score * weights.characteristics
        + price_score * weights.price
    )
    return ListingSimilarity(
        overall=_clamp(overall),
        coordinates=coord_score,
        title=title_score,
        characteristics=char_score,
        price=price_score,
        distance=distance,
    )
