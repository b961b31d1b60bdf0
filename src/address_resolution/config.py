from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from .exceptions import ConfigurationError


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(name, f"expected a value in [0, 1], got {value!r}")


def _check_weights_sum(name: str, values: Dict[str, float]) -> None:
    for key, value in values.items():
        _check_unit_interval(f"{name}.{key}", value)
    total = sum(values.values())
    if abs(total - 1.0) > 1e-6:
        raise ConfigurationError(name, f"weights must sum to 1.0, got {total:.4f}")


@dataclass(frozen=True)
class RadiusTiers:
    exact: float = 20.0
    near: float = 60.0
    extended: float = 150.0
    far: float = 400.0

    def __post_init__(self) -> None:
        radii = (self.exact, self.near, self.extended, self.far)
        if any(radius <= 0 for radius in radii):
            raise ConfigurationError("radius_tiers", "radii must be positive")
        if list(radii) != sorted(radii):
            raise ConfigurationError("radius_tiers", "radii must grow from exact to far")

    @property
    def largest(self) -> float:
        return max(self.exact, self.near, self.extended, self.far)


@dataclass(frozen=True)
class AcceptanceThresholds:
    high: float = 0.90
    medium: float = 0.75
    low: float = 0.55
    very_low: float = 0.35

    def __post_init__(self) -> None:
        values = (self.high, self.medium, self.low, self.very_low)
        for name, value in zip(("high", "medium", "low", "very_low"), values):
            _check_unit_interval(f"thresholds.{name}", value)
        if list(values) != sorted(values, reverse=True):
            raise ConfigurationError("thresholds", "thresholds must decrease from high to very_low")


@dataclass(frozen=True)
class CompositeWeights:
    distance: float = 0.25
    text: float = 0.45
    semantic: float = 0.20
    structural: float = 0.10

    def __post_init__(self) -> None:
        _check_weights_sum(
            "weights",
            {
                "distance": self.distance,
                "text": self.text,
                "semantic": self.semantic,
                "structural": self.structural,
            },
        )


@dataclass(frozen=True)
class MatcherConfig:
    radius_tiers: RadiusTiers = field(default_factory=RadiusTiers)
    thresholds: AcceptanceThresholds = field(default_factory=AcceptanceThresholds)
    weights: CompositeWeights = field(default_factory=CompositeWeights)


@dataclass(frozen=True)
class TitleSimilarityThresholds:
    high: float = 0.8
    medium: float = 0.6
    low: float = 0.4

    def __post_init__(self) -> None:
        for name in ("high", "medium", "low"):
            _check_unit_interval(f"title_similarity.{name}", getattr(self, name))


@dataclass(frozen=True)
class GroupingWeights:
    coordinates: float = 0.4
    title: float = 0.3
    characteristics: float = 0.2
    price: float = 0.1

    def __post_init__(self) -> None:
        _check_weights_sum(
            "grouping.weights",
            {
                "coordinates": self.coordinates,
                "title": self.title,
                "characteristics": self.characteristics,
                "price": self.price,
            },
        )


@dataclass(frozen=True)
class GroupingConfig:
    # The only grouping radius; pairs further apart than this get no
    # coordinate credit.
    max_distance_in_group: float = 100.0
    min_listings_for_address: int = 2
    title_similarity: TitleSimilarityThresholds = field(default_factory=TitleSimilarityThresholds)
    weights: GroupingWeights = field(default_factory=GroupingWeights)
    consolidate: bool = True
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if self.max_distance_in_group <= 0:
            raise ConfigurationError("max_distance_in_group", "must be positive")
        if self.min_listings_for_address < 2:
            raise ConfigurationError("min_listings_for_address", "a cluster needs at least 2 listings")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers", "must be at least 1")


@dataclass(frozen=True)
class PipelineConfig:
    matcher: MatcherConfig = field(default_factory=MatcherConfig)
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    candidate_search_radius: float = 1000.0
    unresolved_distance_meters: float = 50.0

    def __post_init__(self) -> None:
        if self.candidate_search_radius < self.matcher.radius_tiers.largest:
            raise ConfigurationError(
                "candidate_search_radius",
                "must cover at least the largest matcher radius",
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PipelineConfig":
        return _build(cls, raw, "")


def _build(kind, raw: Mapping[str, Any], prefix: str):
    if not isinstance(raw, Mapping):
        raise ConfigurationError(prefix.rstrip(".") or "config", "expected a mapping")

    known = {item.name: item for item in fields(kind)}
    unknown = set(raw) - set(known)
    if unknown:
        raise ConfigurationError(prefix.rstrip(".") or "config", f"unknown keys: {', '.join(sorted(unknown))}")

    kwargs: Dict[str, Any] = {}
    for name, value in raw.items():
        default = known[name].default_factory  # type: ignore[misc]
        nested = default() if callable(default) else None
        if nested is not None and is_dataclass(nested):
            kwargs[name] = _build(type(nested), value, f"{prefix}{name}.")
        else:
            kwargs[name] = value
    try:
        return kind(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(prefix.rstrip(".") or "config", str(exc)) from exc


def load_config(path: str | Path) -> PipelineConfig:
    """Read partial overrides from a JSON file; omitted keys keep their defaults."""
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(str(p), f"cannot read config: {exc}") from exc
    return PipelineConfig.from_dict(raw)
