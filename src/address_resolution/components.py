from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Coordinates:
    """WGS84 point in decimal degrees."""

    lat: float
    lng: float

    @classmethod
    def coerce(cls, value: Any) -> Optional["Coordinates"]:
        """Build coordinates from loosely typed input, ``None`` when unusable."""
        if value is None:
            return None
        if isinstance(value, Coordinates):
            lat, lng = value.lat, value.lng
        elif isinstance(value, Mapping):
            lat = value.get("lat")
            lng = value.get("lng", value.get("lon"))
        elif isinstance(value, (tuple, list)) and len(value) == 2:
            lat, lng = value
        else:
            return None

        try:
            lat = float(lat)
            lng = float(lng)
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            return None
        return cls(lat=lat, lng=lng)


@dataclass(frozen=True)
class RawListing:
    """A scraped listing whose address still has to be resolved."""

    listing_id: str
    address: str = ""
    title: str = ""
    coordinates: Any = None
    property_type: Optional[str] = None
    area_total: Optional[float] = None
    floors_total: Optional[int] = None
    rooms: Optional[int] = None
    price: Optional[float] = None
    status: str = "active"
    address_id: Optional[str] = None
    match_confidence: Optional[str] = None
    match_distance: Optional[float] = None

    @property
    def point(self) -> Optional[Coordinates]:
        return Coordinates.coerce(self.coordinates)


@dataclass(frozen=True)
class NormalizedAddress:
    """Structure recovered from a free-text address."""

    original: str = ""
    normalized_text: str = ""
    tokens: Tuple[str, ...] = ()
    city: Optional[str] = None
    street: Optional[str] = None
    house_number: Optional[str] = None
    building: Optional[str] = None
    word_count: int = 0
    length: int = 0


@dataclass(frozen=True)
class AddressRecord:
    """A canonical address held by the external address store."""

    address_id: str
    address_text: str
    coordinates: Any = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def point(self) -> Optional[Coordinates]:
        return Coordinates.coerce(self.coordinates)


@dataclass(frozen=True)
class ComponentScores:
    text: float = 0.0
    semantic: float = 0.0
    structural: float = 0.0
    distance: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "text": self.text,
            "semantic": self.semantic,
            "structural": self.structural,
            "distance": self.distance,
        }


@dataclass
class MatchResult:
    """Outcome of matching one listing against a candidate pool."""

    address: Optional[AddressRecord] = None
    confidence: str = "none"
    method: str = "no_match"
    distance_meters: Optional[float] = None
    component_scores: ComponentScores = field(default_factory=ComponentScores)
    total_score: float = 0.0
    analysis: Optional[NormalizedAddress] = None

    @property
    def matched(self) -> bool:
        return self.address is not None

    def metadata(self) -> Dict[str, Any]:
        """Link metadata handed to the listing store."""
        return {
            "match_confidence": self.confidence,
            "match_method": self.method,
            "match_score": round(self.total_score, 4),
            "match_distance": self.distance_meters,
            "component_scores": self.component_scores.as_dict(),
        }


@dataclass(frozen=True)
class DerivedAttributes:
    label: str
    floors_total: Optional[int] = None
    property_type: Optional[str] = None
    average_price: Optional[float] = None
    member_count: int = 0


@dataclass
class ListingCluster:
    """Unresolved listings judged to share one not-yet-known address."""

    members: List[RawListing]
    centroid: Optional[Coordinates] = None
    average_internal_similarity: float = 0.0
    derived_attributes: Optional[DerivedAttributes] = None
    consolidated_from: List[int] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> Tuple[str, ...]:
        return tuple(member.listing_id for member in self.members)


@dataclass(frozen=True)
class NewAddressRequest:
    label: str
    coordinates: Coordinates
    attributes: Dict[str, Any] = field(default_factory=dict)
    source_tag: str = "cluster_synthesis"
    confidence: float = 0.0
    member_count: int = 0


@dataclass(frozen=True)
class LinkInstruction:
    listing_id: str
    address_id: str
    match_confidence: str = "medium"
    match_method: str = "cluster_synthesis"
    match_score: float = 0.7

    def metadata(self) -> Dict[str, Any]:
        return {
            "match_confidence": self.match_confidence,
            "match_method": self.match_method,
            "match_score": self.match_score,
        }
