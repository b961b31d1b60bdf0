from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, List, Optional, Sequence

import structlog

from .components import (
    Coordinates,
    DerivedAttributes,
    LinkInstruction,
    ListingCluster,
    NewAddressRequest,
    RawListing,
)
from .exceptions import SynthesisSkipped
from .normalize import normalize_title, polish_label

logger = structlog.get_logger(__name__)

PLACEHOLDER_LABEL = "Адрес без названия"
SOURCE_TAG = "cluster_synthesis"
MIN_LABEL_WORD_LENGTH = 3


def cluster_centroid(members: Iterable[RawListing]) -> Optional[Coordinates]:
    """Mean of member coordinates; members without coordinates are ignored."""
    points = [point for point in (member.point for member in members) if point is not None]
    if not points:
        return None
    return Coordinates(
        lat=sum(point.lat for point in points) / len(points),
        lng=sum(point.lng for point in points) / len(points),
    )


def common_title(members: Sequence[RawListing]) -> str:
    """Words of the first title that appear in more than half of all titles."""
    if not members:
        return ""

    titles = [set(normalize_title(member.title).split()) for member in members]
    words: List[str] = []
    for word in normalize_title(members[0].title).split():
        if len(word) < MIN_LABEL_WORD_LENGTH or word in words:
            continue
        count = sum(1 for title in titles if word in title)
        if count / len(members) > 0.5:
            words.append(word)
    return " ".join(words)


def most_frequent(values: Iterable[Any]) -> Any:
    counts = Counter(value for value in values if value is not None)
    if not counts:
        return None
    # Counter keeps first-seen order, so ties go to the earliest value.
    return max(counts, key=counts.__getitem__)


def average_price(members: Iterable[RawListing]) -> Optional[float]:
    prices = [member.price for member in members if member.price and member.price > 0]
    if not prices:
        return None
    return sum(prices) / len(prices)


def derive_attributes(members: Sequence[RawListing], placeholder: str = PLACEHOLDER_LABEL) -> DerivedAttributes:
    common = common_title(members)
    return DerivedAttributes(
        label=polish_label(common) if common else placeholder,
        floors_total=most_frequent(member.floors_total for member in members),
        property_type=most_frequent(member.property_type for member in members),
        average_price=average_price(members),
        member_count=len(members),
    )


class AddressSynthesizer:
    """Turn a listing cluster into a request for a new canonical address."""

    def __init__(self, placeholder_label: str = PLACEHOLDER_LABEL) -> None:
        self.placeholder_label = placeholder_label

    def synthesize(self, cluster: ListingCluster) -> NewAddressRequest:
        """Build the creation request.

        Raises :class:`SynthesisSkipped` when no member carries coordinates.
        """
        centroid = cluster.centroid or cluster_centroid(cluster.members)
        if centroid is None:
            raise SynthesisSkipped("no member has usable coordinates", cluster.member_ids)

        attributes = cluster.derived_attributes or derive_attributes(cluster.members, self.placeholder_label)
        label = attributes.label
        if attributes.floors_total:
            label = f"{label}, {attributes.floors_total} эт."
        request = NewAddressRequest(
            label=label,
            coordinates=centroid,
            attributes={
                "floors_total": attributes.floors_total,
                "property_type": attributes.property_type,
                "average_price": attributes.average_price,
                "listing_ids": list(cluster.member_ids),
            },
            source_tag=SOURCE_TAG,
            confidence=cluster.average_internal_similarity,
            member_count=cluster.size,
        )
        logger.debug(
            "synthesized address request",
            label=request.label,
            member_count=request.member_count,
            confidence=round(request.confidence, 4),
        )
        return request

    def link_instructions(self, cluster: ListingCluster, address_id: str) -> List[LinkInstruction]:
        return [
            LinkInstruction(listing_id=member.listing_id, address_id=address_id, match_method=SOURCE_TAG)
            for member in cluster.members
        ]
