from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from .components import AddressRecord, Coordinates, MatchResult, RawListing
from .config import MatcherConfig
from .parser import analyze_address
from .strategies import MatchContext, MatchTier, build_tiers

logger = structlog.get_logger(__name__)


class TieredMatcher:
    """Resolve a listing against a candidate pool through escalating radius tiers.

    Tiers run in order (exact, near, extended, far, global) and the first one
    that accepts decides the result. Holds only read-only configuration, so
    one instance can serve any number of calls.
    """

    def __init__(
        self,
        config: MatcherConfig | None = None,
        tiers: Sequence[MatchTier] | None = None,
    ) -> None:
        self.config = config or MatcherConfig()
        self.tiers = tuple(tiers) if tiers is not None else build_tiers(self.config)

    def match(self, listing: RawListing, candidates: Iterable[AddressRecord]) -> MatchResult:
        analysis = analyze_address(listing.address)
        point = listing.point
        if point is None:
            logger.debug("listing has no usable coordinates", listing_id=listing.listing_id)
            return MatchResult(analysis=analysis)

        located, skipped = _with_coordinates(candidates)
        if skipped:
            logger.debug(
                "skipping candidates without coordinates",
                listing_id=listing.listing_id,
                skipped=skipped,
            )
        if not located:
            return MatchResult(analysis=analysis)

        context = MatchContext(point, analysis, located, self.config)
        for tier in self.tiers:
            result = tier.evaluate(context)
            if result is not None:
                logger.debug(
                    "tier accepted candidate",
                    listing_id=listing.listing_id,
                    tier=tier.name,
                    address_id=result.address.address_id if result.address else None,
                    score=round(result.total_score, 4),
                    confidence=result.confidence,
                )
                return result

        return MatchResult(analysis=analysis)


def _with_coordinates(
    candidates: Iterable[AddressRecord],
) -> Tuple[List[Tuple[AddressRecord, Coordinates]], int]:
    located: List[Tuple[AddressRecord, Coordinates]] = []
    skipped = 0
    for candidate in candidates or ():
        point: Optional[Coordinates] = candidate.point
        if point is None:
            skipped += 1
            continue
        located.append((candidate, point))
    return located, skipped
