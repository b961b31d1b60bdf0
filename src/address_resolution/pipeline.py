from __future__ import annotations

import asyncio
import inspect
from contextlib import closing
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import structlog

from .components import AddressRecord, ListingCluster, MatchResult, RawListing
from .config import PipelineConfig
from .engine import TieredMatcher
from .exceptions import CollaboratorError, SynthesisSkipped
from .grouping import ListingGroupingEngine, select_unresolved
from .interfaces import AddressStore, ListingStore, SpatialCandidateFinder
from .synthesis import AddressSynthesizer

logger = structlog.get_logger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class ItemFailure:
    item_id: str
    stage: str
    error: CollaboratorError


@dataclass
class MethodStats:
    count: int = 0
    total_score: float = 0.0

    @property
    def average_score(self) -> float:
        return self.total_score / self.count if self.count else 0.0


@dataclass
class ResolutionReport:
    processed: int = 0
    matched: int = 0
    unmatched: int = 0
    skipped: int = 0
    failed: int = 0
    by_confidence: Dict[str, int] = field(default_factory=dict)
    by_method: Dict[str, MethodStats] = field(default_factory=dict)
    results: Dict[str, MatchResult] = field(default_factory=dict)
    failures: List[ItemFailure] = field(default_factory=list)

    def record_result(self, listing_id: str, result: MatchResult) -> None:
        self.results[listing_id] = result
        stats = self.by_method.setdefault(result.method, MethodStats())
        stats.count += 1
        stats.total_score += result.total_score
        if result.matched:
            self.matched += 1
            self.by_confidence[result.confidence] = self.by_confidence.get(result.confidence, 0) + 1
        else:
            self.unmatched += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "skipped": self.skipped,
            "failed": self.failed,
            "by_confidence": dict(self.by_confidence),
            "by_method": {
                method: {"count": stats.count, "average_score": round(stats.average_score, 4)}
                for method, stats in self.by_method.items()
            },
        }


@dataclass
class SkippedCluster:
    member_ids: tuple
    reason: str


@dataclass
class DiscoveryReport:
    examined: int = 0
    clusters: List[ListingCluster] = field(default_factory=list)
    created: List[AddressRecord] = field(default_factory=list)
    linked: int = 0
    skipped: List[SkippedCluster] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def clustered_listings(self) -> int:
        return sum(cluster.size for cluster in self.clusters)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "examined": self.examined,
            "clusters": len(self.clusters),
            "clustered_listings": self.clustered_listings,
            "unclustered": self.examined - self.clustered_listings,
            "created": len(self.created),
            "linked": self.linked,
            "skipped": len(self.skipped),
            "failed": self.failed,
        }


class AddressResolutionPipeline:
    """Batch driver: match listings to known addresses, then mint addresses for the rest.

    Collaborators are injected; their failures are recorded per listing or
    cluster and never abort the batch. Every listing, greedy seed and cluster is
    followed by a yield to the event loop, so the host can cancel a run.
    """

    def __init__(
        self,
        finder: SpatialCandidateFinder,
        address_store: AddressStore,
        listing_store: ListingStore,
        config: PipelineConfig | None = None,
        matcher: TieredMatcher | None = None,
        grouping: ListingGroupingEngine | None = None,
        synthesizer: AddressSynthesizer | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.finder = finder
        self.address_store = address_store
        self.listing_store = listing_store
        self.matcher = matcher or TieredMatcher(self.config.matcher)
        self.grouping = grouping or ListingGroupingEngine(self.config.grouping)
        self.synthesizer = synthesizer or AddressSynthesizer()

    def _failure(self, failures: List[ItemFailure], item_id: str, stage: str, exc: Exception) -> None:
        error = CollaboratorError(item_id, stage, exc)
        failures.append(ItemFailure(item_id=item_id, stage=stage, error=error))
        logger.error("collaborator call failed", item_id=item_id, stage=stage, error=str(exc))

    async def resolve_listings(self, listings: Iterable[RawListing]) -> ResolutionReport:
        report = ResolutionReport()

        for listing in listings:
            await asyncio.sleep(0)
            report.processed += 1

            point = listing.point
            if point is None:
                report.skipped += 1
                logger.debug("listing skipped, no coordinates", listing_id=listing.listing_id)
                continue

            try:
                candidates = await _resolve(
                    self.finder.find_within_radius(point, self.config.candidate_search_radius)
                )
            except Exception as exc:
                report.failed += 1
                self._failure(report.failures, listing.listing_id, "candidate_lookup", exc)
                continue

            result = self.matcher.match(listing, candidates or [])
            if result.matched:
                try:
                    await _resolve(
                        self.listing_store.set_address_link(
                            listing.listing_id, result.address.address_id, result.metadata()
                        )
                    )
                except Exception as exc:
                    report.failed += 1
                    self._failure(report.failures, listing.listing_id, "link", exc)
                    continue

            report.record_result(listing.listing_id, result)

        logger.info("listing resolution finished", **report.as_dict())
        return report

    async def discover_addresses(
        self,
        listings: Iterable[RawListing],
        select: bool = True,
    ) -> DiscoveryReport:
        """Cluster unresolved listings and create one address per cluster.

        With ``select`` the input is first narrowed with :func:`select_unresolved`;
        pass ``select=False`` when the caller already hands over unresolved listings.
        """
        pool = list(listings)
        if select:
            pool = select_unresolved(pool, self.config.unresolved_distance_meters)

        report = DiscoveryReport(examined=len(pool))
        clusters: List[ListingCluster] = []
        with closing(self.grouping.iter_clusters(pool)) as seeds:
            for cluster in seeds:
                await asyncio.sleep(0)
                if cluster is not None:
                    clusters.append(cluster)

        if self.config.grouping.consolidate:
            merged: List[ListingCluster] = []
            with closing(self.grouping.iter_consolidated(clusters)) as steps:
                for cluster in steps:
                    await asyncio.sleep(0)
                    merged.append(cluster)
            clusters = merged
        report.clusters = clusters

        for cluster in clusters:
            await asyncio.sleep(0)

            try:
                request = self.synthesizer.synthesize(cluster)
            except SynthesisSkipped as exc:
                report.skipped.append(SkippedCluster(member_ids=exc.member_ids, reason=exc.reason))
                logger.warning("cluster skipped", reason=exc.reason, members=len(exc.member_ids))
                continue

            cluster_id = ",".join(cluster.member_ids)
            try:
                record = await _resolve(self.address_store.create(request))
            except Exception as exc:
                self._failure(report.failures, cluster_id, "address_create", exc)
                continue
            report.created.append(record)

            for link in self.synthesizer.link_instructions(cluster, record.address_id):
                try:
                    await _resolve(
                        self.listing_store.set_address_link(link.listing_id, link.address_id, link.metadata())
                    )
                except Exception as exc:
                    self._failure(report.failures, link.listing_id, "link", exc)
                    continue
                report.linked += 1

        logger.info("address discovery finished", **report.as_dict())
        return report

    async def run(self, listings: Iterable[RawListing]) -> Dict[str, Any]:
        """Resolve every listing, then run discovery over whatever stayed unresolved."""
        pool = list(listings)
        resolution = await self.resolve_listings(pool)
        refreshed = [_apply_result(listing, resolution.results.get(listing.listing_id)) for listing in pool]
        discovery = await self.discover_addresses(refreshed)
        return {"resolution": resolution, "discovery": discovery}


def _apply_result(listing: RawListing, result: Optional[MatchResult]) -> RawListing:
    if result is None or not result.matched:
        return listing
    return replace(
        listing,
        address_id=result.address.address_id,
        match_confidence=result.confidence,
        match_distance=result.distance_meters,
    )
