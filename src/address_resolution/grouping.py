from __future__ import annotations

import re
from concurrent.futures import Executor, ThreadPoolExecutor
from functools import partial
from typing import Iterable, Iterator, List, Optional, Sequence

import structlog
from rapidfuzz.distance import Levenshtein

from .components import ListingCluster, RawListing
from .config import GroupingConfig
from .scorer import ListingSimilarity, geo_distance, listing_similarity
from .synthesis import cluster_centroid, derive_attributes

logger = structlog.get_logger(__name__)

LOW_CONFIDENCE_LEVELS = ("low", "very_low")

# Short forms used only when comparing cluster labels with each other.
_LABEL_SHORT_FORMS = {
    "улица": "ул",
    "проспект": "пр",
    "переулок": "пер",
    "владение": "вл",
    "дом": "д",
    "корпус": "к",
    "строение": "с",
}

LABEL_MERGE_SIMILARITY = 0.8
LABEL_MERGE_DISTANCE = 100.0
SAME_STREET_MERGE_DISTANCE = 50.0


def select_unresolved(listings: Iterable[RawListing], max_distance: float = 50.0) -> List[RawListing]:
    """Active listings with coordinates whose current address link is missing or weak."""
    selected = []
    for listing in listings:
        if listing.status != "active" or listing.point is None:
            continue
        no_address = not listing.address_id
        weak = listing.match_confidence in LOW_CONFIDENCE_LEVELS
        far = listing.match_distance is not None and listing.match_distance > max_distance
        if no_address or weak or far:
            selected.append(listing)
    return selected


def _comparison_key(label: str) -> str:
    words = re.sub(r"[^\w\s]", " ", label.lower()).split()
    return " ".join(_LABEL_SHORT_FORMS.get(word, word) for word in words)


class ListingGroupingEngine:
    """Greedy-seeded clustering of listings the matcher could not resolve.

    A single pass in input order: every still-unassigned listing seeds a
    cluster and absorbs each later unassigned listing whose similarity to
    the seed reaches ``title_similarity.medium``. The outcome depends on
    input order and is not a globally optimal partition. Pairwise scores
    for one seed may be computed on a thread pool; membership is always
    decided sequentially.
    """

    def __init__(self, config: GroupingConfig | None = None) -> None:
        self.config = config or GroupingConfig()

    def similarity(self, left: RawListing, right: RawListing) -> ListingSimilarity:
        return listing_similarity(left, right, self.config.max_distance_in_group, self.config.weights)

    def _pair_score(self, seed: RawListing, other: RawListing) -> float:
        return self.similarity(seed, other).overall

    def _score_against(
        self,
        seed: RawListing,
        others: Sequence[RawListing],
        executor: Optional[Executor],
    ) -> List[float]:
        if executor is None or len(others) < 2:
            return [self._pair_score(seed, other) for other in others]
        return list(executor.map(partial(self._pair_score, seed), others))

    def iter_clusters(self, listings: Iterable[RawListing]) -> Iterator[Optional[ListingCluster]]:
        """Run the greedy pass one seed at a time.

        Yields once per seed: the cluster it formed, or ``None`` when it fell
        below ``min_listings_for_address``. Close the generator to stop early.
        """
        pool = list(listings)
        located = [listing for listing in pool if listing.point is not None]
        skipped = len(pool) - len(located)
        if skipped:
            logger.info("skipping listings without coordinates", skipped=skipped)

        threshold = self.config.title_similarity.medium
        assigned = [False] * len(located)
        formed = 0
        clustered = 0

        workers = self.config.max_workers
        executor = ThreadPoolExecutor(max_workers=workers) if workers and workers > 1 else None
        try:
            for i, seed in enumerate(located):
                if assigned[i]:
                    continue
                assigned[i] = True
                members = [seed]

                pending = [j for j in range(i + 1, len(located)) if not assigned[j]]
                scores = self._score_against(seed, [located[j] for j in pending], executor)
                for j, score in zip(pending, scores):
                    if score >= threshold:
                        members.append(located[j])
                        assigned[j] = True

                if len(members) < self.config.min_listings_for_address:
                    yield None
                    continue
                cluster = self.build_cluster(members, consolidated_from=[formed])
                formed += 1
                clustered += cluster.size
                yield cluster
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        logger.info("greedy clustering finished", listings=len(located), clusters=formed, clustered=clustered)

    def discover_clusters(self, listings: Iterable[RawListing]) -> List[ListingCluster]:
        return [cluster for cluster in self.iter_clusters(listings) if cluster is not None]

    def build_cluster(self, members: Sequence[RawListing], consolidated_from: Optional[List[int]] = None) -> ListingCluster:
        return ListingCluster(
            members=list(members),
            centroid=cluster_centroid(members),
            average_internal_similarity=self.average_internal_similarity(members),
            derived_attributes=derive_attributes(members),
            consolidated_from=list(consolidated_from or []),
        )

    def average_internal_similarity(self, members: Sequence[RawListing]) -> float:
        if len(members) < 2:
            return 1.0
        total = 0.0
        pairs = 0
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                total += self._pair_score(members[i], members[j])
                pairs += 1
        return total / pairs

    def should_merge(self, first: ListingCluster, second: ListingCluster) -> bool:
        if first.centroid is None or second.centroid is None:
            return False
        if first.derived_attributes is None or second.derived_attributes is None:
            return False

        label_first = _comparison_key(first.derived_attributes.label)
        label_second = _comparison_key(second.derived_attributes.label)
        label_similarity = Levenshtein.normalized_similarity(label_first, label_second)
        distance = geo_distance(first.centroid, second.centroid)

        if label_similarity > LABEL_MERGE_SIMILARITY and distance < LABEL_MERGE_DISTANCE:
            return True
        same_street = label_first.split()[:2] == label_second.split()[:2]
        return distance < SAME_STREET_MERGE_DISTANCE and same_street

    def iter_consolidated(self, clusters: Sequence[ListingCluster]) -> Iterator[ListingCluster]:
        """Merge clusters that describe the same place under near-identical labels.

        Yields each surviving cluster as soon as its merges are settled.
        """
        absorbed = set()

        for i, current in enumerate(clusters):
            if i in absorbed:
                continue
            members = list(current.members)
            sources = [i]
            for j in range(i + 1, len(clusters)):
                if j in absorbed:
                    continue
                if self.should_merge(current, clusters[j]):
                    members.extend(clusters[j].members)
                    sources.append(j)
                    absorbed.add(j)

            if len(sources) > 1:
                logger.debug("consolidated clusters", sources=sources, members=len(members))
                yield self.build_cluster(members, consolidated_from=sources)
            else:
                yield ListingCluster(
                    members=members,
                    centroid=current.centroid,
                    average_internal_similarity=current.average_internal_similarity,
                    derived_attributes=current.derived_attributes,
                    consolidated_from=sources,
                )

    def consolidate_clusters(self, clusters: Sequence[ListingCluster]) -> List[ListingCluster]:
        return list(self.iter_consolidated(clusters))
