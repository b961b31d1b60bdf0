import pytest

from address_resolution.components import DerivedAttributes, ListingCluster
from address_resolution.config import GroupingConfig
from address_resolution.grouping import ListingGroupingEngine, select_unresolved

from conftest import ORIGIN, listing, offset

TITLE = "квартира на ленина"


def row(listing_id, north, title=TITLE, **kwargs):
    return listing(listing_id, coordinates=offset(ORIGIN, north=north), title=title, **kwargs)


@pytest.fixture()
def engine():
    return ListingGroupingEngine()


def test_two_listings_of_the_same_flat_form_a_cluster(engine):
    first = listing(
        "L1",
        coordinates=ORIGIN,
        title="2к квартира, ул. Ленина 5",
        price=5_000_000,
        area_total=50.0,
    )
    second = listing(
        "L2",
        coordinates=offset(ORIGIN, north=15.0),
        title="2-комн. квартира ул Ленина д.5",
        price=5_200_000,
        area_total=52.0,
    )

    clusters = engine.discover_clusters([first, second])

    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.member_ids == ("L1", "L2")
    assert "ленина" in cluster.derived_attributes.label.lower()
    assert cluster.average_internal_similarity == pytest.approx(engine.similarity(first, second).overall)
    assert cluster.average_internal_similarity >= 0.6


def test_greedy_clustering_depends_on_input_order(engine):
    a, b, c = row("A", 0.0), row("B", 20.0), row("C", 40.0)

    assert [cl.member_ids for cl in engine.discover_clusters([a, b, c])] == [("A", "B")]
    assert [cl.member_ids for cl in engine.discover_clusters([b, a, c])] == [("B", "A", "C")]


def test_clustering_is_deterministic(engine):
    rows = [row(f"L{i}", north=i * 12.0) for i in range(8)]

    first = [cluster.member_ids for cluster in engine.discover_clusters(rows)]
    second = [cluster.member_ids for cluster in engine.discover_clusters(rows)]
    assert first == second


def test_thread_pool_gives_the_same_clusters():
    rows = [row(f"L{i}", north=i * 12.0) for i in range(10)]
    sequential = ListingGroupingEngine(GroupingConfig(max_workers=1)).discover_clusters(rows)
    pooled = ListingGroupingEngine(GroupingConfig(max_workers=4)).discover_clusters(rows)

    assert [c.member_ids for c in pooled] == [c.member_ids for c in sequential]


def test_min_cluster_size():
    engine = ListingGroupingEngine(GroupingConfig(min_listings_for_address=3))
    a, b, c = row("A", 0.0), row("B", 20.0), row("C", 40.0)

    assert engine.discover_clusters([a, b, c]) == []
    assert [cl.member_ids for cl in engine.discover_clusters([b, a, c])] == [("B", "A", "C")]


def test_lone_listings_do_not_form_clusters(engine):
    assert engine.discover_clusters([row("A", 0.0)]) == []
    assert engine.discover_clusters([]) == []


def test_listings_without_coordinates_are_left_out(engine):
    missing = listing("X", coordinates=None, title=TITLE)
    clusters = engine.discover_clusters([missing, row("A", 0.0), row("B", 5.0)])

    assert [cluster.member_ids for cluster in clusters] == [("A", "B")]


def test_every_listing_lands_in_at_most_one_cluster(engine):
    rows = [row(f"L{i}", north=i * 7.0) for i in range(12)]
    clusters = engine.discover_clusters(rows)

    seen = [member for cluster in clusters for member in cluster.member_ids]
    assert len(seen) == len(set(seen))
    assert all(cluster.size >= 2 for cluster in clusters)


def test_cluster_centroid_and_attributes(engine):
    clusters = engine.discover_clusters([row("A", 0.0, floors_total=9), row("B", 10.0, floors_total=9)])

    cluster = clusters[0]
    assert cluster.centroid.lat == pytest.approx(offset(ORIGIN, north=5.0).lat)
    assert cluster.derived_attributes.floors_total == 9
    assert cluster.derived_attributes.member_count == 2
    assert cluster.derived_attributes.label == "Квартира ленина"


def test_nearby_clusters_with_the_same_label_are_consolidated(engine):
    rows = [row("A", 0.0), row("B", 10.0), row("C", 60.0), row("D", 70.0)]

    clusters = engine.discover_clusters(rows)
    assert [cluster.member_ids for cluster in clusters] == [("A", "B"), ("C", "D")]

    merged = engine.consolidate_clusters(clusters)
    assert len(merged) == 1
    assert merged[0].member_ids == ("A", "B", "C", "D")
    assert merged[0].consolidated_from == [0, 1]
    assert merged[0].centroid.lat == pytest.approx(offset(ORIGIN, north=35.0).lat)


def test_distant_clusters_are_kept_apart(engine):
    rows = [row("A", 0.0), row("B", 10.0), row("C", 500.0), row("D", 510.0)]

    merged = engine.consolidate_clusters(engine.discover_clusters(rows))

    assert [cluster.member_ids for cluster in merged] == [("A", "B"), ("C", "D")]
    assert [cluster.consolidated_from for cluster in merged] == [[0], [1]]


def _cluster(label, north):
    return ListingCluster(
        members=[row(label, north)],
        centroid=offset(ORIGIN, north=north),
        derived_attributes=DerivedAttributes(label=label),
    )


def test_same_street_clusters_merge_only_when_close(engine):
    first = _cluster("Улица ленина 5 корпус 1 подъезд второй", 0.0)
    close = _cluster("ул. Ленина 12 строение", 30.0)
    far = _cluster("ул. Ленина 12 строение", 80.0)

    assert engine.should_merge(first, close)
    assert not engine.should_merge(first, far)


def test_clusters_without_centroid_never_merge(engine):
    first = _cluster("Квартира ленина", 0.0)
    blank = ListingCluster(members=[], derived_attributes=DerivedAttributes(label="Квартира ленина"))

    assert not engine.should_merge(first, blank)


def test_select_unresolved():
    point = offset(ORIGIN, north=1.0)
    rows = [
        listing("new", coordinates=point),
        listing("weak", coordinates=point, address_id="A1", match_confidence="low"),
        listing("very_weak", coordinates=point, address_id="A1", match_confidence="very_low"),
        listing("far", coordinates=point, address_id="A1", match_confidence="medium", match_distance=75.0),
        listing("good", coordinates=point, address_id="A1", match_confidence="high", match_distance=10.0),
        listing("archived", coordinates=point, status="archived"),
        listing("nowhere", coordinates=None),
    ]

    selected = [item.listing_id for item in select_unresolved(rows)]

    assert selected == ["new", "weak", "very_weak", "far"]
    assert [item.listing_id for item in select_unresolved(rows, max_distance=100.0)] == ["new", "weak", "very_weak"]


def test_iter_clusters_yields_once_per_seed(engine):
    a, b, c = row("A", 0.0), row("B", 20.0), row("C", 40.0)

    steps = list(engine.iter_clusters([a, b, c]))

    assert [None if step is None else step.member_ids for step in steps] == [("A", "B"), None]


def test_closing_iter_clusters_early_releases_the_pool():
    engine = ListingGroupingEngine(GroupingConfig(max_workers=2))
    steps = engine.iter_clusters([row(f"L{i}", north=i * 500.0) for i in range(5)])

    assert next(steps) is None
    steps.close()
    with pytest.raises(StopIteration):
        next(steps)
