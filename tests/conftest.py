"""Shared builders: geometry helpers and in-memory collaborators."""

import math

import pytest

from address_resolution.components import AddressRecord, Coordinates, RawListing
from address_resolution.interfaces import AddressStore, ListingStore, SpatialCandidateFinder
from address_resolution.scorer import EARTH_RADIUS_METERS, geo_distance

ORIGIN = Coordinates(lat=55.7500, lng=37.6200)


def offset(point: Coordinates, north: float = 0.0, east: float = 0.0) -> Coordinates:
    """Shift ``point`` by the given number of meters."""
    dlat = math.degrees(north / EARTH_RADIUS_METERS)
    dlng = math.degrees(east / (EARTH_RADIUS_METERS * math.cos(math.radians(point.lat))))
    return Coordinates(lat=point.lat + dlat, lng=point.lng + dlng)


def listing(listing_id: str, address: str = "", coordinates=None, **kwargs) -> RawListing:
    return RawListing(listing_id=listing_id, address=address, coordinates=coordinates, **kwargs)


def address(address_id: str, text: str, coordinates=None) -> AddressRecord:
    return AddressRecord(address_id=address_id, address_text=text, coordinates=coordinates)


class InMemoryFinder(SpatialCandidateFinder):
    def __init__(self, records):
        self.records = list(records)
        self.calls = []

    def find_within_radius(self, center, radius_meters):
        self.calls.append((center, radius_meters))
        return [
            record
            for record in self.records
            if record.point is not None and geo_distance(center, record.point) <= radius_meters
        ]


class AsyncInMemoryFinder(InMemoryFinder):
    async def find_within_radius(self, center, radius_meters):
        return InMemoryFinder.find_within_radius(self, center, radius_meters)


class FailingFinder(SpatialCandidateFinder):
    def __init__(self, exc: BaseException):
        self.exc = exc

    def find_within_radius(self, center, radius_meters):
        raise self.exc


class InMemoryAddressStore(AddressStore):
    def __init__(self, fail_for_labels=()):
        self.created = []
        self.fail_for_labels = set(fail_for_labels)

    def create(self, request):
        if request.label in self.fail_for_labels:
            raise RuntimeError("address store unavailable")
        record = AddressRecord(
            address_id=f"new-{len(self.created) + 1}",
            address_text=request.label,
            coordinates=request.coordinates,
            attributes=dict(request.attributes),
        )
        self.created.append((request, record))
        return record


class InMemoryListingStore(ListingStore):
    def __init__(self, fail_for=()):
        self.links = {}
        self.fail_for = set(fail_for)

    def set_address_link(self, listing_id, address_id, match_metadata):
        if listing_id in self.fail_for:
            raise RuntimeError("listing store unavailable")
        self.links[listing_id] = (address_id, match_metadata)


@pytest.fixture()
def address_store():
    return InMemoryAddressStore()


@pytest.fixture()
def listing_store():
    return InMemoryListingStore()
