"""Collaborators the pipeline is constructed with.

Implementations may be plain methods or coroutines; the pipeline awaits
whatever comes back when it is awaitable. Retries and backoff belong to the
implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, List, Union

from .components import AddressRecord, Coordinates, NewAddressRequest


class SpatialCandidateFinder(ABC):
    @abstractmethod
    def find_within_radius(
        self, center: Coordinates, radius_meters: float
    ) -> Union[List[AddressRecord], Awaitable[List[AddressRecord]]]:
        """Canonical addresses within ``radius_meters`` of ``center``."""
        raise NotImplementedError


class AddressStore(ABC):
    @abstractmethod
    def create(self, request: NewAddressRequest) -> Union[AddressRecord, Awaitable[AddressRecord]]:
        """Persist a new canonical address and return it with a stable id."""
        raise NotImplementedError


class ListingStore(ABC):
    @abstractmethod
    def set_address_link(
        self, listing_id: str, address_id: str, match_metadata: Dict[str, Any]
    ) -> Union[None, Awaitable[None]]:
        raise NotImplementedError
