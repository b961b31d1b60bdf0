"""Resolve scraped listing addresses and discover new ones from listing clusters."""

from .components import (
    AddressRecord,
    ComponentScores,
    Coordinates,
    LinkInstruction,
    ListingCluster,
    MatchResult,
    NewAddressRequest,
    NormalizedAddress,
    RawListing,
)
from .config import GroupingConfig, MatcherConfig, PipelineConfig, load_config
from .engine import TieredMatcher
from .grouping import ListingGroupingEngine, select_unresolved
from .parser import analyze_address
from .pipeline import AddressResolutionPipeline
from .synthesis import AddressSynthesizer

__all__ = [
    "AddressRecord",
    "AddressResolutionPipeline",
    "AddressSynthesizer",
    "ComponentScores",
    "Coordinates",
    "GroupingConfig",
    "LinkInstruction",
    "ListingCluster",
    "ListingGroupingEngine",
    "MatchResult",
    "MatcherConfig",
    "NewAddressRequest",
    "NormalizedAddress",
    "PipelineConfig",
    "RawListing",
    "TieredMatcher",
    "analyze_address",
    "load_config",
    "select_unresolved",
]
