from __future__ import annotations

from typing import Optional

from .components import NormalizedAddress
from .normalize import (
    BUILDING_KEYWORDS,
    BUILDING_PATTERN,
    BUILDING_WORD_PATTERN,
    CITY_PREFIX_PATTERN,
    HOUSE_FRAGMENT_PATTERN,
    HOUSE_NUMBER_PATTERNS,
    REGION_PATTERNS,
    REGION_WORD_PATTERN,
    STREET_PATTERN,
    collapse_whitespace,
    normalize_address_text,
)


def extract_city(address_text: str) -> Optional[str]:
    lowered = address_text.lower()
    for city, pattern in REGION_PATTERNS:
        if pattern.search(lowered):
            return city
    return None


def extract_street(normalized: str) -> Optional[str]:
    without_city = REGION_WORD_PATTERN.sub(" ", normalized)
    without_city = collapse_whitespace(CITY_PREFIX_PATTERN.sub(" ", without_city))
    match = STREET_PATTERN.search(without_city)
    if match:
        return f"{match.group(1).strip()} {match.group(2)}"

    # No "<name> <type>" phrase: keep everything except the house part.
    remainder = HOUSE_FRAGMENT_PATTERN.sub(" ", without_city)
    remainder = collapse_whitespace(BUILDING_WORD_PATTERN.sub(" ", remainder))
    return remainder or None


def extract_house_number(address_text: str) -> Optional[str]:
    for pattern in HOUSE_NUMBER_PATTERNS:
        match = pattern.search(address_text)
        if match:
            parts = match.groupdict()
            house = parts["number"] + (parts.get("letter") or "").lower()
            if parts.get("corpus"):
                house += "к" + parts["corpus"]
            return house
    return None


def extract_building(address_text: str) -> Optional[str]:
    match = BUILDING_PATTERN.search(address_text)
    if not match:
        return None
    keyword = BUILDING_KEYWORDS[match.group(1).lower()]
    return f"{keyword} {match.group(2).lower()}"


def analyze_address(address_text: Optional[str]) -> NormalizedAddress:
    """Parse a free-text address into its normalized structure.

    Never raises: fields that cannot be recovered are left as ``None``.
    """
    if not address_text:
        return NormalizedAddress()

    raw = str(address_text)
    normalized = normalize_address_text(raw)
    tokens = tuple(token for token in normalized.split(" ") if token)

    return NormalizedAddress(
        original=raw,
        normalized_text=normalized,
        tokens=tokens,
        city=extract_city(raw),
        street=extract_street(normalized),
        house_number=extract_house_number(raw),
        building=extract_building(raw),
        word_count=len(tokens),
        length=len(normalized),
    )
