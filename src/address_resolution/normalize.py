from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Optional, Pattern, Tuple

STREET_TYPES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "улица": ("ул", "улица", "street", "st"),
        "проспект": ("пр", "проспект", "пр-т", "пр-кт", "avenue", "av"),
        "переулок": ("пер", "переулок", "lane"),
        "бульвар": ("бул", "б-р", "бульвар", "boulevard", "blvd"),
        "площадь": ("пл", "площадь", "square", "sq"),
        "набережная": ("наб", "набережная", "embankment"),
        "шоссе": ("ш", "шоссе", "highway", "hwy"),
    }
)

BUILDING_TYPES: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "дом": ("д", "дом", "house", "h"),
        "корпус": ("к", "корп", "корпус", "building", "bld"),
        "строение": ("стр", "строение", "structure"),
        "литер": ("лит", "литер", "letter"),
    }
)

REGIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType(
    {
        "москва": ("москва", "moscow", "мск"),
        "санкт-петербург": ("спб", "питер", "санкт-петербург", "st-petersburg"),
        "екатеринбург": ("екатеринбург", "екб"),
        "новосибирск": ("новосибирск", "нск"),
        "казань": ("казань",),
    }
)

STREET_TYPE_WORDS = tuple(STREET_TYPES.keys())

BUILDING_KEYWORDS: Mapping[str, str] = MappingProxyType(
    {
        "к": "корпус",
        "корп": "корпус",
        "корпус": "корпус",
        "стр": "строение",
        "строение": "строение",
        "лит": "литер",
        "литер": "литер",
    }
)


def _variant_pattern(variants: Tuple[str, ...]) -> Pattern[str]:
    # Longest first so "пр-т" wins over "пр".
    ordered = sorted(variants, key=len, reverse=True)
    alternation = "|".join(re.escape(variant) for variant in ordered)
    return re.compile(r"(?<![\w-])(?:" + alternation + r")(?![\w-])")


_STREET_TYPE_PATTERNS = tuple(
    (canonical, _variant_pattern(variants)) for canonical, variants in STREET_TYPES.items()
)
_BUILDING_TYPE_PATTERNS = tuple(
    (canonical, _variant_pattern(variants)) for canonical, variants in BUILDING_TYPES.items()
)

PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")
WHITESPACE_PATTERN = re.compile(r"\s+")

STREET_PATTERN = re.compile(
    r"([а-яё\s]+)\s+(" + "|".join(STREET_TYPE_WORDS) + r")\b"
)
STREET_TYPE_WORD_PATTERN = re.compile(r"\b(?:" + "|".join(STREET_TYPE_WORDS) + r")\b")
HOUSE_FRAGMENT_PATTERN = re.compile(r"\b\d+[а-яё]*\s*(?:корпус|дом|строение)?\s*\d*\b")
BUILDING_WORD_PATTERN = re.compile(r"\b(?:" + "|".join(BUILDING_TYPES.keys()) + r")\b")
REGION_PATTERNS = tuple(
    (city, _variant_pattern(variants)) for city, variants in REGIONS.items()
)
# Normalised text has hyphens replaced by spaces, so match both spellings.
REGION_WORD_PATTERN = _variant_pattern(
    tuple({form for variants in REGIONS.values() for v in variants for form in (v, v.replace("-", " "))})
)
CITY_PREFIX_PATTERN = _variant_pattern(("г", "гор", "город"))

# Tried in order: "15б к 2", "15б", "15".
HOUSE_NUMBER_PATTERNS = (
    re.compile(
        r"\b(?P<number>\d+)\s*(?P<letter>[а-яёa-z]?)\s*(?:корпус|корп|к)\.?\s*(?P<corpus>\d+)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?P<number>\d+)\s*(?P<letter>[а-яёa-z])\b", re.IGNORECASE),
    re.compile(r"\b(?P<number>\d+)\b"),
)

BUILDING_PATTERN = re.compile(
    r"\b(корпус|корп|строение|стр|литер|лит|к)\.?\s*(\d+[а-яё]?|[а-яё])\b",
    re.IGNORECASE,
)

# Listing-title noise: room counts, areas, floors and prices.
TITLE_NOISE_PATTERNS = (
    (re.compile(r"\d+\s*-?\s*к(?:омн)?\.?\s*(?=квартир)"), ""),
    (re.compile(r"\d+\s*-?\s*комн\.?"), " "),
    (re.compile(r"\d+(?:[.,]\d+)?\s*м(?:²|2)?(?![а-яё])"), " "),
    (re.compile(r"\d+\s*/\s*\d+\s*эт\.?"), " "),
    (re.compile(r"\d[\d\s]*\s*(?:₽|руб\.?)"), " "),
)

LABEL_PREFIX_EXPANSIONS = (
    (re.compile(r"^ул\s+"), "улица "),
    (re.compile(r"^пр\s+"), "проспект "),
    (re.compile(r"^пер\s+"), "переулок "),
)


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_address_text(address_text: Optional[str]) -> str:
    """Lower-case, canonicalise street/building abbreviations, drop punctuation."""
    if not address_text:
        return ""

    normalized = str(address_text).lower().strip()
    for canonical, pattern in _STREET_TYPE_PATTERNS:
        normalized = pattern.sub(canonical, normalized)
    for canonical, pattern in _BUILDING_TYPE_PATTERNS:
        normalized = pattern.sub(canonical, normalized)

    normalized = PUNCTUATION_PATTERN.sub(" ", normalized)
    return collapse_whitespace(normalized)


def normalize_title(title: Optional[str]) -> str:
    """Reduce a listing title to its address-like words."""
    if not title:
        return ""

    normalized = str(title).lower()
    for pattern, replacement in TITLE_NOISE_PATTERNS:
        normalized = pattern.sub(replacement, normalized)
    normalized = PUNCTUATION_PATTERN.sub(" ", normalized)
    return collapse_whitespace(normalized)


def strip_street_types(street: str) -> str:
    return collapse_whitespace(STREET_TYPE_WORD_PATTERN.sub("", street))


def polish_label(label: str) -> str:
    label = collapse_whitespace(label)
    for pattern, replacement in LABEL_PREFIX_EXPANSIONS:
        label = pattern.sub(replacement, label)
    return label[:1].upper() + label[1:]
