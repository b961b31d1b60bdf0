import pytest

from address_resolution.normalize import (
    BUILDING_TYPES,
    STREET_TYPES,
    normalize_address_text,
    normalize_title,
    polish_label,
)
from address_resolution.parser import analyze_address
from address_resolution.scorer import semantic_similarity


def test_analyze_address_extracts_street_and_number():
    analysis = analyze_address("ул. Строителей, 10")
    assert analysis.normalized_text == "улица строителей 10"
    assert analysis.tokens == ("улица", "строителей", "10")
    assert analysis.street == "улица строителей"
    assert analysis.house_number == "10"
    assert analysis.building is None
    assert analysis.city is None
    assert analysis.word_count == 3
    assert analysis.length == len("улица строителей 10")


def test_analyze_address_handles_city_corpus_and_letter():
    analysis = analyze_address("Москва, пр-т Мира, д. 15Б корп. 2")
    assert analysis.normalized_text == "москва проспект мира дом 15б корпус 2"
    assert analysis.city == "москва"
    assert analysis.street == "проспект мира"
    assert analysis.house_number == "15бк2"
    assert analysis.building == "корпус 2"


def test_house_number_prefers_letter_over_bare_number():
    assert analyze_address("улица Ленина 7А").house_number == "7а"
    assert analyze_address("Ленина, д. 5").house_number == "5"


def test_name_before_street_type_is_recognised():
    analysis = analyze_address("Ленинский проспект 32")
    assert analysis.street == "ленинский проспект"


@pytest.mark.parametrize(
    "raw, street",
    [
        ("г. Москва, ул. Ленина, д. 5", "улица ленина"),
        ("город Казань, улица Баумана 7", "улица баумана"),
    ],
)
def test_city_prefix_is_not_part_of_the_street(raw, street):
    analysis = analyze_address(raw)
    assert analysis.street == street
    assert semantic_similarity(analysis, analyze_address(f"{street} {analysis.house_number}")) == 1.0


def test_city_lookup_uses_whole_words():
    assert analyze_address("СПб, Невский пр., 28").city == "санкт-петербург"
    assert analyze_address("Омск, ул. Ленина 3").city is None


def test_empty_input_gives_empty_analysis():
    analysis = analyze_address("")
    assert analysis.normalized_text == ""
    assert analysis.tokens == ()
    assert analysis.street is None
    assert analysis.house_number is None
    assert analyze_address(None).word_count == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("пр-т Мира", "проспект мира"),
        ("ш. Энтузиастов", "шоссе энтузиастов"),
        ("Тверской б-р", "тверской бульвар"),
        ("наб. реки Фонтанки", "набережная реки фонтанки"),
        ("ул Ленина д.5 к 2", "улица ленина дом 5 корпус 2"),
    ],
)
def test_normalize_address_text_expands_abbreviations(raw, expected):
    assert normalize_address_text(raw) == expected


def test_abbreviations_inside_words_are_left_alone():
    assert normalize_address_text("Пушкинская") == "пушкинская"
    assert normalize_address_text("2к квартира") == "2к квартира"


def test_synonym_tables_are_read_only():
    with pytest.raises(TypeError):
        STREET_TYPES["тупик"] = ("туп",)
    assert "корп" in BUILDING_TYPES["корпус"]


def test_normalize_title_strips_listing_noise():
    assert normalize_title("2к квартира, 45 м², 5/9 эт., 6 500 000 ₽") == "квартира"
    assert normalize_title("2-комн. квартира ул Ленина д.5") == "квартира ул ленина д 5"
    assert normalize_title("2к квартира, ул. Ленина 5") == "квартира ул ленина 5"


def test_polish_label_expands_prefix_and_capitalises():
    assert polish_label("ул  ленина") == "Улица ленина"
    assert polish_label("квартира ленина") == "Квартира ленина"
