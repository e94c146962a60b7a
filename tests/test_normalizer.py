from __future__ import annotations
import math

import pytest

from core.errors import ApiMessageError, InvalidInputError, MalformedResponseError
from core.models import TIDY_FIELDS, DataPoint, DateSpec
from ingestion.normalizer import (
    decode_decimal,
    decode_value,
    decode_year,
    normalize_entry,
    parse_page_meta,
    split_payload,
)


def _raw_entry(**overrides) -> dict:
    entry = {
        "indicator": {"id": "SP.POP.TOTL", "value": "Population, total"},
        "country": {"id": "DE", "value": "Germany"},
        "countryiso3code": "DEU",
        "date": "2020",
        "value": 83160871,
        "unit": "",
        "obs_status": "",
        "decimal": 0,
    }
    entry.update(overrides)
    return entry


# ── Field decoders ────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw, expected",
    [(None, None), (True, None), ("NaN", None), ("inf", None), ("-Infinity", None),
     ("abc", None), ([], None), (" 3.5 ", 3.5), (7, 7.0), (1e308, 1e308)],
)
def test_decode_value(raw, expected):
    """Only finite numbers survive; everything else is absent."""
    assert decode_value(raw) == expected


def test_decode_value_rejects_float_nan():
    assert decode_value(float("nan")) is None
    assert decode_value(math.inf) is None


def test_decode_decimal_and_year():
    assert decode_decimal("2") == 2
    assert decode_decimal(1.0) == 1
    assert decode_decimal(1.5) is None
    assert decode_decimal("x") is None
    assert decode_year("2015") == 2015
    assert decode_year("2015Q1") == 0
    assert decode_year(None) == 0


# ── Envelope ──────────────────────────────────────────────────────────────────

def test_page_meta_accepts_string_per_page():
    meta = parse_page_meta({"page": 1, "pages": 2, "per_page": "50", "total": 75})
    assert (meta.page, meta.pages, meta.per_page, meta.total) == (1, 2, 50, 75)


def test_page_meta_reports_bad_field():
    with pytest.raises(MalformedResponseError, match="meta.pages"):
        parse_page_meta({"page": 1, "pages": "many", "per_page": 50, "total": 1})
    with pytest.raises(MalformedResponseError, match="missing total"):
        parse_page_meta({"page": 1, "pages": 1, "per_page": 50})


def test_split_payload_shapes():
    meta = {"page": 1, "pages": 1, "per_page": "50", "total": 0}
    assert split_payload([meta, None]) == (meta, [])
    assert split_payload([meta]) == (meta, [])
    with pytest.raises(MalformedResponseError):
        split_payload({"page": 1})
    with pytest.raises(MalformedResponseError):
        split_payload([])
    with pytest.raises(MalformedResponseError, match=r"payload\[1\]\[0\]"):
        split_payload([meta, ["not an object"]])
    with pytest.raises(ApiMessageError):
        split_payload([{"message": [{"key": "Invalid value"}]}])


# ── Entries ───────────────────────────────────────────────────────────────────

def test_normalize_entry_maps_all_fields():
    point = normalize_entry(_raw_entry(unit="people", obs_status="E", decimal="1"))
    assert point == DataPoint(
        indicator_id="SP.POP.TOTL",
        indicator_name="Population, total",
        country_id="DE",
        country_name="Germany",
        country_iso3="DEU",
        year=2020,
        value=83160871.0,
        unit="people",
        obs_status="E",
        decimal=1,
    )


def test_normalize_entry_blank_optionals_become_none():
    point = normalize_entry(_raw_entry(value=None, country=None))
    assert point.value is None
    assert point.unit is None
    assert point.obs_status is None
    assert point.country_id == ""
    assert point.country_name == ""


# ── Model ─────────────────────────────────────────────────────────────────────

def test_as_record_follows_tidy_order_and_hides_nan():
    point = DataPoint("I", "Ind", "DE", "Germany", "DEU", 2020, float("nan"))
    record = point.as_record()
    assert tuple(record) == TIDY_FIELDS
    assert record["value"] is None
    assert not point.has_value


def test_date_spec_parse_and_format():
    assert DateSpec.parse("2010:2012").to_query_param() == "2010:2012"
    assert DateSpec.parse("2015").to_query_param() == "2015"
    assert DateSpec.parse("2015").is_single_year
    assert DateSpec.range(2010, 2012).to_query_param() == "2010:2012"


@pytest.mark.parametrize("text", ["2012:2010", "20x0", "2010:", ""])
def test_date_spec_rejects_bad_input(text):
    with pytest.raises(InvalidInputError):
        DateSpec.parse(text)
