import logging
import random
import re
from datetime import date

import pytest
from pydantic import ValidationError

from listings.schemas import CorrectionsFile, PriceSource, PropertyStatus
from listings.transformations import (
    Normalizer,
    PropertyRecord,
    days_on_market,
    derive_status,
    dig,
    infer_district,
    lot_to_acres,
    placeholder_property_id,
    to_date,
    to_number,
)
from payloads import attom_property, redfin_active_home, redfin_sold_home


@pytest.fixture
def normalizer(settings):
    return Normalizer(settings, rng=random.Random(7))


# =============================================================================
# Rules
# =============================================================================


def test_district_from_town_name(settings):
    assert infer_district(["Chappaqua"], settings.district_rules, "X") == ("Chappaqua Central", True)
    assert infer_district(["MOUNT KISCO"], settings.district_rules, "X") == ("Bedford Central", True)


def test_district_falls_back_to_later_candidates_then_label(settings):
    assert infer_district([None, "Yorktown Heights, NY"], settings.district_rules, "X")[0] == "Yorktown Central"
    assert infer_district(["Ossining"], settings.district_rules, "Northern Westchester") == (
        "Northern Westchester",
        False,
    )


def test_lot_square_feet_to_acres():
    assert lot_to_acres(43560, None, 0.5) == (1.0, False)
    assert lot_to_acres(21780, None, 0.5) == (0.5, False)
    assert lot_to_acres(None, 2.1, 0.5) == (2.1, False)
    assert lot_to_acres(None, None, 0.5) == (0.5, True)


def test_status_derivation():
    assert derive_status(date(2024, 6, 1), pending=False) is PropertyStatus.SOLD
    assert derive_status(None, pending=True) is PropertyStatus.PENDING
    assert derive_status(None, pending=False, status_hint="Contingent") is PropertyStatus.PENDING
    assert derive_status(None, pending=False, status_hint="sold", sold_price=800000) is PropertyStatus.SOLD
    assert derive_status(None, pending=False, status_hint="sold") is PropertyStatus.ACTIVE
    assert derive_status(None, pending=False) is PropertyStatus.ACTIVE


def test_days_on_market_is_at_least_one():
    assert days_on_market(date(2024, 1, 1), date(2024, 1, 1)) == 1
    assert days_on_market(date(2024, 1, 1), date(2024, 2, 15)) == 45
    assert days_on_market(None, None, reported=12) == 12
    assert days_on_market(None, None) == 0


def test_placeholder_id_format():
    generated = placeholder_property_id(clock=lambda: 1717200000.5, rng=random.Random(1))
    assert re.fullmatch(r"gen-1717200000-[a-z0-9]{6}", generated)


def test_loose_value_coercion():
    assert to_number("$1,250,000") == 1250000
    assert to_number({"value": 3}) == 3
    assert to_number("—") is None
    assert to_number(True) is None
    assert to_date(1717200000000) == date(2024, 6, 1)
    assert to_date("06/01/2024") == date(2024, 6, 1)
    assert to_date("not a date") is None


def test_non_finite_numbers_are_unknown():
    assert to_number(float("nan")) is None
    assert to_number(float("inf")) is None
    assert to_number("NaN") is None
    assert to_number("-Infinity") is None


def test_dig_matches_keys_case_insensitively():
    payload = {"building": {"rooms": {"bathstotal": 2.5}}}
    assert dig(payload, "building", "rooms", "bathsTotal") == 2.5
    assert dig(payload, "building", "size", "universalSize") is None


# =============================================================================
# PropertyRecord validation
# =============================================================================


def test_counts_are_never_negative(make_record):
    record = make_record(beds=-2, sqft=None, dom=-5, baths="2.5")
    assert record.beds == 0
    assert record.sqft == 0
    assert record.dom == 0
    assert record.baths == 2.5


def test_zero_prices_are_unknown(make_record):
    record = make_record(asking_price=0, sold_price="$0")
    assert record.asking_price is None
    assert record.sold_price is None


def test_status_must_be_known(make_record):
    with pytest.raises(ValidationError):
        make_record(status="withdrawn")


def test_sale_before_listing_drops_listing_date(make_record):
    record = make_record(listing_date=date(2024, 5, 1), sale_date=date(2024, 4, 1))
    assert record.listing_date is None


# =============================================================================
# Normalizer
# =============================================================================


def test_verified_override_beats_source_prices(settings):
    corrections = CorrectionsFile.from_json({
        "properties": {
            "185 Harriman Rd": {"listingPrice": 899000, "soldPrice": 999000, "verified": True},
        }
    })
    normalizer = Normalizer(settings, corrections)

    record = normalizer.normalize({
        "address": "185 Harriman Rd",
        "lastSoldPrice": 950000,
        "lastSoldDate": "2024-06-01",
    })

    assert record.asking_price == 899000
    assert record.sold_price == 999000
    assert record.status is PropertyStatus.SOLD
    assert record.asking_price_source is PriceSource.VERIFIED
    assert record.verified is True
    assert record.property_id.startswith("gen-")


def test_unverified_override_is_marked_estimated(settings):
    corrections = CorrectionsFile.from_json({"12 Maple Ave": {"listingPrice": 1200000}})
    record = Normalizer(settings, corrections).normalize(redfin_active_home(), "redfin_api")
    assert record.asking_price == 1200000
    assert record.asking_price_source is PriceSource.ESTIMATED
    assert record.verified is False


def test_redfin_active_home(normalizer):
    record = normalizer.normalize(redfin_active_home(), "redfin_api")

    assert record.property_id == "12345"
    assert record.address == "12 Maple Ave"
    assert record.status is PropertyStatus.ACTIVE
    assert record.asking_price == 1250000
    assert record.asking_price_source is PriceSource.LISTING
    assert record.sold_price is None
    assert record.acres == 2.0
    assert record.year_built == 1985
    assert record.property_type == "Single Family"
    assert record.district == "Bedford Central"
    assert record.location == "Bedford, NY"
    assert record.lat == 41.2
    assert record.source_url == "https://www.redfin.com/NY/Bedford/12-Maple-Ave-10506/home/12345"
    assert record.estimated_fields == []


def test_redfin_sold_home_uses_last_sale(normalizer):
    record = normalizer.normalize(redfin_sold_home(), "redfin_api")

    assert record.status is PropertyStatus.SOLD
    assert record.sold_price == 1100000
    assert record.sale_date == date(2024, 3, 15)
    assert record.asking_price is None
    assert record.district == "Chappaqua Central"
    assert set(record.estimated_fields) == {"acres", "lat", "lng", "property_type"}
    assert record.acres == 0.5


def test_sold_search_hint_uses_generic_price_as_sold_price(normalizer):
    item = redfin_sold_home()
    item["homeData"].pop("lastSaleData")
    item["homeData"]["price"] = {"value": 1050000}
    item["_query_status"] = "sold"

    record = normalizer.normalize(item, "redfin_api")

    assert record.status is PropertyStatus.SOLD
    assert record.sold_price == 1050000
    assert record.asking_price is None


def test_attom_property_keeps_avm_separate(normalizer):
    record = normalizer.normalize(attom_property(), "attom")

    assert record.property_id == "attom-184713191"
    assert record.address == "185 HARRIMAN RD"
    assert record.beds == 4
    assert record.baths == 3.0
    assert record.sqft == 2850
    assert record.acres == 2.1
    assert record.year_built == 1962
    assert record.status is PropertyStatus.SOLD
    assert record.sold_price == 999000
    assert record.sale_date == date(2024, 6, 1)
    assert record.asking_price is None
    assert record.avm_value == 1050000
    assert record.district == "Bedford Central"
    assert record.lat == pytest.approx(41.219)


def test_attom_enrichment_keeps_existing_key(normalizer):
    item = attom_property()
    item["_property_id"] = "12345"
    assert normalizer.normalize(item, "attom").property_id == "12345"


def test_unknown_town_gets_fallback_district(normalizer):
    record = normalizer.normalize({"propertyId": "9", "address": "1 Croton Ave", "city": "Ossining"})
    assert record.district == "Northern Westchester"
    assert "district" in record.estimated_fields


def test_region_name_used_for_district(normalizer):
    record = normalizer.normalize({"propertyId": "9", "address": "1 Hill Rd"}, region_name="Yorktown Heights")
    assert record.district == "Yorktown Central"


def test_record_without_address_or_id_is_dropped(normalizer, caplog):
    with caplog.at_level(logging.WARNING):
        assert normalizer.normalize({"price": 500000, "beds": 3}) is None
    assert "no address or id" in caplog.text


def test_scraped_prices_are_never_verified(normalizer):
    record = normalizer.normalize(
        {"propertyId": "31", "address": "9 Elm St", "city": "Bedford", "price": "$1,500,000"},
        "redfin_page",
    )
    assert record.asking_price == 1500000
    assert record.asking_price_source is PriceSource.SCRAPED
    assert record.verified is False


def test_dom_from_listing_and_sale_dates(normalizer):
    record = normalizer.normalize({
        "propertyId": "5",
        "address": "5 Pine Rd",
        "listingDate": "2024-04-02",
        "saleDate": "2024-06-01",
        "soldPrice": 999000,
    })
    assert record.dom == 60
    assert isinstance(record, PropertyRecord)


def test_nan_counts_become_zero(normalizer):
    record = normalizer.normalize({"propertyId": "8", "address": "8 Birch Ln", "beds": float("nan"), "sqft": "inf"})
    assert record.beds == 0
    assert record.sqft == 0


def test_status_without_evidence_is_estimated(normalizer):
    bare = normalizer.normalize({"propertyId": "6", "address": "6 Ash Ct", "city": "Bedford"})
    assert bare.status is PropertyStatus.ACTIVE
    assert "status" in bare.estimated_fields

    listed = normalizer.normalize({"propertyId": "6", "address": "6 Ash Ct", "price": 725000})
    assert listed.status is PropertyStatus.ACTIVE
    assert "status" not in listed.estimated_fields


def test_attom_without_sale_has_estimated_status(normalizer):
    item = attom_property()
    del item["sale"]
    record = normalizer.normalize(item, "attom")
    assert record.status is PropertyStatus.ACTIVE
    assert "status" in record.estimated_fields
    assert record.avm_value == 1050000
