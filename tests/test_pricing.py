import json

import pytest

import config
import db
from conftest import FakeStore
from errors import InvalidSelection, ValidationError
from pricing import DEFAULT_PRICING, PricingTable, coerce_price


def test_default_prices():
    p = PricingTable()
    assert p.get_price("car", "1hr", 30) == 16000
    assert p.get_price("motorcycle", "30min", 1) == 300
    assert p.get_price("car", "30min", "7") == 3000


@pytest.mark.parametrize(
    "course, session_time, plan",
    [("truck", "1hr", 7), ("car", "2hr", 7), ("car", "1hr", 20), ("car", "1hr", "x"), ("bike", "1hr", 7)],
)
def test_unknown_keys(course, session_time, plan):
    with pytest.raises(InvalidSelection):
        PricingTable().get_price(course, session_time, plan)


def test_invalid_selection_is_a_validation_error():
    assert issubclass(InvalidSelection, ValidationError)


@pytest.mark.parametrize("raw, expected", [("1200", 1200), ("12.7", 12), (-5, 0), ("abc", 0), (None, 0), ("", 0)])
def test_coerce_price(raw, expected):
    assert coerce_price(raw) == expected


def test_set_price_is_saved_immediately():
    store = FakeStore()
    p = PricingTable(store)
    assert p.set_price("car", "1hr", 7, "5200") == 5200
    assert p.get_price("car", "1hr", 7) == 5200

    reloaded = PricingTable.load(store)
    assert reloaded.get_price("car", "1hr", 7) == 5200
    assert reloaded.get_price("car", "1hr", 15) == 9000


def test_set_price_with_bad_amount_stores_zero():
    p = PricingTable(FakeStore())
    p.set_price("motorcycle", "1hr", 1, "free")
    assert p.get_price("motorcycle", "1hr", 1) == 0


def test_reset_to_default():
    store = FakeStore()
    p = PricingTable(store)
    p.set_price("car", "1hr", 7, 1)
    p.reset_to_default()
    assert p.as_dict() == DEFAULT_PRICING
    assert PricingTable.load(store).get_price("car", "1hr", 7) == 5000


def test_load_without_saved_table_uses_defaults():
    assert PricingTable.load(FakeStore()).as_dict() == DEFAULT_PRICING


def test_load_corrupt_document_uses_defaults():
    store = FakeStore({config.PRICING_SETTING_KEY: "{not json"})
    assert PricingTable.load(store).as_dict() == DEFAULT_PRICING


@pytest.mark.parametrize(
    "saved",
    [{"car": "oops"}, {"car": {"1hr": [1, 2, 3]}}, {"motorcycle": {"30min": None}}],
)
def test_load_wrong_shape_uses_defaults(saved):
    store = FakeStore({config.PRICING_SETTING_KEY: json.dumps(saved)})
    assert PricingTable.load(store).as_dict() == DEFAULT_PRICING


def test_load_partial_document_keeps_defaults_for_missing_cells():
    store = FakeStore({config.PRICING_SETTING_KEY: json.dumps({"car": {"1hr": {"30": 20000}}})})
    p = PricingTable.load(store)
    assert p.get_price("car", "1hr", 30) == 20000
    assert p.get_price("car", "1hr", 1) == 800
    assert p.get_price("motorcycle", "30min", 7) == 1800


def test_as_dict_is_a_copy():
    p = PricingTable()
    p.as_dict()["car"]["1hr"][7] = 1
    assert p.get_price("car", "1hr", 7) == 5000


def test_update_several_cells():
    store = FakeStore()
    p = PricingTable(store)
    p.update({"motorcycle": {"30min": {1: 350, 7: 2000}}})
    reloaded = PricingTable.load(store)
    assert reloaded.get_price("motorcycle", "30min", 1) == 350
    assert reloaded.get_price("motorcycle", "30min", 7) == 2000


def test_db_module_is_a_settings_store():
    p = PricingTable.load(db)
    p.set_price("car", "30min", 15, 6000)
    assert PricingTable.load(db).get_price("car", "30min", 15) == 6000


def test_options_for_dropdown():
    assert PricingTable().options("car", "1hr") == [(1, 800), (7, 5000), (15, 9000), (30, 16000)]
