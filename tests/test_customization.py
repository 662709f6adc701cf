import logging
from decimal import Decimal

import pytest

from cafe_order_server.customization import CustomizationResolver, parse_options_config
from cafe_order_server.errors import MissingRequiredOptionError, OptionSelectionError
from cafe_order_server.models import Product


@pytest.mark.parametrize("raw", [None, "", "   ", [], {}, "[]", "{}"])
def test_missing_or_empty_schema_means_no_customization(raw):
    assert parse_options_config(raw) == []


def test_malformed_json_is_logged_and_ignored(caplog):
    with caplog.at_level(logging.WARNING):
        groups = parse_options_config('[{"title": "Size", ')

    assert groups == []
    assert "Could not parse options_config" in caplog.text


def test_invalid_group_is_skipped_others_kept():
    groups = parse_options_config(
        [
            {"title": "Size", "type": "radio", "values": [{"label": "S"}]},
            {"title": "Broken", "type": "slider"},
        ]
    )

    assert [group.title for group in groups] == ["Size"]
    assert groups[0].values[0].price_extra == Decimal("0")


def test_structured_schema_is_accepted(latte):
    groups = parse_options_config(latte.options_config)

    assert [(g.title, g.type) for g in groups] == [("Size", "radio"), ("Extras", "checkbox")]


def test_defaults_first_radio_value_and_empty_checkbox(latte):
    resolver = CustomizationResolver(latte)

    assert resolver.selections == {"Size": "Small", "Extras": []}
    assert resolver.total_price == Decimal("10.00")


def test_checkbox_extras_add_up(latte):
    resolver = CustomizationResolver(latte)

    resolver.toggle_checkbox("Extras", "A")
    resolver.toggle_checkbox("Extras", "B")
    assert resolver.total_price == Decimal("13.50")

    resolver.toggle_checkbox("Extras", "A")
    assert resolver.total_price == Decimal("12.00")
    assert resolver.selections["Extras"] == ["B"]


def test_radio_selection_replaces_previous(latte):
    resolver = CustomizationResolver(latte)

    resolver.select_radio("Size", "Large")

    assert resolver.selections["Size"] == "Large"
    assert resolver.additional_price == Decimal("0.8")


def test_unknown_group_or_value_is_rejected(latte):
    resolver = CustomizationResolver(latte)

    with pytest.raises(OptionSelectionError):
        resolver.select_radio("Milk", "Oat")
    with pytest.raises(OptionSelectionError):
        resolver.select_radio("Size", "Huge")
    with pytest.raises(OptionSelectionError):
        resolver.toggle_checkbox("Size", "Large")


def test_apply_selections(latte):
    resolver = CustomizationResolver(latte)

    resolver.apply_selections({"Size": "Large", "Extras": ["B", "A", "B"]})

    assert resolver.selections == {"Size": "Large", "Extras": ["B", "A"]}
    assert resolver.total_price == Decimal("14.30")


def test_cart_item_carries_customization_and_price(latte):
    resolver = CustomizationResolver(latte)
    resolver.select_radio("Size", "Large")
    resolver.toggle_checkbox("Extras", "A")

    item = resolver.to_cart_item()

    assert item.product_id == "42"
    assert item.product_name == "Latte"
    assert item.base_price == Decimal("10.00")
    assert item.final_price == Decimal("12.30")
    assert item.customization == {"Size": "Large", "Extras": ["A"]}


def test_product_without_options(espresso):
    item = CustomizationResolver(espresso).to_cart_item()

    assert item.customization == {}
    assert item.final_price == Decimal("2.50")


def required_checkbox_product() -> Product:
    return Product(
        id="9",
        name="Bagel",
        price=Decimal("4.00"),
        options_config=[
            {"title": "Spread", "type": "checkbox", "required": True, "values": [{"label": "Butter"}]}
        ],
    )


def test_required_groups_not_enforced_by_default():
    resolver = CustomizationResolver(required_checkbox_product())

    assert resolver.missing_required() == ["Spread"]
    assert resolver.to_cart_item().customization == {"Spread": []}


def test_required_groups_enforced_when_enabled():
    resolver = CustomizationResolver(required_checkbox_product(), enforce_required=True)

    with pytest.raises(MissingRequiredOptionError) as exc_info:
        resolver.to_cart_item()
    assert exc_info.value.groups == ["Spread"]

    resolver.toggle_checkbox("Spread", "Butter")
    assert resolver.to_cart_item().customization == {"Spread": ["Butter"]}
