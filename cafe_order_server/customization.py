"""Product customization: option schema parsing, selections and price."""

import json
import logging
from decimal import Decimal
from typing import Any, Optional, Union

import pydantic

from .errors import MissingRequiredOptionError, OptionSelectionError
from .models import CartItemDraft, Customization, OptionGroup, OptionValue, Product
from .pricing import to_money

logger = logging.getLogger(__name__)


def parse_options_config(raw: Any) -> list[OptionGroup]:
    """
    Parse a product's options_config into option groups.

    Accepts JSON text or already decoded data. Missing, empty-list and
    empty-object configs mean "no customization". Malformed input never
    raises: it is logged and treated as no customization, and a single
    invalid group is skipped without dropping the others.
    """
    if raw is None:
        return []

    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse options_config: {e}")
            return []

    if isinstance(raw, dict):
        if raw:
            logger.warning("options_config is an object, expected a list of groups; ignoring it")
        return []

    if not isinstance(raw, list):
        logger.warning(f"options_config has unexpected type {type(raw).__name__}; ignoring it")
        return []

    groups = []
    for index, entry in enumerate(raw):
        try:
            groups.append(OptionGroup.model_validate(entry))
        except pydantic.ValidationError as e:
            logger.warning(f"Skipping invalid option group #{index}: {e.errors()[0]['msg']}")
    return groups


class CustomizationResolver:
    """Tracks the selections for one product and the resulting price."""

    def __init__(self, product: Product, enforce_required: bool = False) -> None:
        self.product = product
        self.enforce_required = enforce_required
        self.base_price = to_money(product.price)
        self.groups = parse_options_config(product.options_config)
        self.selections: Customization = {}
        self._apply_defaults()

    def _apply_defaults(self) -> None:
        """First value for radio groups, nothing for checkbox groups."""
        for group in self.groups:
            if group.type == "radio":
                if group.values:
                    self.selections[group.title] = group.values[0].label
            else:
                self.selections[group.title] = []

    def _group(self, title: str) -> OptionGroup:
        for group in self.groups:
            if group.title == title:
                return group
        raise OptionSelectionError(f"Unknown option group: {title}")

    @staticmethod
    def _value(group: OptionGroup, label: str) -> OptionValue:
        for value in group.values:
            if value.label == label:
                return value
        raise OptionSelectionError(f"Unknown value {label!r} for option group {group.title!r}")

    def select_radio(self, group_title: str, label: str) -> None:
        group = self._group(group_title)
        if group.type != "radio":
            raise OptionSelectionError(f"Option group {group_title!r} is not a single-choice group")
        self._value(group, label)
        self.selections[group_title] = label

    def toggle_checkbox(self, group_title: str, label: str) -> None:
        group = self._group(group_title)
        if group.type != "checkbox":
            raise OptionSelectionError(f"Option group {group_title!r} is not a multiple-choice group")
        self._value(group, label)
        current = list(self.selections.get(group_title) or [])
        if label in current:
            current.remove(label)
        else:
            current.append(label)
        self.selections[group_title] = current

    def apply_selections(self, selections: Optional[dict[str, Union[str, list[str]]]]) -> None:
        """
        Apply a {group: label | [labels]} mapping on top of the defaults.

        Checkbox groups end up with exactly the given labels.
        """
        for title, chosen in (selections or {}).items():
            group = self._group(title)
            if group.type == "radio":
                if isinstance(chosen, list):
                    if len(chosen) != 1:
                        raise OptionSelectionError(f"Option group {title!r} takes exactly one value")
                    chosen = chosen[0]
                self.select_radio(title, chosen)
            else:
                labels = [chosen] if isinstance(chosen, str) else list(chosen)
                self.selections[title] = []
                for label in dict.fromkeys(labels):
                    self.toggle_checkbox(title, label)

    @property
    def additional_price(self) -> Decimal:
        """Sum of price_extra over every selected value."""
        extra = Decimal("0")
        for group in self.groups:
            chosen = self.selections.get(group.title)
            if group.type == "radio":
                labels = [chosen] if isinstance(chosen, str) else []
            else:
                labels = list(chosen or [])
            for value in group.values:
                if value.label in labels:
                    extra += value.price_extra
        return extra

    @property
    def total_price(self) -> Decimal:
        return self.base_price + self.additional_price

    def missing_required(self) -> list[str]:
        """Titles of required groups that currently have no selection."""
        return [
            group.title
            for group in self.groups
            if group.required and not self.selections.get(group.title)
        ]

    def to_cart_item(self) -> CartItemDraft:
        """Build the cart item for the current selections."""
        if self.enforce_required:
            missing = self.missing_required()
            if missing:
                raise MissingRequiredOptionError(missing)

        return CartItemDraft(
            product_id=self.product.id,
            product_name=self.product.name,
            base_price=self.base_price,
            final_price=self.total_price,
            customization={
                title: list(chosen) if isinstance(chosen, list) else chosen
                for title, chosen in self.selections.items()
            },
            image_url=self.product.image_url,
        )
