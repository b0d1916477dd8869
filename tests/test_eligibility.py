"""Tests for the qualifying product check and webhook payload parsing."""

from conftest import PRODUCT_A, PRODUCT_B, order_payload

from redemption_service.eligibility import find_qualifying_item, is_test_order
from redemption_service.models import OrderWebhook

PRODUCTS = {PRODUCT_A: "A", PRODUCT_B: "B"}


class TestFindQualifyingItem:

    def test_product_a_maps_to_prefix_a(self):
        order = OrderWebhook.model_validate(order_payload(product_ids=[PRODUCT_A]))
        item, prefix = find_qualifying_item(order, PRODUCTS)
        assert item.product_id == PRODUCT_A
        assert prefix == "A"

    def test_product_b_maps_to_prefix_b(self):
        order = OrderWebhook.model_validate(order_payload(product_ids=[PRODUCT_B]))
        assert find_qualifying_item(order, PRODUCTS)[1] == "B"

    def test_first_qualifying_item_wins(self):
        order = OrderWebhook.model_validate(order_payload(product_ids=["111", PRODUCT_B, PRODUCT_A]))
        item, prefix = find_qualifying_item(order, PRODUCTS)
        assert item.product_id == PRODUCT_B
        assert prefix == "B"

    def test_no_qualifying_item(self):
        order = OrderWebhook.model_validate(order_payload(product_ids=["111", "222"]))
        assert find_qualifying_item(order, PRODUCTS) is None

    def test_no_line_items(self):
        order = OrderWebhook.model_validate({"id": 1})
        assert find_qualifying_item(order, PRODUCTS) is None

    def test_custom_item_without_product_id(self):
        order = OrderWebhook.model_validate({"id": 1, "line_items": [{"product_id": None, "title": "Gift wrap"}]})
        assert find_qualifying_item(order, PRODUCTS) is None

    def test_string_product_ids_accepted(self):
        order = OrderWebhook.model_validate({"id": 1, "line_items": [{"product_id": PRODUCT_A}]})
        assert find_qualifying_item(order, PRODUCTS)[1] == "A"


class TestOrderWebhook:

    def test_order_id_normalised_to_string(self):
        order = OrderWebhook.model_validate(order_payload(order_id=820982911946154508))
        assert order.order_id == "820982911946154508"

    def test_missing_order_id(self):
        assert OrderWebhook.model_validate({"line_items": []}).order_id is None
        assert OrderWebhook.model_validate({"id": ""}).order_id is None

    def test_unknown_fields_ignored(self):
        order = OrderWebhook.model_validate(order_payload(email="a@b.c", total_price="20.00"))
        assert order.order_id is not None

    def test_test_flag(self):
        assert is_test_order(OrderWebhook.model_validate(order_payload(test=True)))
        assert not is_test_order(OrderWebhook.model_validate(order_payload()))
