from decimal import Decimal

import pytest

from schemas.order import DeliveryAddress
from services.fetch import DataFeed, FetchOptions, OrderBy, fetch_records
from services.orders import create_order
from utils.data_client import DataClient, DataClientError


def test_blank_filters_are_not_constraints(data_client, products):
    options = FetchOptions(table="products", filters={"category": "", "is_organic": None})

    assert options.effective_filters() == {}
    result = fetch_records(data_client, options)
    assert result.count == len(products)


def test_equality_filters(data_client, products):
    result = fetch_records(data_client, FetchOptions(table="products", filters={"is_organic": True, "category": "milk"}))

    assert [p["name"] for p in result.items] == ["Whole Milk"]
    assert result.count == 1


def test_pagination_and_order(data_client, products):
    options = FetchOptions(table="products", order_by=OrderBy(column="price"), limit=2, page=2)
    result = fetch_records(data_client, options)

    # 2.49, 3.25 | 3.99, 4.99
    assert [p["price"] for p in result.items] == [Decimal("3.99"), Decimal("4.99")]
    # Count ignores the page window
    assert result.count == 4


def test_descending_order(data_client, products):
    result = fetch_records(data_client, FetchOptions(table="products", order_by=OrderBy(column="price", ascending=False)))
    assert result.items[0]["name"] == "Farmhouse Cheddar"


def test_column_subset(data_client, products):
    result = fetch_records(data_client, FetchOptions(table="products", columns="id, name"))
    assert set(result.items[0]) == {"id", "name"}


def test_status_filter_with_no_matches(data_client, customer, products):
    create_order(
        data_client,
        user_id=customer["id"],
        address=DeliveryAddress(street="1 Dairy Lane", city="Leeds", region="Yorkshire", postal="LS1 1AA"),
        lines=[],
        total=Decimal("2.99"),
    )

    feed = DataFeed(data_client)
    result = feed.refresh(FetchOptions(table="orders", filters={"order_status": "confirmed"}))

    assert result.items == []
    assert result.count == 0
    assert result.loading is False
    assert result.error is None


class FlakyClient(DataClient):
    def __init__(self, db):
        super().__init__(db)
        self.calls = 0
        self.fail = False

    def select(self, *args, **kwargs):
        self.calls += 1
        if self.fail:
            raise DataClientError("connection reset")
        return super().select(*args, **kwargs)


def test_feed_only_requeries_when_inputs_change(db, products):
    client = FlakyClient(db)
    feed = DataFeed(client)
    options = FetchOptions(table="products", filters={"category": "milk"})

    feed.refresh(options)
    feed.refresh(FetchOptions(table="products", filters={"category": "milk"}))
    assert client.calls == 1

    feed.refresh(FetchOptions(table="products", filters={"category": "cheese"}))
    assert client.calls == 2

    feed.refresh(FetchOptions(table="products", filters={"category": "cheese"}), force=True)
    assert client.calls == 3


def test_feed_keeps_previous_items_on_error(db, products):
    client = FlakyClient(db)
    feed = DataFeed(client)
    first = feed.refresh(FetchOptions(table="products", filters={"category": "milk"}))

    client.fail = True
    failed = feed.refresh(FetchOptions(table="products", filters={"category": "cheese"}))

    assert failed.error == "connection reset"
    assert failed.items == first.items
    assert failed.count == 1
    assert failed.loading is False

    client.fail = False
    recovered = feed.refresh(FetchOptions(table="products", filters={"category": "cheese"}), force=True)
    assert recovered.error is None
    assert recovered.items[0]["name"] == "Farmhouse Cheddar"


def test_unknown_column_is_a_client_error(data_client):
    with pytest.raises(DataClientError):
        fetch_records(data_client, FetchOptions(table="products", filters={"colour": "white"}))


def test_page_must_be_positive():
    with pytest.raises(ValueError):
        FetchOptions(table="products", page=0)
