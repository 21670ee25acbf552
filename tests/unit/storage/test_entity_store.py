"""
Unit tests for the EntityStore facade.

Covers typed CRUD, the not-found sentinel, conflict detection and the
optimistic-concurrency contract on updates.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from abcretails.storage.entity_store import EntityStore
from abcretails.storage.exceptions import (
    BackendError,
    ConflictError,
    EntityNotFoundError,
    StaleWriteError,
    TableNotFoundError,
)
from abcretails.storage.memory_backend import InMemoryStorageBackend
from abcretails.storage.models import Customer, Order, Product, TableEntity


class Supplier(TableEntity):
    """Entity kind without a registered table name."""
    CompanyName: str = ""


@pytest.fixture
async def backend():
    backend_instance = InMemoryStorageBackend()
    for table_name in ("Customers", "Products", "Orders"):
        await backend_instance.create_table_if_not_exists(table_name)
    return backend_instance


@pytest.fixture
def store(backend):
    return EntityStore(backend)


class TestAddAndGet:
    """Tests for add and get."""

    @pytest.mark.asyncio
    async def test_add_then_get_round_trips(self, store):
        customer = Customer(PartitionKey="A", RowKey="1", Name="X", Email="x@example.com")

        await store.add(customer)
        fetched = await store.get(Customer, "A", "1")

        assert isinstance(fetched, Customer)
        assert fetched.PartitionKey == "A"
        assert fetched.RowKey == "1"
        assert fetched.custom_properties() == customer.custom_properties()

    @pytest.mark.asyncio
    async def test_add_assigns_version_tag(self, store):
        customer = Customer(PartitionKey="A", RowKey="1")

        added = await store.add(customer)

        assert added is customer
        assert customer.etag
        assert customer.Timestamp is not None
        assert (await store.get(Customer, "A", "1")).etag == customer.etag

    @pytest.mark.asyncio
    async def test_add_ignores_caller_supplied_tag(self, store):
        customer = Customer(PartitionKey="A", RowKey="1", etag="made-up")

        await store.add(customer)

        assert customer.etag != "made-up"

    @pytest.mark.asyncio
    async def test_add_duplicate_raises_conflict(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="First"))

        with pytest.raises(ConflictError) as exc_info:
            await store.add(Customer(PartitionKey="A", RowKey="1", Name="Second"))

        assert exc_info.value.table_name == "Customers"
        assert (await store.get(Customer, "A", "1")).Name == "First"

    @pytest.mark.asyncio
    async def test_same_keys_in_different_tables(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1"))
        await store.add(Product(PartitionKey="A", RowKey="1", ProductName="Mug", Price=4.5))

        product = await store.get(Product, "A", "1")
        assert product.ProductName == "Mug"
        assert product.Price == 4.5

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get(Customer, "nobody", "0") is None

    @pytest.mark.asyncio
    async def test_get_order_keeps_typed_fields(self, store):
        order = Order(PartitionKey="Orders", RowKey="o1", Quantity=3, UnitPrice=2.0, TotalPrice=6.0)
        await store.add(order)

        fetched = await store.get(Order, "Orders", "o1")

        assert fetched.Quantity == 3
        assert fetched.OrderDate == order.OrderDate
        assert fetched.Status == "Submitted"


class TestUpdate:
    """Tests for the conditional update."""

    @pytest.mark.asyncio
    async def test_update_with_fresh_tag(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="X"))
        current = await store.get(Customer, "A", "1")
        old_tag = current.etag

        current.Name = "Y"
        await store.update(current)

        assert current.etag != old_tag
        fetched = await store.get(Customer, "A", "1")
        assert fetched.Name == "Y"
        assert fetched.etag == current.etag

    @pytest.mark.asyncio
    async def test_update_with_stale_tag_fails_without_writing(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="X"))
        first_reader = await store.get(Customer, "A", "1")
        second_reader = await store.get(Customer, "A", "1")

        second_reader.Name = "Winner"
        await store.update(second_reader)

        first_reader.Name = "Loser"
        with pytest.raises(StaleWriteError) as exc_info:
            await store.update(first_reader)

        assert "modified by another process" in str(exc_info.value)
        stored = await store.get(Customer, "A", "1")
        assert stored.Name == "Winner"
        assert stored.etag == second_reader.etag

    @pytest.mark.asyncio
    async def test_update_without_tag_is_refused(self, store, backend):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="X"))
        backend.replace_entity = AsyncMock()

        with pytest.raises(StaleWriteError):
            await store.update(Customer(PartitionKey="A", RowKey="1", Name="Blind"))

        backend.replace_entity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_with_wildcard_is_refused(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="X"))

        with pytest.raises(StaleWriteError):
            await store.update(Customer(PartitionKey="A", RowKey="1", Name="Blind", etag="*"))

        assert (await store.get(Customer, "A", "1")).Name == "X"

    @pytest.mark.asyncio
    async def test_update_deleted_entity_propagates_backend_error(self, store):
        customer = await store.add(Customer(PartitionKey="A", RowKey="1"))
        await store.delete(Customer, "A", "1")

        with pytest.raises(EntityNotFoundError):
            await store.update(customer)

    @pytest.mark.asyncio
    async def test_scenario(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1", Name="X"))

        fetched = await store.get(Customer, "A", "1")
        assert fetched.Name == "X"

        stale = fetched.model_copy()
        fetched.Name = "Y"
        await store.update(fetched)

        stale.Name = "Z"
        with pytest.raises(StaleWriteError):
            await store.update(stale)

        fresh = await store.get(Customer, "A", "1")
        tag_before = fresh.etag
        fresh.Name = "Z"
        await store.update(fresh)

        assert fresh.etag != tag_before
        assert (await store.get(Customer, "A", "1")).Name == "Z"


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1"))

        await store.delete(Customer, "A", "1")
        await store.delete(Customer, "A", "1")

        assert await store.get(Customer, "A", "1") is None


class TestListAll:
    """Tests for list_all and get_all."""

    @pytest.mark.asyncio
    async def test_list_all_streams_typed_entities(self, store):
        for i in range(3):
            await store.add(Product(PartitionKey="Products", RowKey=f"p{i}", ProductName=f"P{i}"))

        names = [p.ProductName async for p in store.list_all(Product)]

        assert names == ["P0", "P1", "P2"]

    @pytest.mark.asyncio
    async def test_list_all_is_restartable_per_call(self, store):
        await store.add(Customer(PartitionKey="A", RowKey="1"))

        first = await store.get_all(Customer)
        second = await store.get_all(Customer)

        assert len(first) == len(second) == 1

    @pytest.mark.asyncio
    async def test_get_all_empty(self, store):
        assert await store.get_all(Order) == []


class TestTableProvisioning:
    """Tests for unregistered entity kinds."""

    @pytest.mark.asyncio
    async def test_ensure_table_uses_derived_name(self, store, backend):
        table_name = await store.ensure_table(Supplier)

        assert table_name == "Suppliers"
        assert "Suppliers" in await backend.list_tables()

    @pytest.mark.asyncio
    async def test_unprovisioned_table_fails(self, store):
        with pytest.raises(TableNotFoundError):
            await store.add(Supplier(PartitionKey="S", RowKey="1"))


class TestFailurePropagation:
    """Uninterpreted backend failures are logged and re-raised unchanged."""

    @pytest.mark.asyncio
    async def test_add_logs_and_reraises(self, store, backend, caplog):
        failure = BackendError("storage account unavailable")
        backend.insert_entity = AsyncMock(side_effect=failure)

        with caplog.at_level(logging.ERROR, logger="abcretails.storage.entity_store"):
            with pytest.raises(BackendError) as exc_info:
                await store.add(Customer(PartitionKey="A", RowKey="1"))

        assert exc_info.value is failure
        assert "Failed to add entity A/1 to Customers" in caplog.text

    @pytest.mark.asyncio
    async def test_update_logs_and_reraises(self, store, backend, caplog):
        failure = ConnectionError("connection reset")
        backend.replace_entity = AsyncMock(side_effect=failure)

        with caplog.at_level(logging.ERROR, logger="abcretails.storage.entity_store"):
            with pytest.raises(ConnectionError) as exc_info:
                await store.update(Customer(PartitionKey="A", RowKey="1", etag="W/\"x\""))

        assert exc_info.value is failure
        assert "Failed to update entity" in caplog.text

    @pytest.mark.asyncio
    async def test_get_propagates_non_miss_errors(self, store, backend):
        backend.get_entity = AsyncMock(side_effect=TimeoutError("timed out"))

        with pytest.raises(TimeoutError):
            await store.get(Customer, "A", "1")

    @pytest.mark.asyncio
    async def test_delete_from_unprovisioned_table_is_noop(self, store):
        await store.delete(Supplier, "S", "1")

    @pytest.mark.asyncio
    async def test_delete_logs_and_reraises(self, store, backend, caplog):
        backend.delete_entity = AsyncMock(side_effect=ConnectionError("connection reset"))

        with caplog.at_level(logging.ERROR, logger="abcretails.storage.entity_store"):
            with pytest.raises(ConnectionError):
                await store.delete(Customer, "A", "1")

        assert "Failed to delete entity A/1 from Customers" in caplog.text


class TestLogContext:
    """Log records carry the table and keys of the entity involved."""

    @pytest.mark.asyncio
    async def test_failure_log_carries_entity_keys(self, store, backend, caplog):
        backend.insert_entity = AsyncMock(side_effect=BackendError("storage account unavailable"))

        with caplog.at_level(logging.ERROR, logger="abcretails.storage.entity_store"):
            with pytest.raises(BackendError):
                await store.add(Customer(PartitionKey="A", RowKey="1"))

        record = caplog.records[-1]
        assert record.context == {"table": "Customers", "partition_key": "A", "row_key": "1"}
        assert record.exc_info is not None

    @pytest.mark.asyncio
    async def test_stale_write_warning_carries_rejected_tag(self, store, caplog):
        customer = await store.add(Customer(PartitionKey="A", RowKey="1"))
        stale_tag = customer.etag
        await store.update(customer)

        with caplog.at_level(logging.WARNING, logger="abcretails.storage.entity_store"):
            with pytest.raises(StaleWriteError):
                await store.update(Customer(PartitionKey="A", RowKey="1", etag=stale_tag))

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.context["table"] == "Customers"
        assert record.context["etag"] == stale_tag
