import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch, MagicMock
from uuid import UUID, uuid4

from backhouse.core.errors import NotFound, ValidationFailure
from backhouse.models.order import Order, OrderItem, OrderStatus
from backhouse.services import eighty_six
from backhouse.services.order_service import place_order, update_order_status
from tests.factories import make_menu_item

# --- CORE MOCKING UTILITIES ---

class AsyncContextManagerMock:
    """Mocks 'async with in_transaction() as conn:' to fulfill the async context manager protocol."""
    async def __aenter__(self):
        return object()
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

def create_mock_queryset(final_return_value):
    """
    Mock QuerySet supporting the chain used by the service:
    Order.filter(...).using_db(conn).select_for_update().first()
    """
    chainable_mock = MagicMock()
    chainable_mock.using_db.return_value = chainable_mock
    chainable_mock.select_for_update.return_value = chainable_mock
    chainable_mock.first = AsyncMock(return_value=final_return_value)
    return chainable_mock

def mock_order(status):
    order = AsyncMock()
    order.id = uuid4()
    order.status = status
    order.save = AsyncMock()
    return order

# --- STATUS TRANSITIONS ---

@pytest.mark.asyncio
@pytest.mark.parametrize("current, new", [
    (OrderStatus.PENDING, OrderStatus.PREPARING),
    (OrderStatus.PREPARING, OrderStatus.READY),
    (OrderStatus.READY, OrderStatus.COMPLETED),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED),
])
@patch('backhouse.services.order_service.in_transaction', new_callable=MagicMock)
async def test_successful_status_transition(mock_in_transaction, current, new):
    order = mock_order(current)
    mock_in_transaction.return_value = AsyncContextManagerMock()

    with patch.object(Order, 'filter', MagicMock(return_value=create_mock_queryset(order))):
        updated_order = await update_order_status(order.id, new)

    assert updated_order.status == new
    order.save.assert_called_once()


@pytest.mark.asyncio
@patch('backhouse.services.order_service.in_transaction', new_callable=MagicMock)
async def test_rejection_of_final_state_transition(mock_in_transaction):
    """Completed orders are final; nothing is saved."""
    order = mock_order(OrderStatus.COMPLETED)
    mock_in_transaction.return_value = AsyncContextManagerMock()

    with patch.object(Order, 'filter', MagicMock(return_value=create_mock_queryset(order))):
        with pytest.raises(ValidationFailure) as excinfo:
            await update_order_status(order.id, OrderStatus.PREPARING)

    assert "final state" in excinfo.value.message
    order.save.assert_not_called()


@pytest.mark.asyncio
@patch('backhouse.services.order_service.in_transaction', new_callable=MagicMock)
async def test_rejection_of_skipped_step(mock_in_transaction):
    order = mock_order(OrderStatus.PENDING)
    mock_in_transaction.return_value = AsyncContextManagerMock()

    with patch.object(Order, 'filter', MagicMock(return_value=create_mock_queryset(order))):
        with pytest.raises(ValidationFailure):
            await update_order_status(order.id, OrderStatus.COMPLETED)

    order.save.assert_not_called()


@pytest.mark.asyncio
@patch('backhouse.services.order_service.in_transaction', new_callable=MagicMock)
async def test_unknown_order(mock_in_transaction):
    mock_in_transaction.return_value = AsyncContextManagerMock()

    with patch.object(Order, 'filter', MagicMock(return_value=create_mock_queryset(None))):
        with pytest.raises(NotFound):
            await update_order_status(UUID("f0e9d8c7-b6a5-4321-fedc-ba9876543210"), OrderStatus.PREPARING)

# --- PLACEMENT ---

@pytest.mark.asyncio
async def test_place_order_locks_in_prices(db):
    burger = await make_menu_item(price="12.99")
    salad = await make_menu_item(name="Caesar Salad", price="9.50", category="salads")

    order = await place_order(
        [{"menu_item_id": burger.id, "quantity": 2}, {"menu_item_id": salad.id, "quantity": 1}],
        customer_name="Sam",
        table_number="12",
    )

    assert order.status == OrderStatus.PENDING
    assert order.total_amount == Decimal("35.48")
    assert await OrderItem.filter(order_id=order.id).count() == 2


@pytest.mark.asyncio
async def test_place_order_refuses_86d_item(db):
    burger = await make_menu_item()
    await eighty_six.add_manual_entry(burger.id)

    with pytest.raises(ValidationFailure):
        await place_order([{"menu_item_id": burger.id, "quantity": 1}])
    assert await Order.all().count() == 0


@pytest.mark.asyncio
async def test_place_order_validation(db):
    burger = await make_menu_item()
    with pytest.raises(ValidationFailure):
        await place_order([])
    with pytest.raises(ValidationFailure):
        await place_order([{"menu_item_id": burger.id, "quantity": 0}])
    with pytest.raises(NotFound):
        await place_order([{"menu_item_id": uuid4(), "quantity": 1}])
