import pytest

from catalog import Catalog
from errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidStateError,
    ProductNotFoundError,
)
from invoicing import InvoiceLedger, SettingsStore
from models import DiscountType, PaymentMode
from settlement import CashierSystem, SaleState


def persisted_state(db):
    return {key: db.load(key) for key in db.keys()}


def test_end_to_end_weighed_sale(db, catalog, system, rice):
    system.scan_and_add(rice.barcode, 500, "Gram")
    line = system.cart.items[0]
    assert line.quantity == 0.5
    assert line.subtotal == 50

    invoice = system.settle(PaymentMode.CASH, discount=10, discount_type="percentage")

    assert invoice.subtotal == 50
    assert invoice.total == 45
    assert invoice.discount == 10
    assert invoice.discount_type is DiscountType.PERCENTAGE
    assert invoice.invoice_number == "INV0001"
    assert invoice.cashier_name == "Asha"
    assert catalog.get(rice.id).stock == 9.5
    assert SettingsStore(db).get().invoice_counter == 2
    assert InvoiceLedger(db).get_by_number("INV0001") == invoice
    assert system.state is SaleState.OPEN
    assert system.last_invoice == invoice
    assert system.cart.is_empty


def test_state_machine(system, rice):
    assert system.state is SaleState.OPEN
    system.scan_and_add(rice.id, 1)
    calc = system.begin_payment(10, "fixed")
    assert calc.total == 90
    assert system.state is SaleState.PENDING_PAYMENT
    with pytest.raises(InvalidStateError):
        system.scan_and_add(rice.id, 1)
    with pytest.raises(InvalidStateError):
        system.begin_payment()

    system.cancel_payment()
    assert system.state is SaleState.OPEN
    system.scan_and_add(rice.id, 1)
    assert system.cart.items[0].quantity == 2

    system.begin_payment(5, "fixed")
    invoice = system.settle("UPI", customer_name="Ravi", customer_phone="98765")
    assert invoice.total == 195
    assert invoice.discount_type is DiscountType.FIXED
    assert invoice.payment_mode is PaymentMode.UPI
    assert invoice.customer_name == "Ravi"


def test_cancel_without_payment(system):
    with pytest.raises(InvalidStateError):
        system.cancel_payment()


def test_empty_cart(db, system):
    before = persisted_state(db)
    with pytest.raises(EmptyCartError):
        system.settle()
    with pytest.raises(EmptyCartError):
        system.begin_payment()
    assert persisted_state(db) == before


def test_unknown_product(system):
    with pytest.raises(ProductNotFoundError):
        system.scan_and_add("0000", 1)


def test_invalid_discount_keeps_cart_open(db, system, rice):
    system.scan_and_add(rice.id, 1)
    before = persisted_state(db)
    with pytest.raises(InvalidDiscountError):
        system.settle(discount=150)
    assert system.state is SaleState.OPEN
    assert not system.cart.frozen
    assert persisted_state(db) == before


def test_invalid_discount_while_pending_reopens_cart(db, system, rice):
    system.scan_and_add(rice.id, 1)
    system.begin_payment(10)
    before = persisted_state(db)
    with pytest.raises(InvalidDiscountError):
        system.settle(discount=150)
    assert system.state is SaleState.OPEN
    assert not system.cart.frozen
    assert persisted_state(db) == before
    system.scan_and_add(rice.id, 1)
    assert system.cart.items[0].quantity == 2


@pytest.mark.parametrize("pending", [False, True])
def test_unknown_payment_mode_reopens_cart(db, system, rice, pending):
    system.scan_and_add(rice.id, 1)
    if pending:
        system.begin_payment()
    before = persisted_state(db)
    with pytest.raises(ValueError, match="Bitcoin"):
        system.settle("Bitcoin")
    assert system.state is SaleState.OPEN
    assert not system.cart.frozen
    assert persisted_state(db) == before


@pytest.mark.parametrize("discount", [float("nan"), float("inf")])
def test_non_finite_discount_is_rejected(db, system, rice, discount):
    system.scan_and_add(rice.id, 1)
    before = persisted_state(db)
    with pytest.raises(InvalidDiscountError):
        system.settle(discount=discount)
    assert persisted_state(db) == before
    assert SettingsStore(db).get().invoice_counter == 1
    assert not system.cart.frozen


def test_settlement_is_all_or_nothing(db, catalog, system):
    a = catalog.create("Product A", "Piece", price=10, stock=5)
    b = catalog.create("Product B", "Piece", price=20, stock=6)
    system.scan_and_add(a.id, 3)
    system.scan_and_add(b.id, 5)
    # stock of B drops after it was added to the cart
    catalog.update(b.id, stock=2)
    before = persisted_state(db)

    with pytest.raises(InsufficientStockError) as exc:
        system.settle()

    assert exc.value.product_id == b.id
    assert exc.value.line_index == 1
    assert exc.value.requested == 5
    assert exc.value.available == 2
    assert catalog.get(a.id).stock == 5
    assert catalog.get(b.id).stock == 2
    assert SettingsStore(db).get().invoice_counter == 1
    assert InvoiceLedger(db).list_all() == []
    assert persisted_state(db) == before
    assert system.state is SaleState.OPEN
    assert not system.cart.frozen


def test_failure_during_writes_rolls_back(db, catalog, system, rice, soap, monkeypatch):
    system.scan_and_add(rice.id, 2)
    system.scan_and_add(soap.id, 3)
    before = persisted_state(db)

    def broken_commit():
        raise OSError("disk full")

    monkeypatch.setattr(system.sequencer, "commit", broken_commit)
    with pytest.raises(OSError):
        system.settle()

    assert persisted_state(db) == before
    assert catalog.get(rice.id).stock == 10
    assert catalog.get(soap.id).stock == 20
    assert system.state is SaleState.OPEN
    assert len(system.cart) == 2


def test_consecutive_invoice_numbers(db, catalog, system, soap):
    numbers = []
    for _ in range(5):
        system.scan_and_add(soap.id, 1)
        numbers.append(system.settle().invoice_number)
    assert numbers == ["INV0001", "INV0002", "INV0003", "INV0004", "INV0005"]
    assert SettingsStore(db).get().invoice_counter == 6
    assert catalog.get(soap.id).stock == 15


def test_failed_settlement_does_not_consume_a_number(db, catalog, system, soap):
    system.scan_and_add(soap.id, 1)
    assert system.settle().invoice_number == "INV0001"

    system.scan_and_add(soap.id, 4)
    catalog.update(soap.id, stock=2)
    with pytest.raises(InsufficientStockError):
        system.settle()
    system.adjust_quantity(0, -2)
    assert system.settle().invoice_number == "INV0002"


def test_custom_prefix_and_counter(db, system, soap):
    SettingsStore(db).update(invoice_prefix="KPS", invoice_counter=9999)
    system.scan_and_add(soap.id, 1)
    assert system.settle().invoice_number == "KPS9999"
    system.scan_and_add(soap.id, 1)
    assert system.settle().invoice_number == "KPS10000"


def test_invoice_is_decoupled_from_catalog_edits(db, catalog, system, rice):
    system.scan_and_add(rice.id, 250, "Gram")
    invoice = system.settle()
    catalog.update(rice.id, name="Brown Rice", price=300)

    stored = InvoiceLedger(db).get(invoice.id)
    line = stored.items[0]
    assert line.product.name == "Basmati Rice"
    assert line.product.price == 100
    assert line.display_quantity == 250
    assert line.unit.value == "Gram"
    assert line.subtotal == 25


def test_mixed_units_sale(db, catalog, system, rice, oil, soap):
    system.scan_and_add(rice.id, 1500, "Gram")
    system.scan_and_add(oil.id, 500, "Millilitre")
    system.scan_and_add(soap.id, 2)
    invoice = system.settle(PaymentMode.CARD, discount=20, discount_type=DiscountType.FIXED)
    assert invoice.subtotal == 150 + 90 + 70
    assert invoice.total == 290
    assert catalog.get(rice.id).stock == 8.5
    assert catalog.get(oil.id).stock == 4.5
    assert catalog.get(soap.id).stock == 18


def test_new_sale_after_commit(system, soap):
    system.scan_and_add(soap.id, 1)
    system.settle()
    system.scan_and_add(soap.id, 1)
    assert system.state is SaleState.OPEN
    assert len(system.cart) == 1


def test_two_sessions_share_catalog(db, soap):
    first = CashierSystem(db)
    second = CashierSystem(db)
    first.scan_and_add(soap.id, 15)
    second.scan_and_add(soap.id, 10)
    first.settle()
    with pytest.raises(InsufficientStockError):
        second.settle()
    assert Catalog(db).get(soap.id).stock == 5
    assert first.last_invoice.cashier_id == "admin"
