# settlement.py
import logging
import uuid
from enum import Enum

from cart import Cart
from catalog import Catalog, STOCK_PRECISION
from database import Database
from errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidStateError,
    ProductNotFoundError,
)
from invoicing import InvoiceLedger, InvoiceSequencer, SettingsStore, next_invoice_number
from models import Cashier, DiscountType, Invoice, PaymentMode
from pricing import DiscountResult, apply_discount, parse_discount_type

logger = logging.getLogger("billing.settlement")

DEFAULT_CASHIER = Cashier(id="admin", name="Admin")


class SaleState(str, Enum):
    OPEN = "Open"
    PENDING_PAYMENT = "PendingPayment"
    COMMITTED = "Committed"
    ABORTED = "Aborted"


def parse_payment_mode(value) -> PaymentMode:
    if isinstance(value, PaymentMode):
        return value
    try:
        return PaymentMode(value)
    except ValueError:
        raise ValueError(f"Unknown payment mode: {value!r}") from None


class CashierSystem:
    """
    Coordinates one terminal's sale: cart building, payment and settlement.

    State moves Open -> PendingPayment -> Committed -> Open, or back to Open
    through Aborted when payment is cancelled. Settlement either persists the invoice,
    the stock deductions and the counter advance together, or nothing.
    """
    def __init__(self, db: Database, cashier: Cashier = None):
        self.db = db
        self.cashier = cashier or DEFAULT_CASHIER
        self.catalog = Catalog(db)
        self.settings = SettingsStore(db)
        self.sequencer = InvoiceSequencer(self.settings)
        self.ledger = InvoiceLedger(db)
        self.cart = Cart()
        self.state = SaleState.OPEN
        self.discount = 0
        self.discount_type = DiscountType.PERCENTAGE
        self.last_invoice = None

    def _ensure_open(self):
        if self.state is SaleState.PENDING_PAYMENT:
            raise InvalidStateError("Cart is frozen while payment is being collected.")
        self.state = SaleState.OPEN

    def scan_and_add(self, code: str, qty: float, unit=None):
        """
        Look up a product by barcode (or id), then add it to the cart.
        Quantity is in `unit`, defaulting to the product's base unit.
        """
        self._ensure_open()
        product = self.catalog.get_by_barcode(code) or self.catalog.get(code)
        if product is None:
            raise ProductNotFoundError(f"Product not found: {code}", details={"code": code})
        item = self.cart.add_item(product, qty, unit)
        return product, item

    def remove_item(self, index: int):
        self._ensure_open()
        return self.cart.remove_item(index)

    def adjust_quantity(self, index: int, delta: float):
        self._ensure_open()
        return self.cart.adjust_quantity(index, delta)

    def totals(self, discount=None, discount_type=None) -> DiscountResult:
        if discount is None:
            discount = self.discount
        if discount_type is None:
            discount_type = self.discount_type
        return apply_discount(self.cart.subtotal, discount, discount_type)

    def begin_payment(self, discount: float = 0, discount_type=DiscountType.PERCENTAGE) -> DiscountResult:
        """Validate cart and discount, then freeze the cart for payment."""
        if self.state is SaleState.PENDING_PAYMENT:
            raise InvalidStateError("Payment already in progress.")
        if self.cart.is_empty:
            raise EmptyCartError("Cart is empty.")
        calc = self.totals(discount, discount_type)
        self.discount = calc.discount
        self.discount_type = calc.discount_type
        self.cart.freeze()
        self.state = SaleState.PENDING_PAYMENT
        return calc

    def cancel_payment(self):
        """Abort payment collection; the cart becomes editable again."""
        if self.state is not SaleState.PENDING_PAYMENT:
            raise InvalidStateError("No payment in progress.")
        self.state = SaleState.ABORTED
        self.cart.unfreeze()
        logger.info("Payment cancelled, cart reopened")
        self.state = SaleState.OPEN

    def _precheck_stock(self):
        """Validate every line against current catalog stock before any mutation."""
        requested = {}
        first_line = {}
        for i, ci in enumerate(self.cart.items):
            requested[ci.product.id] = round(requested.get(ci.product.id, 0) + ci.quantity, STOCK_PRECISION)
            first_line.setdefault(ci.product.id, i)

        for product_id, qty in requested.items():
            product = self.catalog.get(product_id)
            if product is None:
                raise ProductNotFoundError(f"Product not found: {product_id}",
                                           details={"product_id": product_id,
                                                    "line_index": first_line[product_id]})
            if qty > product.stock:
                raise InsufficientStockError(
                    f"Insufficient stock for {product.name}: have {product.stock}, need {qty}",
                    product_id=product_id, requested=qty, available=product.stock,
                    line_index=first_line[product_id],
                )

    def _reopen(self):
        self.cart.unfreeze()
        self.state = SaleState.OPEN

    def settle(self, payment_mode=PaymentMode.CASH, customer_name: str = None,
               customer_phone: str = None, notes: str = None,
               discount: float = None, discount_type=None) -> Invoice:
        """
        Commit the cart as an invoice, deduct stock and advance the counter.

        Called from Open, payment is begun implicitly with the given discount.
        Any failure leaves the catalog, ledger and counter untouched and the
        cart reopened. On success the sale passes through Committed and the
        session is Open again with an empty cart for the next sale.
        """
        if self.cart.is_empty:
            raise EmptyCartError("Cart is empty.")

        try:
            payment_mode = parse_payment_mode(payment_mode)
            if self.state is not SaleState.PENDING_PAYMENT:
                self.begin_payment(discount or 0, discount_type or DiscountType.PERCENTAGE)
            elif discount is not None or discount_type is not None:
                calc = self.totals(discount, discount_type and parse_discount_type(discount_type))
                self.discount, self.discount_type = calc.discount, calc.discount_type

            calc = self.totals()
            self._precheck_stock()
            with self.db.transaction():
                settings = self.settings.get()
                invoice = Invoice(
                    id=f"inv_{uuid.uuid4().hex[:12]}",
                    invoice_number=next_invoice_number(settings.invoice_prefix,
                                                       settings.invoice_counter),
                    items=tuple(ci.snapshot() for ci in self.cart.items),
                    subtotal=calc.subtotal,
                    discount=calc.discount,
                    discount_type=calc.discount_type,
                    total=calc.total,
                    payment_mode=payment_mode,
                    cashier_id=self.cashier.id,
                    cashier_name=self.cashier.name,
                    customer_name=customer_name or None,
                    customer_phone=customer_phone or None,
                    notes=notes or None,
                )
                for line in invoice.items:
                    self.catalog.adjust_stock(line.product.id, -line.quantity)
                self.ledger.append(invoice)
                self.sequencer.commit()
        except Exception as e:
            logger.warning(f"Settlement failed: {e}")
            self._reopen()
            raise

        self.state = SaleState.COMMITTED
        self.last_invoice = invoice
        logger.info(f"Invoice {invoice.invoice_number} committed: total {invoice.total} "
                    f"({len(invoice.items)} lines, {invoice.payment_mode.value})")

        self.cart.unfreeze()
        self.cart.clear()
        self.discount = 0
        self.discount_type = DiscountType.PERCENTAGE
        self.state = SaleState.OPEN
        return invoice
