# cart.py
import logging
import math

from catalog import STOCK_PRECISION
from errors import InsufficientStockError, InvalidQuantityError, InvalidStateError
from models import CartItem, Product, ProductSnapshot
from units import convert, parse_unit

logger = logging.getLogger("billing.cart")


class Cart:
    """
    Holds the line items of the sale in progress.

    Lines keep product snapshots; the cart never writes to the catalog.
    Stock checks compare the cart's own accumulated quantity for a product
    against the stock the product had when it was last added.
    """
    def __init__(self):
        self.items = []
        self.frozen = False

    def _ensure_editable(self):
        if self.frozen:
            raise InvalidStateError("Cart is frozen while payment is being collected.")

    def find(self, product_id: str):
        """Index of the line for product_id, or None."""
        for i, ci in enumerate(self.items):
            if ci.product.id == product_id:
                return i
        return None

    def add_item(self, product: Product, qty: float, unit=None) -> CartItem:
        """
        Add qty of product entered in unit (default: the product's base unit).
        A product already in the cart has the new quantity added to its line.
        """
        self._ensure_editable()
        if qty is None or not math.isfinite(qty) or qty <= 0:
            raise InvalidQuantityError("Quantity must be a finite number greater than zero.",
                                       details={"quantity": qty})
        unit = parse_unit(unit) if unit is not None else product.base_unit
        base_qty = convert(qty, unit, product.base_unit)
        snapshot = ProductSnapshot.of(product)

        idx = self.find(product.id)
        existing = self.items[idx].quantity if idx is not None else 0
        total = round(existing + base_qty, STOCK_PRECISION)
        if total > product.stock:
            raise InsufficientStockError(
                f"Not enough stock for {product.name}: have {product.stock}, need {total}",
                product_id=product.id, requested=total, available=product.stock,
                line_index=idx,
            )

        if idx is None:
            item = CartItem.entered(snapshot, qty, unit)
            self.items.append(item)
        else:
            item = self.items[idx]
            item.product = snapshot
            item.set_quantity(total, unit)
        logger.debug(f"Cart line {product.id}: {item.quantity} {product.base_unit}")
        return item

    def remove_item(self, index: int) -> CartItem:
        self._ensure_editable()
        return self.items.pop(index)

    def adjust_quantity(self, index: int, delta: float):
        """
        Change a line's base quantity by delta. A result of zero or less removes
        the line and returns None.
        """
        self._ensure_editable()
        if delta is None or not math.isfinite(delta):
            raise InvalidQuantityError("Quantity change must be a finite number.",
                                       details={"delta": delta})
        item = self.items[index]
        new_qty = round(item.quantity + delta, STOCK_PRECISION)
        if new_qty <= 0:
            self.items.pop(index)
            return None
        if new_qty > item.product.stock:
            raise InsufficientStockError(
                f"Not enough stock for {item.product.name}: have {item.product.stock}, need {new_qty}",
                product_id=item.product.id, requested=new_qty,
                available=item.product.stock, line_index=index,
            )
        item.set_quantity(new_qty)
        return item

    def clear(self):
        self._ensure_editable()
        self.items = []

    def freeze(self):
        self.frozen = True

    def unfreeze(self):
        self.frozen = False

    @property
    def is_empty(self) -> bool:
        return not self.items

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def subtotal(self) -> float:
        return round(sum(ci.subtotal for ci in self.items), 2)
