# models.py
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from units import Unit, parse_unit, convert


def now_iso() -> str:
    return datetime.now().isoformat(timespec='seconds')


class PaymentMode(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    OTHER = "Other"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass
class Product:
    """
    A catalog product. Price is per one base unit, stock is in base units.
    """
    id: str
    name: str
    base_unit: Unit
    price: float
    stock: float = 0.0
    min_stock: Optional[float] = None
    category: Optional[str] = None
    barcode: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= (self.min_stock or 0)

    def copy(self) -> "Product":
        return replace(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['base_unit'] = self.base_unit.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        data = dict(data)
        data['base_unit'] = parse_unit(data['base_unit'])
        return cls(**data)


@dataclass(frozen=True)
class ProductSnapshot:
    """Product data copied at add/commit time; never aliased to the catalog."""
    id: str
    name: str
    base_unit: Unit
    price: float
    stock: float
    category: Optional[str] = None
    barcode: Optional[str] = None

    @classmethod
    def of(cls, product: Product) -> "ProductSnapshot":
        return cls(
            id=product.id,
            name=product.name,
            base_unit=product.base_unit,
            price=product.price,
            stock=product.stock,
            category=product.category,
            barcode=product.barcode,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data['base_unit'] = self.base_unit.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        data = dict(data)
        data['base_unit'] = parse_unit(data['base_unit'])
        return cls(**data)


class CartItem:
    """One line in the current cart."""
    def __init__(self, product: ProductSnapshot, quantity: float, unit: Unit,
                 display_quantity: float):
        self.product = product
        self.quantity = quantity
        self.unit = unit
        self.display_quantity = display_quantity

    @classmethod
    def entered(cls, product: ProductSnapshot, display_quantity: float, unit: Unit) -> "CartItem":
        """Build a line from an operator entry in any unit of the product's family."""
        unit = parse_unit(unit)
        quantity = convert(display_quantity, unit, product.base_unit)
        return cls(product, quantity, unit, float(display_quantity))

    def set_quantity(self, quantity: float, unit: Unit = None):
        """Set the base quantity; display quantity follows in `unit` (or the current one)."""
        if unit is not None:
            self.unit = parse_unit(unit)
        self.quantity = quantity
        self.display_quantity = convert(quantity, self.product.base_unit, self.unit)

    @property
    def subtotal(self) -> float:
        return round(self.quantity * self.product.price, 2)

    def snapshot(self) -> "InvoiceLine":
        return InvoiceLine(
            product=self.product,
            quantity=self.quantity,
            unit=self.unit,
            display_quantity=self.display_quantity,
            subtotal=self.subtotal,
        )

    def __repr__(self):
        return (f"CartItem({self.product.name!r}, quantity={self.quantity}, "
                f"unit={self.unit.value}, display_quantity={self.display_quantity})")


@dataclass(frozen=True)
class InvoiceLine:
    product: ProductSnapshot
    quantity: float
    unit: Unit
    display_quantity: float
    subtotal: float

    def to_dict(self) -> dict:
        return {
            'product': self.product.to_dict(),
            'quantity': self.quantity,
            'unit': self.unit.value,
            'display_quantity': self.display_quantity,
            'subtotal': self.subtotal,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InvoiceLine":
        return cls(
            product=ProductSnapshot.from_dict(data['product']),
            quantity=data['quantity'],
            unit=parse_unit(data['unit']),
            display_quantity=data['display_quantity'],
            subtotal=data['subtotal'],
        )


@dataclass(frozen=True)
class Cashier:
    id: str
    name: str


@dataclass(frozen=True)
class Invoice:
    """A committed sale. Never mutated once created."""
    id: str
    invoice_number: str
    items: tuple
    subtotal: float
    discount: float
    discount_type: DiscountType
    total: float
    payment_mode: PaymentMode
    cashier_id: str
    cashier_name: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = field(default_factory=now_iso)

    @property
    def created(self) -> datetime:
        return datetime.fromisoformat(self.created_at)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'items': [line.to_dict() for line in self.items],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'discount_type': self.discount_type.value,
            'total': self.total,
            'payment_mode': self.payment_mode.value,
            'cashier_id': self.cashier_id,
            'cashier_name': self.cashier_name,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'notes': self.notes,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Invoice":
        data = dict(data)
        data['items'] = tuple(InvoiceLine.from_dict(i) for i in data['items'])
        data['discount_type'] = DiscountType(data['discount_type'])
        data['payment_mode'] = PaymentMode(data['payment_mode'])
        return cls(**data)


@dataclass
class ShopSettings:
    """Shop details plus the persisted invoice counter state."""
    shop_name: str = "My Store"
    address: str = ""
    phone: str = ""
    email: str = ""
    invoice_prefix: str = "INV"
    invoice_counter: int = 1
    currency: str = "₹"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ShopSettings":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)
