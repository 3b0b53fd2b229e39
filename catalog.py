# catalog.py
import logging
import math
import uuid

from database import Database
from errors import InsufficientStockError, InvalidProductError, ProductNotFoundError
from models import Product, now_iso
from units import parse_unit

logger = logging.getLogger("billing.catalog")

PRODUCTS_KEY = "products"

# fields an update may touch; id and created_at are fixed at creation
EDITABLE_FIELDS = ("name", "base_unit", "price", "stock", "min_stock", "category", "barcode")

# decimals kept on stored base quantities; a deduction that overshoots stock
# by less than half the last place settles at zero
STOCK_PRECISION = 6


def _finite(value) -> bool:
    return value is not None and math.isfinite(value)


class Catalog:
    """
    Product catalog persisted under one key of the store.

    The catalog exclusively owns live stock values. Every read returns
    copies, so callers cannot mutate stock except through `adjust_stock`.
    """
    def __init__(self, db: Database):
        self.db = db

    def _load(self) -> list:
        return [Product.from_dict(p) for p in self.db.load(PRODUCTS_KEY, [])]

    def _save(self, products: list):
        self.db.save(PRODUCTS_KEY, [p.to_dict() for p in products])

    @staticmethod
    def _index_of(products: list, product_id: str) -> int:
        for i, p in enumerate(products):
            if p.id == product_id:
                return i
        raise ProductNotFoundError(f"Product not found: {product_id}",
                                   details={"product_id": product_id})

    @staticmethod
    def _validate(product: Product, others: list):
        if not product.name or not product.name.strip():
            raise InvalidProductError("Product name is required.")
        if not _finite(product.price) or product.price <= 0:
            raise InvalidProductError("Price must be a finite number greater than zero.",
                                      details={"price": product.price})
        if not _finite(product.stock) or product.stock < 0:
            raise InvalidProductError("Stock must be a finite, non-negative number.",
                                      details={"stock": product.stock})
        if product.min_stock is not None and (not _finite(product.min_stock) or product.min_stock < 0):
            raise InvalidProductError("Minimum stock must be a finite, non-negative number.",
                                      details={"min_stock": product.min_stock})
        if product.barcode:
            for other in others:
                if other.id != product.id and other.barcode == product.barcode:
                    raise InvalidProductError(f"Barcode already in use: {product.barcode}",
                                              details={"barcode": product.barcode})

    def create(self, name: str, base_unit, price: float, stock: float = 0,
               min_stock: float = None, category: str = None, barcode: str = None) -> Product:
        """Add a new product and return it."""
        try:
            unit = parse_unit(base_unit)
        except ValueError as e:
            raise InvalidProductError(str(e), details={"base_unit": base_unit}) from e
        products = self._load()
        product = Product(
            id=f"prod_{uuid.uuid4().hex[:12]}",
            name=name.strip() if name else name,
            base_unit=unit,
            price=price,
            stock=stock,
            min_stock=min_stock,
            category=category or None,
            barcode=barcode or None,
        )
        self._validate(product, products)
        products.append(product)
        self._save(products)
        logger.info(f"Created product {product.id} ({product.name})")
        return product.copy()

    def update(self, product_id: str, **changes) -> Product:
        """Partial update of a product's editable fields."""
        products = self._load()
        idx = self._index_of(products, product_id)
        product = products[idx].copy()
        for key, value in changes.items():
            if key not in EDITABLE_FIELDS:
                continue
            if key == "base_unit":
                try:
                    value = parse_unit(value)
                except ValueError as e:
                    raise InvalidProductError(str(e), details={"base_unit": value}) from e
            setattr(product, key, value)
        self._validate(product, products)
        product.updated_at = now_iso()
        products[idx] = product
        self._save(products)
        logger.info(f"Updated product {product_id}: {sorted(changes)}")
        return product.copy()

    def delete(self, product_id: str) -> bool:
        products = self._load()
        remaining = [p for p in products if p.id != product_id]
        if len(remaining) == len(products):
            return False
        self._save(remaining)
        logger.info(f"Deleted product {product_id}")
        return True

    def get(self, product_id: str):
        """Fetch a product by id, or None."""
        for p in self._load():
            if p.id == product_id:
                return p
        return None

    def get_by_barcode(self, barcode: str):
        for p in self._load():
            if p.barcode and p.barcode == barcode:
                return p
        return None

    def list_all(self) -> list:
        return self._load()

    def search(self, keyword: str) -> list:
        """Case-insensitive substring match over name, category and barcode."""
        kw = (keyword or "").lower()
        return [
            p for p in self._load()
            if kw in p.name.lower()
            or (p.category and kw in p.category.lower())
            or (p.barcode and kw in p.barcode.lower())
        ]

    def low_stock(self) -> list:
        """Products at or below their minimum stock (0 when unset), lowest first."""
        return sorted((p for p in self._load() if p.is_low_stock), key=lambda p: p.stock)

    def adjust_stock(self, product_id: str, delta: float) -> Product:
        """
        Change stock by delta (negative to reduce).
        Raises InsufficientStockError instead of letting stock go negative.
        """
        if not _finite(delta):
            raise InvalidProductError("Stock adjustment must be a finite number.",
                                      details={"delta": delta})
        products = self._load()
        idx = self._index_of(products, product_id)
        product = products[idx]
        new_stock = round(product.stock + delta, STOCK_PRECISION)
        if new_stock < 0:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}: have {product.stock}, need {-delta}",
                product_id=product_id, requested=-delta, available=product.stock,
            )
        # -0.0 from rounding is stored as 0
        product.stock = new_stock + 0.0
        product.updated_at = now_iso()
        self._save(products)
        logger.info(f"Stock of {product_id} adjusted by {delta} to {product.stock}")
        return product.copy()
