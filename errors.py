# errors.py


class BillingError(Exception):
    """Base class for billing errors. `details` carries structured context."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidUnitError(BillingError, ValueError):
    """Unknown unit label."""


class IncompatibleUnitsError(BillingError, ValueError):
    """Conversion requested across unit families."""


class InvalidProductError(BillingError, ValueError):
    """Bad price, stock, minStock or barcode on create/update."""


class ProductNotFoundError(BillingError, KeyError):
    """No product with the given id."""

    def __str__(self):
        return self.args[0] if self.args else ""


class InvalidQuantityError(BillingError, ValueError):
    """Entered quantity must be greater than zero."""


class InsufficientStockError(BillingError):
    """Requested deduction would drive stock negative."""
    def __init__(self, message: str, *, product_id=None, requested=None,
                 available=None, line_index=None):
        super().__init__(message, details={
            "product_id": product_id,
            "requested": requested,
            "available": available,
            "line_index": line_index,
        })
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.line_index = line_index


class InvalidDiscountError(BillingError, ValueError):
    """Out-of-range discount value or unknown discount type."""


class EmptyCartError(BillingError):
    """Settlement attempted on an empty cart."""


class InvalidStateError(BillingError):
    """Operation not allowed in the current sale state."""
