# invoicing.py
import logging
from datetime import datetime, timedelta

from database import Database
from models import Invoice, ShopSettings

logger = logging.getLogger("billing.invoicing")

SETTINGS_KEY = "settings"
INVOICES_KEY = "invoices"

INVOICE_NUMBER_WIDTH = 4


def next_invoice_number(prefix: str, counter: int) -> str:
    """
    Format an invoice number: prefix followed by the counter zero-padded to
    4 digits. Counters of 10000 and above simply print wider.
    """
    return f"{prefix}{counter:0{INVOICE_NUMBER_WIDTH}d}"


def advance(counter: int) -> int:
    return counter + 1


class SettingsStore:
    """Loads and persists ShopSettings, including the invoice counter."""
    def __init__(self, db: Database):
        self.db = db

    def get(self) -> ShopSettings:
        data = self.db.load(SETTINGS_KEY)
        if data is None:
            return ShopSettings()
        return ShopSettings.from_dict(data)

    def save(self, settings: ShopSettings) -> ShopSettings:
        if not settings.invoice_prefix:
            raise ValueError("Invoice prefix cannot be empty.")
        if not isinstance(settings.invoice_counter, int) or settings.invoice_counter < 1:
            raise ValueError("Invoice counter must be a positive integer.")
        self.db.save(SETTINGS_KEY, settings.to_dict())
        return settings

    def update(self, **changes) -> ShopSettings:
        settings = self.get()
        for key, value in changes.items():
            if key not in ShopSettings.__dataclass_fields__:
                raise ValueError(f"Unknown setting: {key}")
            setattr(settings, key, value)
        return self.save(settings)

    def reset(self) -> ShopSettings:
        return self.save(ShopSettings())


class InvoiceSequencer:
    """Allocates invoice numbers from the persisted prefix and counter."""
    def __init__(self, settings: SettingsStore):
        self.settings = settings

    def peek(self) -> str:
        """The number the next successful settlement will receive."""
        s = self.settings.get()
        return next_invoice_number(s.invoice_prefix, s.invoice_counter)

    def commit(self) -> int:
        """Advance the counter by exactly one. Called once per settlement."""
        s = self.settings.get()
        s.invoice_counter = advance(s.invoice_counter)
        self.settings.save(s)
        return s.invoice_counter


class InvoiceLedger:
    """Append-only store of committed invoices."""
    def __init__(self, db: Database):
        self.db = db

    def _raw(self) -> list:
        return self.db.load(INVOICES_KEY, [])

    def append(self, invoice: Invoice):
        if self.get_by_number(invoice.invoice_number) is not None:
            raise ValueError(f"Duplicate invoice number: {invoice.invoice_number}")
        raw = self._raw()
        raw.append(invoice.to_dict())
        self.db.save(INVOICES_KEY, raw)
        logger.debug(f"Ledger now holds {len(raw)} invoices")

    def list_all(self) -> list:
        return [Invoice.from_dict(r) for r in self._raw()]

    def get(self, invoice_id: str):
        for r in self._raw():
            if r['id'] == invoice_id:
                return Invoice.from_dict(r)
        return None

    def get_by_number(self, invoice_number: str):
        for r in self._raw():
            if r['invoice_number'] == invoice_number:
                return Invoice.from_dict(r)
        return None

    def between(self, start: datetime, end: datetime) -> list:
        """Invoices created within [start, end)."""
        return [inv for inv in self.list_all() if start <= inv.created < end]

    def today(self, now: datetime = None) -> list:
        now = now or datetime.now()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return self.between(start, start + timedelta(days=1))

    @staticmethod
    def total_sales(invoices: list) -> float:
        return round(sum(inv.total for inv in invoices), 2)
