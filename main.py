# main.py
import os
import sys
import logging
import argparse
import json
import copy
from pathlib import Path

from catalog import Catalog
from database import Database
from errors import BillingError
from invoicing import SETTINGS_KEY, InvoiceLedger, SettingsStore
from logger import configure_logger
from models import Cashier
from settlement import CashierSystem
from units import format_quantity
from utils import (
    export_inventory_csv,
    export_inventory_excel,
    import_inventory_csv,
    import_inventory_excel,
    sales_summary,
)

logger = logging.getLogger("billing.main")

# Default configuration
DEFAULT_CONFIG = {
    "database": {"name": "pos.db"},
    "export_dir": "exports",
    "currency": "₹",
    "invoice_prefix": "INV",
    "cashier": {"id": "admin", "name": "Admin"},
    "logging": {
        "level": "INFO",
        "file": "logs/billing.log",
        "audit_file": "logs/sales.log",
        "max_size": 1048576,
        "backup_count": 3
    }
}


def load_config(config_path="config.json"):
    """Load configuration from JSON file or create default if not exists"""
    if os.path.exists(config_path):
        with open(config_path, 'r', encoding='utf-8') as f:
            loaded = json.load(f)
        config = {**DEFAULT_CONFIG, **loaded}
        for section in ("database", "cashier", "logging"):
            config[section] = {**DEFAULT_CONFIG[section], **loaded.get(section, {})}
        return config

    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    return copy.deepcopy(DEFAULT_CONFIG)


def setup_directories(config):
    """Create required directories if they don't exist."""
    log = config["logging"]
    for dir_path in (config["export_dir"], os.path.dirname(log["file"]),
                     os.path.dirname(log.get("audit_file") or "")):
        if dir_path:
            Path(dir_path).mkdir(parents=True, exist_ok=True)


def parse_item(text):
    """PRODUCT:QTY[:UNIT] -> (product, qty, unit)"""
    parts = text.split(":")
    if len(parts) not in (2, 3):
        raise argparse.ArgumentTypeError(f"Expected PRODUCT:QTY[:UNIT], got {text!r}")
    try:
        qty = float(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid quantity in {text!r}")
    return parts[0], qty, parts[2] if len(parts) == 3 else None


def build_parser():
    parser = argparse.ArgumentParser(description="Retail billing and inventory")
    parser.add_argument("--config", help="Path to configuration file", default="config.json")
    parser.add_argument("--debug", help="Enable debug mode", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add-product", help="Add a product to the catalog")
    p.add_argument("name")
    p.add_argument("--unit", default="Piece", help="Base unit for price and stock")
    p.add_argument("--price", type=float, required=True)
    p.add_argument("--stock", type=float, default=0)
    p.add_argument("--min-stock", type=float)
    p.add_argument("--category")
    p.add_argument("--barcode")

    sub.add_parser("list-products", help="List the catalog")
    sub.add_parser("low-stock", help="List products at or below minimum stock")

    p = sub.add_parser("search", help="Search by name, category or barcode")
    p.add_argument("keyword")

    p = sub.add_parser("adjust-stock", help="Add (or with a negative delta, remove) stock")
    p.add_argument("product")
    p.add_argument("delta", type=float)

    p = sub.add_parser("sell", help="Bill items and settle the sale")
    p.add_argument("items", nargs="+", type=parse_item, metavar="PRODUCT:QTY[:UNIT]")
    p.add_argument("--discount", type=float, default=0)
    p.add_argument("--discount-type", choices=["percentage", "fixed"], default="percentage")
    p.add_argument("--payment", choices=["Cash", "UPI", "Card", "Other"], default="Cash")
    p.add_argument("--customer-name")
    p.add_argument("--customer-phone")

    sub.add_parser("invoices", help="List invoices")
    sub.add_parser("summary", help="Sales summary for today, week and month")

    p = sub.add_parser("export", help="Export inventory")
    p.add_argument("file")

    p = sub.add_parser("import", help="Import inventory (upsert by barcode)")
    p.add_argument("file")
    return parser


def _print_products(products, currency):
    for prod in products:
        print(f"{prod.id:18} {prod.name[:24]:24} {currency}{prod.price:>9.2f}/{prod.base_unit} "
              f"stock {format_quantity(prod.stock, prod.base_unit)}")


def run_command(args, config, db):
    currency = config["currency"]
    catalog = Catalog(db)

    if args.command == "add-product":
        prod = catalog.create(args.name, args.unit, args.price, args.stock,
                              min_stock=args.min_stock, category=args.category, barcode=args.barcode)
        print(f"Created {prod.id}")
    elif args.command == "list-products":
        _print_products(catalog.list_all(), currency)
    elif args.command == "low-stock":
        _print_products(catalog.low_stock(), currency)
    elif args.command == "search":
        _print_products(catalog.search(args.keyword), currency)
    elif args.command == "adjust-stock":
        prod = catalog.get_by_barcode(args.product) or catalog.get(args.product)
        if prod is None:
            raise BillingError(f"Product not found: {args.product}")
        prod = catalog.adjust_stock(prod.id, args.delta)
        print(f"{prod.name}: {format_quantity(prod.stock, prod.base_unit)}")
    elif args.command == "sell":
        cashier = Cashier(**config["cashier"])
        system = CashierSystem(db, cashier)
        for code, qty, unit in args.items:
            system.scan_and_add(code, qty, unit)
        invoice = system.settle(args.payment, args.customer_name, args.customer_phone,
                                discount=args.discount, discount_type=args.discount_type)
        for line in invoice.items:
            print(f"{line.product.name[:24]:24} {format_quantity(line.display_quantity, line.unit):>14} "
                  f"{currency}{line.subtotal:>9.2f}")
        print(f"Invoice {invoice.invoice_number}: subtotal {currency}{invoice.subtotal:.2f}, "
              f"total {currency}{invoice.total:.2f}")
    elif args.command == "invoices":
        for inv in InvoiceLedger(db).list_all():
            print(f"{inv.invoice_number:12} {inv.created_at} {currency}{inv.total:>10.2f} {inv.payment_mode.value}")
    elif args.command == "summary":
        for key, value in sales_summary(InvoiceLedger(db)).items():
            print(f"{key.replace('_', ' ').title():22} {value}")
    elif args.command == "export":
        if args.file.lower().endswith((".xlsx", ".xls")):
            export_inventory_excel(catalog, args.file)
        else:
            export_inventory_csv(catalog, args.file)
        print(f"Exported to {args.file}")
    elif args.command == "import":
        if args.file.lower().endswith((".xlsx", ".xls")):
            count = import_inventory_excel(catalog, args.file)
        else:
            count = import_inventory_csv(catalog, args.file)
        print(f"Imported {count} products")


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    if args.debug:
        config["logging"]["level"] = "DEBUG"
    setup_directories(config)
    configure_logger(config)

    db = Database(config["database"]["name"])
    try:
        settings = SettingsStore(db)
        if db.load(SETTINGS_KEY) is None:
            settings.update(invoice_prefix=config["invoice_prefix"], currency=config["currency"])
        run_command(args, config, db)
    except BillingError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
