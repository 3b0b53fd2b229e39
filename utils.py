# utils.py
import datetime

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from catalog import Catalog
from invoicing import InvoiceLedger

INVENTORY_COLUMNS = ["id", "barcode", "name", "category", "base_unit", "price", "stock", "min_stock"]


def _inventory_frame(catalog: Catalog) -> pd.DataFrame:
    rows = [p.to_dict() for p in catalog.list_all()]
    return pd.DataFrame(rows, columns=INVENTORY_COLUMNS + ["created_at", "updated_at"])


def export_inventory_csv(catalog: Catalog, file_path: str):
    """Dump inventory to CSV."""
    _inventory_frame(catalog)[INVENTORY_COLUMNS].to_csv(file_path, index=False)
    return file_path


def export_inventory_excel(catalog: Catalog, file_path: str):
    """Export inventory to Excel format."""
    _inventory_frame(catalog)[INVENTORY_COLUMNS].to_excel(file_path, index=False, sheet_name='Inventory')
    return file_path


def _optional(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _upsert_rows(catalog: Catalog, df: pd.DataFrame) -> int:
    """
    Upsert products from rows with columns name, price, stock and optionally
    barcode, base_unit, min_stock, category. Rows match existing products by barcode.
    """
    count = 0
    for _, row in df.iterrows():
        barcode = _optional(row.get('barcode'))
        if barcode is not None:
            barcode = str(barcode)
        min_stock = _optional(row.get('min_stock'))
        fields = {
            'name': str(row['name']),
            'base_unit': _optional(row.get('base_unit')) or "Piece",
            'price': float(row['price']),
            'stock': float(row['stock']),
            'min_stock': float(min_stock) if min_stock is not None else None,
            'category': _optional(row.get('category')),
        }
        existing = catalog.get_by_barcode(barcode) if barcode else None
        if existing:
            catalog.update(existing.id, **fields)
        else:
            catalog.create(barcode=barcode, **fields)
        count += 1
    return count


def import_inventory_csv(catalog: Catalog, file_path: str):
    """Read a CSV of products and upsert them into the catalog."""
    df = pd.read_csv(file_path, dtype={'barcode': str})
    return _upsert_rows(catalog, df)


def import_inventory_excel(catalog: Catalog, file_path: str):
    """Read an Excel sheet of products and upsert them into the catalog."""
    df = pd.read_excel(file_path, dtype={'barcode': str})
    return _upsert_rows(catalog, df)


def invoices_frame(invoices: list) -> pd.DataFrame:
    """One row per invoice."""
    rows = [{
        'invoice_number': inv.invoice_number,
        'created_at': inv.created_at,
        'items': len(inv.items),
        'subtotal': inv.subtotal,
        'discount': inv.discount,
        'discount_type': inv.discount_type.value,
        'total': inv.total,
        'payment_mode': inv.payment_mode.value,
        'cashier': inv.cashier_name,
        'customer': inv.customer_name,
    } for inv in invoices]
    return pd.DataFrame(rows, columns=['invoice_number', 'created_at', 'items', 'subtotal', 'discount',
                                       'discount_type', 'total', 'payment_mode', 'cashier', 'customer'])


def sales_summary(ledger: InvoiceLedger, now: datetime.datetime = None) -> dict:
    """Today / yesterday / week / month sales totals. Weeks start on Sunday."""
    now = now or datetime.datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    yesterday = today - datetime.timedelta(days=1)
    week_start = today - datetime.timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)
    tomorrow = today + datetime.timedelta(days=1)

    invoices = ledger.list_all()

    def window(start, end):
        return [inv for inv in invoices if start <= inv.created < end]

    today_list = window(today, tomorrow)
    yesterday_list = window(yesterday, today)
    today_sales = ledger.total_sales(today_list)
    yesterday_sales = ledger.total_sales(yesterday_list)
    change = None
    if yesterday_sales:
        change = round((today_sales - yesterday_sales) / yesterday_sales * 100, 2)

    return {
        'today_sales': today_sales,
        'today_invoices': len(today_list),
        'yesterday_sales': yesterday_sales,
        'change_vs_yesterday': change,
        'week_sales': ledger.total_sales(window(week_start, tomorrow)),
        'month_sales': ledger.total_sales(window(month_start, tomorrow)),
    }


def generate_sales_report(ledger: InvoiceLedger, start_date=None, end_date=None, file_path=None, format='csv'):
    """Generate a sales report for a given date range (end exclusive)."""
    invoices = ledger.list_all()
    if start_date:
        invoices = [inv for inv in invoices if inv.created >= start_date]
    if end_date:
        invoices = [inv for inv in invoices if inv.created < end_date]

    if not invoices:
        return None, "No sales data found for the specified period."

    df = invoices_frame(invoices)
    df['created_at'] = pd.to_datetime(df['created_at'])
    df['date'] = df['created_at'].dt.date

    summary = {
        'total_sales': round(float(df['total'].sum()), 2),
        'average_sale': round(float(df['total'].mean()), 2),
        'total_discount': round(float((df['subtotal'] - df['total']).sum()), 2),
        'num_transactions': len(df),
        'start_date': start_date or df['date'].min(),
        'end_date': end_date or df['date'].max(),
    }

    if file_path:
        if format.lower() == 'excel':
            df.to_excel(file_path, index=False, sheet_name='Sales')
        else:
            df.to_csv(file_path, index=False)

    return df, summary


def generate_inventory_report(catalog: Catalog, file_path=None, format='csv'):
    """Generate an inventory report; low stock follows each product's minimum."""
    products = catalog.list_all()
    if not products:
        return None, "No inventory data found."

    df = _inventory_frame(catalog)[INVENTORY_COLUMNS]
    low = [p for p in products if p.is_low_stock]

    summary = {
        'total_items': len(df),
        'total_value': round(float((df['price'] * df['stock']).sum()), 2),
        'low_stock_count': len(low),
        'low_stock_items': [p.to_dict() for p in low],
    }

    if file_path:
        if format.lower() == 'excel':
            df.to_excel(file_path, index=False, sheet_name='Inventory')
        else:
            df.to_csv(file_path, index=False)

    return df, summary


def generate_pdf_report(title, data, summary, file_path, currency="₹"):
    """Generate a PDF report with data and summary statistics."""
    doc = SimpleDocTemplate(file_path, pagesize=letter)
    elements = []

    styles = getSampleStyleSheet()
    elements.append(Paragraph(title, styles['Heading1']))
    elements.append(Spacer(1, 0.2 * inch))

    current_date = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    elements.append(Paragraph(f"Generated: {current_date}", styles['Normal']))
    elements.append(Spacer(1, 0.2 * inch))

    elements.append(Paragraph("Summary", styles['Heading2']))
    summary_data = [["Metric", "Value"]]
    for key, value in summary.items():
        if key == 'low_stock_items':
            continue
        if isinstance(value, float) and ('total' in key or 'value' in key or 'sale' in key):
            formatted_value = f"{currency}{value:.2f}"
        elif isinstance(value, (int, float)):
            formatted_value = f"{value:,}"
        else:
            formatted_value = str(value)
        summary_data.append([key.replace('_', ' ').title(), formatted_value])

    summary_table = Table(summary_data, colWidths=[2.5 * inch, 3 * inch])
    summary_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (1, 0), 12),
        ('GRID', (0, 0), (1, -1), 1, colors.black),
    ]))
    elements.append(summary_table)
    elements.append(Spacer(1, 0.3 * inch))

    if isinstance(data, pd.DataFrame) and not data.empty:
        elements.append(Paragraph("Detailed Data", styles['Heading2']))
        table_data = [data.columns.tolist()]
        for _, row in data.iterrows():
            table_data.append([str(x) for x in row.tolist()])

        # keep PDFs small
        max_rows = min(50, len(table_data))
        data_table = Table(table_data[:max_rows])
        data_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))
        elements.append(data_table)

        if len(table_data) > max_rows:
            elements.append(Spacer(1, 0.2 * inch))
            elements.append(Paragraph(f"Note: Showing {max_rows - 1} of {len(table_data) - 1} rows",
                                      styles['Italic']))

    doc.build(elements)
    return file_path
