from __future__ import annotations

from collections.abc import Sequence

from lxml import etree

from facture.models.client import Client
from facture.models.company import Company
from facture.models.invoice import Invoice, InvoiceItem
from facture.taxes import rate_for
from facture.utils.formatters import format_date, format_money, format_quantity, format_rate

LABELS: dict[str, tuple[str, str]] = {
    "invoice": ("INVOICE", "FACTURE"),
    "invoice_number": ("Invoice #", "Facture #"),
    "date": ("Date", "Date"),
    "due_date": ("Due Date", "Date d'échéance"),
    "bill_to": ("BILL TO", "FACTURER À"),
    "description": ("Description", "Description"),
    "quantity": ("Quantity", "Qté"),
    "unit_price": ("Unit Price", "Prix unitaire"),
    "discount": ("Discount", "Rabais"),
    "line_total": ("Total", "Total"),
    "subtotal": ("Subtotal", "Sous-total"),
    "total": ("TOTAL", "TOTAL"),
    "notes": ("Notes", "Notes"),
}

STYLE = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: Arial, sans-serif; padding: 40px; color: #333; }
.header { display: flex; justify-content: space-between; margin-bottom: 40px;
  border-bottom: 2px solid #333; padding-bottom: 20px; }
.logo { max-width: 150px; max-height: 80px; }
.invoice-meta { text-align: right; }
.invoice-title { font-size: 32px; font-weight: bold; }
.section { margin-bottom: 30px; }
.section-title { font-size: 14px; font-weight: bold; margin-bottom: 10px; color: #666; }
table { width: 100%; border-collapse: collapse; margin-top: 20px; }
th { background: #f5f5f5; padding: 12px; text-align: left; border-bottom: 2px solid #333; }
td { padding: 10px; border-bottom: 1px solid #ddd; }
.num { text-align: right; }
.totals { margin-top: 30px; margin-left: auto; width: 300px; }
.totals-row { display: flex; justify-content: space-between; padding: 8px 0; }
.totals-row.grand-total { font-size: 20px; font-weight: bold; border-top: 2px solid #333; }
.notes { margin-top: 40px; padding: 20px; background: #f9f9f9; border-left: 4px solid #333; }
"""


def label_text(key: str, bilingual: bool) -> str:
    """English label, or "English / Français" when *bilingual* and the two differ."""
    en, fr = LABELS[key]
    return f"{en} / {fr}" if bilingual and fr != en else en


def _sub(
    parent: etree._Element,
    tag: str,
    text: str | None = None,
    cls: str | None = None,
) -> etree._Element:
    el = etree.SubElement(parent, tag)
    if cls:
        el.set("class", cls)
    if text is not None:
        el.text = text
    return el


def _optional_line(parent: etree._Element, value: str | None, cls: str) -> None:
    """Add a line only when the field is set; blank optional fields are left out."""
    if value:
        _sub(parent, "div", value, cls)


def _date_text(value, bilingual: bool) -> str:
    if bilingual:
        return f"{format_date(value, 'en')} / {format_date(value, 'fr')}"
    return format_date(value, "en")


def _meta_row(parent: etree._Element, key: str, value: str, bilingual: bool) -> None:
    row = _sub(parent, "div", cls="meta-row")
    _sub(row, "strong", f"{label_text(key, bilingual)}:", "label")
    _sub(row, "span", value, f"value {key}")


def _totals_row(parent: etree._Element, text: str, amount: str, cls: str) -> None:
    row = _sub(parent, "div", cls=f"totals-row {cls}")
    _sub(row, "span", f"{text}:", "label")
    _sub(row, "span", amount, "amount")


def render(
    invoice: Invoice,
    company: Company,
    client: Client,
    items: Sequence[InvoiceItem],
) -> etree._Element:
    """Build the printable invoice as an HTML element tree.

    Quebec invoices pair every label with its French translation; other
    provinces are English only.  Items keep the order given.
    """
    bilingual = invoice.province.bilingual
    tax = rate_for(invoice.province)

    html = etree.Element("html")
    html.set("lang", "fr-CA" if bilingual else "en")
    head = _sub(html, "head")
    meta = _sub(head, "meta")
    meta.set("charset", "UTF-8")
    _sub(head, "title", f"{label_text('invoice', bilingual)} {invoice.invoice_number}")
    _sub(head, "style", STYLE)

    body = _sub(html, "body")

    # Header: issuing company on the left, invoice identification on the right
    header = _sub(body, "div", cls="header")
    company_el = _sub(header, "div", cls="company")
    if company.logo:
        logo = _sub(company_el, "img", cls="logo")
        logo.set("src", company.logo)
        logo.set("alt", "Logo")
    _sub(company_el, "strong", company.name, "company-name")
    _sub(company_el, "div", company.address, "company-address")
    _optional_line(company_el, company.phone, "company-phone")
    _optional_line(company_el, company.email, "company-email")
    _optional_line(company_el, company.website, "company-website")

    meta_el = _sub(header, "div", cls="invoice-meta")
    _sub(meta_el, "div", label_text("invoice", bilingual), "invoice-title section-title")
    _meta_row(meta_el, "invoice_number", invoice.invoice_number, bilingual)
    _meta_row(meta_el, "date", _date_text(invoice.date, bilingual), bilingual)
    if invoice.due_date:
        _meta_row(meta_el, "due_date", _date_text(invoice.due_date, bilingual), bilingual)

    bill_to = _sub(body, "div", cls="section bill-to")
    _sub(bill_to, "div", label_text("bill_to", bilingual), "section-title")
    _sub(bill_to, "strong", client.name, "client-name")
    _optional_line(bill_to, client.address, "client-address")
    _optional_line(bill_to, client.phone, "client-phone")
    _optional_line(bill_to, client.email, "client-email")

    table = _sub(body, "table", cls="items")
    head_row = _sub(_sub(table, "thead"), "tr")
    for key in ("description", "quantity", "unit_price", "discount", "line_total"):
        _sub(head_row, "th", label_text(key, bilingual), "label" if key == "description" else "label num")
    tbody = _sub(table, "tbody")
    for item in items:
        tr = _sub(tbody, "tr", cls="item")
        _sub(tr, "td", item.description, "description")
        _sub(tr, "td", format_quantity(item.quantity), "num")
        _sub(tr, "td", format_money(item.unit_price), "num")
        _sub(tr, "td", format_money(item.discount), "num")
        _sub(tr, "td", format_money(item.total_price), "num")

    totals = _sub(body, "div", cls="totals")
    _totals_row(totals, label_text("subtotal", bilingual), format_money(invoice.subtotal), "subtotal")
    _totals_row(
        totals,
        f"{tax.label(bilingual)} ({format_rate(invoice.tax_rate)})",
        format_money(invoice.tax_amount),
        "tax",
    )
    _totals_row(totals, label_text("total", bilingual), format_money(invoice.total), "grand-total")

    if invoice.notes:
        notes = _sub(body, "div", cls="notes")
        _sub(notes, "strong", f"{label_text('notes', bilingual)}:", "label section-title")
        _sub(notes, "p", invoice.notes, "notes-text")

    return html


def to_html(doc: etree._Element) -> bytes:
    """Serialize a rendered document to UTF-8 HTML markup."""
    return etree.tostring(doc, method="html", encoding="utf-8", doctype="<!DOCTYPE html>")
