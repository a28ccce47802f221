from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from facture.config import PROVINCE_TIMEZONES, get_default_due_days, get_pdf_url
from facture.models.client import Client
from facture.models.company import Company
from facture.models.invoice import Invoice, InvoiceItem
from facture.services import document
from facture.services.calculator import compute_invoice_totals, validate_line_items
from facture.services.exceptions import MissingRequiredField, NotFoundError, ValidationError
from facture.services.pdf_client import HTML_MEDIA_TYPE, PDF_MEDIA_TYPE, invoice_filename, render_pdf
from facture.taxes import parse_province, rate_for
from facture.utils import store
from facture.utils.sequence import next_invoice_number, peek_invoice_number
from facture.utils.validators import clean_optional, validate_date, validate_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedInvoice:
    """An invoice with its company and client resolved, ready to render."""

    invoice: Invoice
    company: Company
    client: Client

    @property
    def items(self) -> tuple[InvoiceItem, ...]:
        return self.invoice.items


@dataclass(frozen=True)
class RenderedDocument:
    filename: str
    content: bytes
    media_type: str


def _now(province: str) -> datetime:
    return datetime.now(PROVINCE_TIMEZONES[province])


def _client_info(client_info: Mapping | str | None) -> dict:
    if isinstance(client_info, str):
        client_info = {"name": client_info}
    info = {k: clean_optional(v) for k, v in dict(client_info or {}).items()}
    if not info.get("name"):
        raise MissingRequiredField("client.name")
    if info.get("email"):
        try:
            info["email"] = validate_email(info["email"])
        except ValueError as e:
            raise ValidationError(f"client.email: {e}") from None
    return info


def _due_date(due_date: date | str | None, issued: date) -> date | None:
    if isinstance(due_date, str):
        try:
            due_date = validate_date(due_date)
        except ValueError as e:
            raise ValidationError(str(e)) from None
    if due_date is None:
        days = get_default_due_days()
        if days is None:
            return None
        due_date = issued + timedelta(days=days)
    if due_date < issued:
        raise ValidationError(f"Due date {due_date} is before invoice date {issued}")
    return due_date


def create_invoice(
    company_id: str | None,
    client_info: Mapping | str | None,
    province: str | None,
    items: Sequence[Mapping | InvoiceItem] | None,
    notes: str | None = None,
    due_date: date | str | None = None,
    as_of: date | None = None,
) -> MaterializedInvoice:
    """Create and persist an invoice, returning it with company and client resolved.

    Input is fully validated before anything is written.  After that the
    steps are: client get-or-create, number reservation, invoice+items write.
    If the last write fails the client row and the consumed number stay
    behind; the number becomes a permanent gap and is logged.
    """
    if not company_id:
        raise MissingRequiredField("company_id")
    if not province:
        raise MissingRequiredField("province")
    prov = parse_province(province)
    info = _client_info(client_info)
    line_items = validate_line_items(items)

    company = store.get_company(company_id)
    if company is None:
        raise NotFoundError(f"Company not found: {company_id}")

    now = _now(str(prov))
    issued = as_of or now.date()
    due = _due_date(due_date, issued)
    tax = rate_for(prov)
    totals = compute_invoice_totals(line_items, tax.rate)

    client, _ = store.get_or_create_client(info)
    invoice_number = next_invoice_number(prov, issued)

    invoice = Invoice(
        id=uuid.uuid4().hex,
        invoice_number=invoice_number,
        date=issued,
        due_date=due,
        company_id=company.id,
        client_id=client.id,
        province=prov,
        subtotal=totals.subtotal,
        tax_rate=tax.rate,
        tax_amount=totals.tax_amount,
        total=totals.total,
        notes=clean_optional(notes),
        items=tuple(line_items),
        created_at=now.isoformat(),
    )

    try:
        store.insert_invoice(invoice)
    except Exception:
        logger.warning("Invoice %s was not stored; its number is now unused", invoice_number)
        raise

    return MaterializedInvoice(invoice=invoice, company=company, client=client)


def preview_invoice_number(province: str, as_of: date | None = None) -> str:
    """The number the next created invoice would get. Consumes nothing."""
    return peek_invoice_number(province, as_of)


def get_invoice(key: str) -> MaterializedInvoice:
    """Load an invoice by id or number together with its company and client."""
    invoice = store.find_invoice(key)
    if invoice is None:
        raise NotFoundError(f"Invoice not found: {key}")
    company = store.get_company(invoice.company_id)
    if company is None:
        raise NotFoundError(f"Company not found: {invoice.company_id}")
    client = store.get_client(invoice.client_id)
    if client is None:
        raise NotFoundError(f"Client not found: {invoice.client_id}")
    return MaterializedInvoice(invoice=invoice, company=company, client=client)


def list_invoices(company_id: str | None = None) -> list[Invoice]:
    return store.list_invoices(company_id)


def delete_invoice(key: str) -> Invoice:
    """Delete an invoice and its items. Its number is never handed out again."""
    invoice = store.find_invoice(key)
    if invoice is None or not store.delete_invoice(invoice.id):
        raise NotFoundError(f"Invoice not found: {key}")
    logger.info("Deleted invoice %s", invoice.invoice_number)
    return invoice


def render_invoice_document(key: str, fmt: str | None = None) -> RenderedDocument:
    """Render a stored invoice for download.

    *fmt* is "pdf" or "html"; by default PDF when a PDF service is configured,
    HTML otherwise.
    """
    materialized = get_invoice(key)
    doc = document.render(
        materialized.invoice,
        materialized.company,
        materialized.client,
        materialized.items,
    )
    html = document.to_html(doc)
    number = materialized.invoice.invoice_number

    fmt = fmt or ("pdf" if get_pdf_url() else "html")
    if fmt == "html":
        return RenderedDocument(invoice_filename(number, "html"), html, HTML_MEDIA_TYPE)
    if fmt != "pdf":
        raise ValidationError(f"Unknown document format: {fmt}")
    return RenderedDocument(invoice_filename(number, "pdf"), render_pdf(html), PDF_MEDIA_TYPE)
