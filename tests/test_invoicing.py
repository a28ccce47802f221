from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from facture.models.province import Province
from facture.services import invoicing as invoicing_mod
from facture.services.exceptions import (
    InvalidLineItem,
    MissingRequiredField,
    NotFoundError,
    PersistenceFailure,
    UnsupportedProvince,
    ValidationError,
)
from facture.taxes import TAX_TABLE, TaxInfo
from facture.utils import store

JUNE = date(2025, 6, 5)


@pytest.fixture
def create(stored_company, raw_item):
    """Create an invoice for the stored company with sensible defaults."""

    def _create(**kwargs):
        params = {
            "company_id": stored_company.id,
            "client_info": {"name": "Acme"},
            "province": "ON",
            "items": [raw_item],
            "as_of": JUNE,
        }
        params.update(kwargs)
        return invoicing_mod.create_invoice(**params)

    return _create


class TestCreateInvoice:
    def test_ontario_round_trip(self, stored_company, raw_item):
        result = invoicing_mod.create_invoice(
            company_id=stored_company.id,
            client_info={"name": "Acme"},
            province="ON",
            items=[raw_item],
            notes=None,
        )
        inv = result.invoice
        assert re.fullmatch(r"ON-\d{6}-0001", inv.invoice_number)
        assert inv.invoice_number[3:9] == f"{inv.date.year:04d}{inv.date.month:02d}"
        assert inv.subtotal == Decimal("199.00")
        assert inv.tax_amount == Decimal("25.87")
        assert inv.total == Decimal("224.87")
        assert inv.tax_rate == Decimal("0.13")
        assert result.company == stored_company
        assert result.client.name == "Acme"
        assert [i.description for i in result.items] == ["Duct cleaning"]

    def test_persists_invoice_with_items(self, create):
        result = create()
        stored = store.get_invoice(result.invoice.id)
        assert stored == result.invoice

    def test_quebec_rate_captured(self, create, items):
        inv = create(province="QC", items=items).invoice
        assert inv.tax_rate == Decimal("0.14975")
        assert inv.tax_amount == Decimal("329") * Decimal("0.14975")
        assert inv.invoice_number == "QC-202506-0001"

    @pytest.mark.parametrize(("province", "rate"), [("NB", "0.15"), ("NS", "0.15")])
    def test_atlantic_rates(self, create, province, rate):
        inv = create(province=province).invoice
        assert inv.tax_amount == Decimal("199") * Decimal(rate)

    def test_tax_rate_is_captured_not_live(self, create):
        inv = create().invoice
        with patch.dict(TAX_TABLE, {Province.ON: TaxInfo(Decimal("0.20"), "HST", "TVH")}):
            reloaded = invoicing_mod.get_invoice(inv.id).invoice
        assert reloaded.tax_rate == Decimal("0.13")

    def test_sequential_numbers(self, create):
        first = create().invoice.invoice_number
        second = create().invoice.invoice_number
        assert (first, second) == ("ON-202506-0001", "ON-202506-0002")

    def test_same_client_name_reuses_client(self, create):
        a = create(client_info={"name": "Acme", "email": "a@acme.example"})
        b = create(client_info={"name": "Acme"})
        assert a.client.id == b.client.id
        assert len(store.list_clients()) == 1

    def test_client_as_plain_name(self, create):
        assert create(client_info="Acme").client.name == "Acme"

    def test_notes_and_due_date(self, create):
        inv = create(notes="  Net 30  ", due_date="2025-07-05").invoice
        assert inv.notes == "Net 30"
        assert inv.due_date == date(2025, 7, 5)

    def test_default_due_days(self, create, monkeypatch):
        monkeypatch.setenv("FACTURE_DUE_DAYS", "30")
        assert create().invoice.due_date == date(2025, 7, 5)

    def test_due_date_before_invoice_date(self, create):
        with pytest.raises(ValidationError, match="before"):
            create(due_date=date(2025, 6, 1))

    @pytest.mark.parametrize("value", ["thirty", "-10"])
    def test_bad_default_due_days(self, create, monkeypatch, value):
        monkeypatch.setenv("FACTURE_DUE_DAYS", value)
        with pytest.raises(ValidationError, match="FACTURE_DUE_DAYS"):
            create()
        assert store.list_invoices() == []

    def test_zero_default_due_days(self, create, monkeypatch):
        monkeypatch.setenv("FACTURE_DUE_DAYS", "0")
        assert create().invoice.due_date == JUNE

    def test_deleted_number_is_never_reused(self, create):
        first = create().invoice
        invoicing_mod.delete_invoice(first.invoice_number)
        assert create().invoice.invoice_number == "ON-202506-0002"


class TestCreateInvoiceFailures:
    def test_missing_company_id(self, create):
        with pytest.raises(MissingRequiredField, match="company_id"):
            create(company_id=None)

    def test_missing_province(self, create):
        with pytest.raises(MissingRequiredField, match="province"):
            create(province="")

    def test_missing_items(self, create):
        with pytest.raises(MissingRequiredField, match="items"):
            create(items=[])

    def test_missing_client_name(self, create):
        with pytest.raises(MissingRequiredField, match="client.name"):
            create(client_info={"email": "x@y.example"})

    def test_unsupported_province(self, create):
        with pytest.raises(UnsupportedProvince) as exc:
            create(province="AB")
        assert exc.value.status_code == 400

    def test_unknown_company(self, create):
        with pytest.raises(NotFoundError) as exc:
            create(company_id="nope")
        assert exc.value.status_code == 404

    def test_invalid_client_email(self, create):
        with pytest.raises(ValidationError, match="client.email"):
            create(client_info={"name": "Acme", "email": "acme at example"})
        assert store.list_clients() == []

    def test_item_that_is_not_a_mapping(self, create):
        with pytest.raises(InvalidLineItem, match="Item 1"):
            create(items=["Duct cleaning"])

    def test_items_not_a_list(self, create, raw_item):
        with pytest.raises(InvalidLineItem, match="list"):
            create(items=raw_item)

    def test_unrenderable_amount_never_stored(self, create):
        with pytest.raises(InvalidLineItem, match="out of range"):
            create(items=[{"description": "x", "quantity": 1, "unit_price": "1e30"}])
        assert store.list_invoices() == []

    def test_validation_happens_before_any_write(self, create):
        with pytest.raises(InvalidLineItem):
            create(items=[{"description": "x", "quantity": 1, "unit_price": 10, "total_price": 99}])
        assert store.list_clients() == []
        assert invoicing_mod.preview_invoice_number("ON", JUNE) == "ON-202506-0001"

    def test_storage_failure_leaves_gap_and_client(self, create, caplog):
        with (
            patch.object(invoicing_mod.store, "insert_invoice", side_effect=PersistenceFailure("disk full")),
            pytest.raises(PersistenceFailure) as exc,
        ):
            create()
        assert exc.value.status_code == 500
        assert "ON-202506-0001" in caplog.text
        assert store.list_invoices() == []
        # accepted non-atomic boundary: client row and consumed number remain
        assert len(store.list_clients()) == 1
        assert create().invoice.invoice_number == "ON-202506-0002"


class TestLookups:
    def test_preview_does_not_consume(self, create):
        assert invoicing_mod.preview_invoice_number("ON", JUNE) == "ON-202506-0001"
        assert create().invoice.invoice_number == "ON-202506-0001"

    def test_get_invoice_by_number(self, create):
        created = create()
        loaded = invoicing_mod.get_invoice(created.invoice.invoice_number)
        assert loaded == created

    def test_get_invoice_missing(self):
        with pytest.raises(NotFoundError):
            invoicing_mod.get_invoice("ON-202506-9999")

    def test_list_invoices_without_filter(self, create, company_dict):
        other = store.add_company({**company_dict, "name": "Other"})
        create()
        create(company_id=other.id)
        assert len(invoicing_mod.list_invoices()) == 2
        assert len(invoicing_mod.list_invoices(other.id)) == 1

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            invoicing_mod.delete_invoice("nope")


class TestRenderInvoiceDocument:
    def test_html_when_no_pdf_service(self, create):
        number = create(province="QC").invoice.invoice_number
        doc = invoicing_mod.render_invoice_document(number)
        assert doc.filename == f"invoice-{number}.html"
        assert doc.media_type == "text/html"
        assert "FACTURE".encode() in doc.content

    def test_pdf_via_service(self, create, monkeypatch):
        monkeypatch.setenv("FACTURE_PDF_URL", "http://pdf.local/convert")
        inv = create().invoice
        with patch.object(invoicing_mod, "render_pdf", return_value=b"%PDF-1.7 fake") as mock_pdf:
            doc = invoicing_mod.render_invoice_document(inv.id)
        assert doc.filename == "invoice-ON-202506-0001.pdf"
        assert doc.content == b"%PDF-1.7 fake"
        assert doc.media_type == "application/pdf"
        html = mock_pdf.call_args[0][0]
        assert b"ON-202506-0001" in html

    def test_unknown_format(self, create):
        inv = create().invoice
        with pytest.raises(ValidationError, match="format"):
            invoicing_mod.render_invoice_document(inv.id, "docx")

    def test_missing_invoice(self):
        with pytest.raises(NotFoundError):
            invoicing_mod.render_invoice_document("missing")
