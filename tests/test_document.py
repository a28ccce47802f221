from __future__ import annotations

from decimal import Decimal

from facture.models.province import Province
from facture.services.document import LABELS, label_text, render, to_html


def _labels(doc) -> list[str]:
    return [el.text for el in doc.iter() if "label" in (el.get("class") or "").split()]


def _section_titles(doc) -> list[str]:
    return [el.text for el in doc.iter() if "section-title" in (el.get("class") or "").split()]


def _text(doc) -> str:
    return "".join(doc.itertext())


class TestLanguagePolicy:
    def test_quebec_labels_are_bilingual(self, invoice_qc, company, client):
        doc = render(invoice_qc, company, client, invoice_qc.items)
        labels = _labels(doc)
        for expected in (
            "Invoice # / Facture #:",
            "Due Date / Date d'échéance:",
            "Quantity / Qté",
            "Unit Price / Prix unitaire",
            "Discount / Rabais",
            "Subtotal / Sous-total:",
            "GST+QST / TPS+TVQ (14.975%):",
        ):
            assert expected in labels

    def test_identical_translations_shown_once(self, invoice_qc, company, client):
        doc = render(invoice_qc, company, client, invoice_qc.items)
        labels = _labels(doc)
        assert {"Date:", "Description", "Total", "TOTAL:"} <= set(labels)
        text = _text(doc)
        for word in ("Date", "Description", "Total", "TOTAL", "Notes"):
            assert f"{word} / {word}" not in text

    def test_quebec_section_headers_have_french(self, invoice_qc, company, client):
        doc = render(invoice_qc, company, client, invoice_qc.items)
        titles = _section_titles(doc)
        assert "INVOICE / FACTURE" in titles
        assert "BILL TO / FACTURER À" in titles
        assert "Notes:" in titles

    def test_ontario_is_english_only(self, invoice_on, company, client):
        doc = render(invoice_on, company, client, invoice_on.items)
        text = _text(doc)
        for _, fr in LABELS.values():
            if fr not in {"Date", "Description", "Total", "TOTAL", "Notes"}:
                assert fr not in text
        assert all(" / " not in label for label in _labels(doc))
        assert "INVOICE" in _section_titles(doc)

    def test_document_language(self, invoice_on, invoice_qc, company, client):
        assert render(invoice_on, company, client, invoice_on.items).get("lang") == "en"
        assert render(invoice_qc, company, client, invoice_qc.items).get("lang") == "fr-CA"

    def test_label_text(self):
        assert label_text("bill_to", False) == "BILL TO"
        assert label_text("quantity", True) == "Quantity / Qté"
        assert label_text("date", True) == "Date"


class TestContent:
    def test_money_has_two_decimals_and_prefix(self, invoice_qc, company, client):
        doc = render(invoice_qc, company, client, invoice_qc.items)
        amounts = {el.getparent().get("class").split()[-1]: el.text for el in doc.iter("span") if el.get("class") == "amount"}
        assert amounts == {"subtotal": "$329.00", "tax": "$49.27", "grand-total": "$378.27"}

    def test_tax_line_shows_names_and_captured_rate(self, invoice_qc, company, client):
        text = _text(render(invoice_qc, company, client, invoice_qc.items))
        assert "GST+QST / TPS+TVQ (14.975%)" in text

    def test_ontario_tax_line(self, invoice_on, company, client):
        text = _text(render(invoice_on, company, client, invoice_on.items))
        assert "HST (13.00%)" in text

    def test_items_in_given_order(self, invoice_on, company, client, items):
        reordered = [items[1], items[0]]
        doc = render(invoice_on, company, client, reordered)
        descriptions = [td.text for td in doc.iter("td") if td.get("class") == "description"]
        assert descriptions == ["Air filter replacement", "Air duct cleaning"]

    def test_item_row_values(self, invoice_on, company, client):
        doc = render(invoice_on, company, client, invoice_on.items)
        rows = [[td.text for td in tr] for tr in doc.iter("tr") if tr.get("class") == "item"]
        assert rows[1] == ["Air filter replacement", "2", "$75.00", "$10.00", "$130.00"]

    def test_dates(self, invoice_on, invoice_qc, company, client):
        on_text = _text(render(invoice_on, company, client, invoice_on.items))
        assert "June 5, 2025" in on_text
        assert "July 5, 2025" in on_text
        qc_text = _text(render(invoice_qc, company, client, invoice_qc.items))
        assert "June 5, 2025 / 5 juin 2025" in qc_text

    def test_company_and_client(self, invoice_on, company, client):
        text = _text(render(invoice_on, company, client, invoice_on.items))
        assert company.name in text
        assert company.website in text
        assert client.address in text
        assert "ON-202506-0001" in text


class TestOptionalFields:
    def test_missing_optionals_are_omitted(self, invoice_factory, items, company, bare_client):
        bare_company = company.__class__(
            id="co2", name="Solo", address="1 Road", province=Province.NB
        )
        invoice = invoice_factory(items, Province.NB)
        doc = render(invoice, bare_company, bare_client, items)
        classes = {el.get("class") for el in doc.iter()}
        for cls in ("company-phone", "company-email", "company-website", "logo",
                    "client-address", "client-phone", "client-email", "notes", "value due_date"):
            assert cls not in classes
        assert "Due Date" not in _text(doc)
        assert "Notes" not in _text(doc)

    def test_logo_rendered_when_present(self, invoice_on, company, client):
        with_logo = company.__class__(**{**company.to_dict(), "province": Province.ON, "logo": "https://x/logo.png"})
        doc = render(invoice_on, with_logo, client, invoice_on.items)
        imgs = list(doc.iter("img"))
        assert imgs[0].get("src") == "https://x/logo.png"


class TestSerialization:
    def test_to_html(self, invoice_qc, company, client):
        html = to_html(render(invoice_qc, company, client, invoice_qc.items))
        assert html.startswith(b"<!DOCTYPE html>")
        assert "FACTURER À".encode() in html

    def test_negative_total_rendered_as_credit(self, invoice_factory, company, client, items):
        invoice = invoice_factory(items, subtotal=Decimal("-5"), tax_amount=Decimal("-0.65"), total=Decimal("-5.65"))
        text = _text(render(invoice, company, client, items))
        assert "-$5.65" in text
