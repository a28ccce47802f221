from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from facture.models.client import Client
from facture.models.company import Company
from facture.models.invoice import Invoice, InvoiceItem
from facture.models.province import Province


@pytest.fixture(autouse=True)
def _isolated_dirs(monkeypatch, tmp_path):
    """Point config and data dirs at tmp_path and clear settings a .env could carry."""
    monkeypatch.setenv("FACTURE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("FACTURE_CONFIG_DIR", str(tmp_path / "config"))
    for var in ("FACTURE_PDF_URL", "FACTURE_DUE_DAYS", "FACTURE_LOCK_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


# --- Company fixtures ---


@pytest.fixture
def company_dict() -> dict:
    return {
        "name": "Clean Air Services Inc.",
        "address": "123 Main Street, Toronto, ON M5V 2T6",
        "province": "ON",
        "phone": "416-555-0100",
        "email": "billing@cleanair.example",
    }


@pytest.fixture
def stored_company(company_dict):
    from facture.utils import store

    return store.add_company(company_dict)


@pytest.fixture
def company() -> Company:
    return Company(
        id="co1",
        name="Clean Air Services Inc.",
        address="123 Main Street, Toronto, ON",
        province=Province.ON,
        phone="416-555-0100",
        email="billing@cleanair.example",
        website="https://cleanair.example",
    )


# --- Client fixtures ---


@pytest.fixture
def client() -> Client:
    return Client(id="cl1", name="Acme", address="1 Rue Principale, Gatineau, QC")


@pytest.fixture
def bare_client() -> Client:
    return Client(id="cl2", name="Walk-in Customer")


# --- Item / invoice fixtures ---


@pytest.fixture
def raw_item() -> dict:
    return {
        "description": "Duct cleaning",
        "quantity": 1,
        "unitPrice": 199,
        "discount": 0,
        "totalPrice": 199,
    }


@pytest.fixture
def items() -> list[InvoiceItem]:
    return [
        InvoiceItem(
            id="i1",
            description="Air duct cleaning",
            quantity=Decimal("1"),
            unit_price=Decimal("199"),
            discount=Decimal("0"),
            total_price=Decimal("199"),
        ),
        InvoiceItem(
            id="i2",
            description="Air filter replacement",
            quantity=Decimal("2"),
            unit_price=Decimal("75"),
            discount=Decimal("10"),
            total_price=Decimal("130"),
        ),
    ]


def make_invoice(items: list[InvoiceItem], province: Province = Province.ON, **overrides) -> Invoice:
    rate = {"ON": Decimal("0.13"), "QC": Decimal("0.14975")}.get(str(province), Decimal("0.15"))
    subtotal = sum((i.total_price for i in items), Decimal(0))
    fields = {
        "id": "inv1",
        "invoice_number": f"{province}-202506-0001",
        "date": date(2025, 6, 5),
        "company_id": "co1",
        "client_id": "cl1",
        "province": province,
        "subtotal": subtotal,
        "tax_rate": rate,
        "tax_amount": subtotal * rate,
        "total": subtotal + subtotal * rate,
        "items": tuple(items),
    }
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture
def invoice_on(items) -> Invoice:
    return make_invoice(items, Province.ON, notes="Thank you", due_date=date(2025, 7, 5))


@pytest.fixture
def invoice_qc(items) -> Invoice:
    return make_invoice(items, Province.QC, notes="Merci", due_date=date(2025, 7, 5))


@pytest.fixture
def invoice_factory():
    return make_invoice
