"""File-backed data store: one JSON table per entity under the data dir.

Every read-modify-write holds an exclusive file lock on its table and
writes through a temp file + ``os.replace``, so a write is either fully
visible or not at all.  Invoices embed their items, which makes
"invoice + items" a single atomic write.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from facture import config as _config
from facture.models.client import Client
from facture.models.company import Company
from facture.models.invoice import Invoice
from facture.models.service import Service, ServiceCategory
from facture.services.exceptions import MissingRequiredField, PersistenceFailure, ValidationError
from facture.taxes import parse_province
from facture.utils.validators import parse_decimal, validate_email

logger = logging.getLogger(__name__)

TABLES = ("companies", "clients", "services", "invoices", "counters")


def _table_path(table: str) -> Path:
    return _config.get_data_dir() / f"{table}.json"


def _new_id() -> str:
    return uuid.uuid4().hex


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked(table: str) -> Iterator[None]:
    """Hold an exclusive lock on *table*; storage errors surface as PersistenceFailure."""
    path = _table_path(table)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(path.with_suffix(".lock"), timeout=_config.get_lock_timeout()):
            yield
    except Timeout as e:
        raise PersistenceFailure(f"Timed out waiting for the {table} table lock") from e
    except OSError as e:
        raise PersistenceFailure(f"Storage error on {table}: {e}") from e


def _load(table: str, default: Any) -> Any:
    path = _table_path(table)
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as e:
        if table == "counters":
            # Never reset counters: that would reissue invoice numbers.
            raise PersistenceFailure(f"Counter table is corrupt: {path}") from e
        _backup_corrupt(path)
        return default


def _save(table: str, data: Any) -> None:
    path = _table_path(table)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp, path)


def _rows(table: str) -> list[dict[str, Any]]:
    with _locked(table):
        return _load(table, [])


def _find_row(rows: list[dict[str, Any]], row_id: str) -> dict[str, Any] | None:
    return next((r for r in rows if r.get("id") == row_id), None)


def _insert(table: str, row: dict[str, Any]) -> dict[str, Any]:
    with _locked(table):
        rows = _load(table, [])
        rows.append(row)
        _save(table, rows)
    return row


def _update(table: str, row_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
    with _locked(table):
        rows = _load(table, [])
        target = _find_row(rows, row_id)
        if target is None:
            return None
        target.update({k: v for k, v in changes.items() if k != "id"})
        _save(table, rows)
    return target


def _delete(table: str, row_id: str) -> bool:
    with _locked(table):
        rows = _load(table, [])
        filtered = [r for r in rows if r.get("id") != row_id]
        if len(filtered) == len(rows):
            return False
        _save(table, filtered)
        return True


# --- Invoice counters ---


def increment_counter(province: str, period: str) -> int:
    """Atomically create-or-increment the (province, period) counter and return the new value."""
    with _locked("counters"):
        data: dict[str, dict[str, int]] = _load("counters", {})
        by_period = data.setdefault(province, {})
        by_period[period] = by_period.get(period, 0) + 1
        _save("counters", data)
        return by_period[period]


def get_counter(province: str, period: str) -> int:
    """Return the last issued counter for (province, period), 0 if none was issued."""
    with _locked("counters"):
        data = _load("counters", {})
    return int(data.get(province, {}).get(period, 0))


def set_counter(province: str, period: str, value: int) -> None:
    """Move a counter forward. Moving it backwards would reissue numbers and is refused."""
    with _locked("counters"):
        data = _load("counters", {})
        by_period = data.setdefault(province, {})
        current = by_period.get(period, 0)
        if value < current:
            raise ValidationError(
                f"Counter {province}/{period} is at {current}; refusing to lower it to {value}"
            )
        by_period[period] = value
        _save("counters", data)


# --- Companies ---


def add_company(data: dict[str, Any]) -> Company:
    for key in ("name", "address", "province"):
        if not data.get(key):
            raise MissingRequiredField(key)
    province = parse_province(data["province"])
    email = data.get("email")
    if email:
        try:
            email = validate_email(str(email))
        except ValueError as e:
            raise ValidationError(f"email: {e}") from None
    company = Company.from_dict(
        {**data, "province": province, "email": email, "id": data.get("id") or _new_id()}
    )
    _insert("companies", company.to_dict())
    return company


def get_company(company_id: str) -> Company | None:
    row = _find_row(_rows("companies"), company_id)
    return Company.from_dict(row) if row else None


def list_companies() -> list[Company]:
    return [Company.from_dict(r) for r in _rows("companies")]


def update_company(company_id: str, changes: dict[str, Any]) -> Company | None:
    row = _update("companies", company_id, changes)
    return Company.from_dict(row) if row else None


def delete_company(company_id: str) -> bool:
    """Delete a company. Refused while invoices still reference it."""
    if any(r.get("company_id") == company_id for r in _rows("invoices")):
        raise ValidationError("Company has invoices and cannot be deleted")
    return _delete("companies", company_id)


# --- Clients ---


def get_or_create_client(info: dict[str, Any]) -> tuple[Client, bool]:
    """Return the client whose name equals ``info["name"]``, creating it if absent.

    Lookup and insert happen under one table lock, so two callers racing on a
    new name get the same row.  Returns ``(client, created)``.
    """
    name = str(info.get("name") or "").strip()
    with _locked("clients"):
        rows = _load("clients", [])
        existing = next((r for r in rows if r.get("name") == name), None)
        if existing:
            return Client.from_dict(existing), False
        client = Client.from_dict({**info, "name": name, "id": _new_id()})
        rows.append(client.to_dict())
        _save("clients", rows)
    logger.info("Created client %s (%s)", client.name, client.id)
    return client, True


def find_client_by_name(name: str) -> Client | None:
    name = name.strip()
    row = next((r for r in _rows("clients") if r.get("name") == name), None)
    return Client.from_dict(row) if row else None


def get_client(client_id: str) -> Client | None:
    row = _find_row(_rows("clients"), client_id)
    return Client.from_dict(row) if row else None


def list_clients() -> list[Client]:
    return sorted((Client.from_dict(r) for r in _rows("clients")), key=lambda c: c.name.lower())


def update_client(client_id: str, changes: dict[str, Any]) -> Client | None:
    row = _update("clients", client_id, changes)
    return Client.from_dict(row) if row else None


def delete_client(client_id: str) -> bool:
    if any(r.get("client_id") == client_id for r in _rows("invoices")):
        raise ValidationError("Client has invoices and cannot be deleted")
    return _delete("clients", client_id)


# --- Services ---


def _price(value: Any) -> str:
    try:
        price = parse_decimal(value, "default_price")
    except ValueError as e:
        raise ValidationError(str(e)) from None
    if price < 0:
        raise ValidationError(f"default_price must not be negative: '{value}'")
    return str(price)


def add_service(data: dict[str, Any]) -> Service:
    if not str(data.get("name_en") or "").strip():
        raise MissingRequiredField("name_en")
    row = {**data, "default_price": _price(data.get("default_price")), "id": data.get("id") or _new_id()}
    try:
        service = Service.from_dict(row)
    except ValueError as e:
        raise ValidationError(f"Invalid service: {e}") from None
    _insert("services", service.to_dict())
    return service


def get_service(service_id: str) -> Service | None:
    row = _find_row(_rows("services"), service_id)
    return Service.from_dict(row) if row else None


def list_services() -> list[Service]:
    """Services ordered CORE first, then ADDITIONAL, keeping insertion order within each."""
    order = {c: i for i, c in enumerate(ServiceCategory)}
    services = [Service.from_dict(r) for r in _rows("services")]
    return sorted(services, key=lambda s: order[s.category])


def update_service(service_id: str, changes: dict[str, Any]) -> Service | None:
    if "default_price" in changes:
        changes = {**changes, "default_price": _price(changes["default_price"])}
    row = _update("services", service_id, changes)
    return Service.from_dict(row) if row else None


def delete_service(service_id: str) -> bool:
    return _delete("services", service_id)


def seed_services(catalogue: list[dict[str, Any]]) -> int:
    """Insert catalogue entries whose ``name_en`` is not present yet. Returns how many were added."""
    added = 0
    with _locked("services"):
        rows = _load("services", [])
        known = {r.get("name_en") for r in rows}
        for entry in catalogue:
            if entry["name_en"] in known:
                continue
            service = Service.from_dict({**entry, "id": _new_id()})
            rows.append(service.to_dict())
            known.add(service.name_en)
            added += 1
        if added:
            _save("services", rows)
    return added


# --- Invoices ---


def insert_invoice(invoice: Invoice) -> Invoice:
    """Persist an invoice together with its items in one write."""
    with _locked("invoices"):
        rows = _load("invoices", [])
        if any(r.get("invoice_number") == invoice.invoice_number for r in rows):
            raise PersistenceFailure(f"Invoice number already stored: {invoice.invoice_number}")
        rows.append(invoice.to_dict())
        _save("invoices", rows)
    return invoice


def get_invoice(invoice_id: str) -> Invoice | None:
    row = _find_row(_rows("invoices"), invoice_id)
    return Invoice.from_dict(row) if row else None


def find_invoice(key: str) -> Invoice | None:
    """Look up an invoice by id or by invoice number."""
    key = key.strip()
    for row in _rows("invoices"):
        if row.get("id") == key or row.get("invoice_number") == key:
            return Invoice.from_dict(row)
    return None


def list_invoices(company_id: str | None = None) -> list[Invoice]:
    """All invoices, newest first, optionally limited to one company."""
    rows = _rows("invoices")
    if company_id:
        rows = [r for r in rows if r.get("company_id") == company_id]
    rows = sorted(rows, key=lambda r: r.get("created_at") or "", reverse=True)
    return [Invoice.from_dict(r) for r in rows]


def delete_invoice(invoice_id: str) -> bool:
    """Remove an invoice and its items. Counters are left untouched."""
    return _delete("invoices", invoice_id)


# --- Health check (read-only, no locks) ---


@dataclass
class StoreHealth:
    ok: bool
    counts: dict[str, int] = field(default_factory=dict)
    corrupt_tables: list[str] = field(default_factory=list)
    corrupt_backups: list[str] = field(default_factory=list)


def check_store_health() -> StoreHealth:
    """Probe every table file for corruption (read-only)."""
    counts: dict[str, int] = {}
    corrupt: list[str] = []
    backups: list[str] = []
    for table in TABLES:
        path = _table_path(table)
        if path.exists():
            try:
                counts[table] = len(json.loads(path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, ValueError):
                corrupt.append(table)
        else:
            counts[table] = 0
        if path.parent.exists():
            backups.extend(str(p) for p in path.parent.glob(f"{path.name}.corrupt.*"))
    return StoreHealth(ok=not corrupt, counts=counts, corrupt_tables=corrupt, corrupt_backups=sorted(backups))
