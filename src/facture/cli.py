from __future__ import annotations

import argparse
import logging
import os
import sys
from importlib.resources import files
from pathlib import Path

from facture.services.exceptions import FactureError


def _unique_path(path: Path) -> Path:
    """Return a non-conflicting path by appending _1, _2, etc. if needed."""
    if not path.exists():
        return path
    stem, suffix, parent = path.stem, path.suffix, path.parent
    counter = 1
    candidate = parent / f"{stem}_{counter}{suffix}"
    while candidate.exists():
        counter += 1
        candidate = parent / f"{stem}_{counter}{suffix}"
    return candidate


def _load_request(path: str) -> dict:
    import yaml

    from facture.config import load_yaml

    try:
        data = load_yaml(Path(path))
    except OSError as e:
        raise FactureError(f"Cannot read {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise FactureError(f"{path}: invalid YAML ({e})") from e
    if not isinstance(data, dict):
        raise FactureError(f"{path}: expected a YAML mapping")
    return data


def _init_config() -> None:
    """Copy bundled example files to the user's config dir and create the data dir."""
    from facture.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("facture") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for rel in ["company.yaml.example", "invoice.yaml.example"]:
        dest = config_dir / rel
        if dest.exists():
            print(f"  already exists: {dest}")
            continue
        dest.write_bytes((templates / rel).read_bytes())
        print(f"  created: {dest}")
        copied += 1

    print()
    print(f"Config: {config_dir}")
    print(f"Data:   {data_dir}")
    print()
    if copied:
        print("Next steps:")
        print(f"  1. Edit {config_dir / 'company.yaml.example'} and run: facture company add <file>")
        print("  2. Optionally run: facture seed-services")
        print("  3. Set FACTURE_PDF_URL to an HTML-to-PDF service for PDF output")
    else:
        print("No new files created (all already existed).")


def _cmd_init(args: argparse.Namespace) -> None:
    _init_config()


def _cmd_seed_services(args: argparse.Namespace) -> None:
    from facture.config import load_service_catalogue
    from facture.utils import store

    catalogue = load_service_catalogue(Path(args.file) if args.file else None)
    added = store.seed_services(catalogue)
    print(f"{added} service(s) added, {len(catalogue) - added} already present.")


def _cmd_company(args: argparse.Namespace) -> None:
    from facture.utils import store

    if args.action == "add":
        company = store.add_company(_load_request(args.file))
        print(f"Company created: {company.id}  {company.name} ({company.province})")
    elif args.action == "list":
        companies = store.list_companies()
        if not companies:
            print("No companies.")
        for c in companies:
            print(f"{c.id}  {c.province}  {c.name}")
    elif args.action == "delete":
        if not store.delete_company(args.id):
            raise FactureError(f"Company not found: {args.id}")
        print(f"Company deleted: {args.id}")


def _cmd_services(args: argparse.Namespace) -> None:
    from facture.utils import store
    from facture.utils.formatters import format_money

    if args.action == "add":
        service = store.add_service(
            {
                "name_en": args.name_en,
                "name_fr": args.name_fr,
                "default_price": args.price,
                "category": args.category,
            }
        )
        print(f"Service created: {service.id}  {service.description('both')}")
    elif args.action == "price":
        service = store.update_service(args.id, {"default_price": args.price})
        if service is None:
            raise FactureError(f"Service not found: {args.id}")
        print(f"Service {service.id} now costs {format_money(service.default_price)}")
    elif args.action == "delete":
        if not store.delete_service(args.id):
            raise FactureError(f"Service not found: {args.id}")
        print(f"Service deleted: {args.id}")
    else:
        services = store.list_services()
        if not services:
            print("No services.")
        for s in services:
            name = s.description("both")
            print(f"{s.id}  {s.category:<10}  {format_money(s.default_price):>9}  {name}")


def _cmd_clients(args: argparse.Namespace) -> None:
    from facture.utils import store

    for c in store.list_clients():
        print(f"{c.id}  {c.name}")


def _cmd_next(args: argparse.Namespace) -> None:
    from facture.services.invoicing import preview_invoice_number

    print(preview_invoice_number(args.province))


def _cmd_create(args: argparse.Namespace) -> None:
    from facture.services.invoicing import create_invoice
    from facture.utils.formatters import format_money

    req = _load_request(args.file)
    result = create_invoice(
        company_id=req.get("company_id"),
        client_info=req.get("client"),
        province=req.get("province"),
        items=req.get("items"),
        notes=req.get("notes"),
        due_date=req.get("due_date"),
    )
    inv = result.invoice
    print(f"Invoice {inv.invoice_number} created ({inv.id})")
    print(f"  Client:   {result.client.name}")
    print(f"  Subtotal: {format_money(inv.subtotal)}")
    print(f"  Tax:      {format_money(inv.tax_amount)}")
    print(f"  Total:    {format_money(inv.total)}")


def _cmd_list(args: argparse.Namespace) -> None:
    from facture.services.invoicing import list_invoices
    from facture.utils.formatters import format_money

    invoices = list_invoices(args.company)
    if not invoices:
        print("No invoices.")
    for inv in invoices:
        print(f"{inv.invoice_number}  {inv.date.isoformat()}  {format_money(inv.total):>12}  {inv.id}")


def _cmd_show(args: argparse.Namespace) -> None:
    from facture.services.invoicing import get_invoice
    from facture.utils.formatters import format_money, format_quantity, format_rate

    result = get_invoice(args.invoice)
    inv = result.invoice
    print(f"Invoice {inv.invoice_number}  ({inv.province})")
    print(f"  Date:     {inv.date.isoformat()}")
    if inv.due_date:
        print(f"  Due:      {inv.due_date.isoformat()}")
    print(f"  Company:  {result.company.name}")
    print(f"  Client:   {result.client.name}")
    for item in inv.items:
        print(
            f"    {format_quantity(item.quantity):>5} x {item.description}"
            f"  @ {format_money(item.unit_price)} - {format_money(item.discount)}"
            f"  = {format_money(item.total_price)}"
        )
    print(f"  Subtotal: {format_money(inv.subtotal)}")
    print(f"  Tax:      {format_money(inv.tax_amount)} ({format_rate(inv.tax_rate)})")
    print(f"  Total:    {format_money(inv.total)}")


def _cmd_pdf(args: argparse.Namespace) -> None:
    from facture.services.invoicing import render_invoice_document

    doc = render_invoice_document(args.invoice, args.format)
    target = Path(args.output) if args.output else Path(doc.filename)
    final_path = _unique_path(target)
    final_path.write_bytes(doc.content)
    print(f"Saved {doc.media_type} to {final_path}")


def _cmd_delete(args: argparse.Namespace) -> None:
    from facture.services.invoicing import delete_invoice

    invoice = delete_invoice(args.invoice)
    print(f"Invoice {invoice.invoice_number} deleted (its number will not be reused).")


def _cmd_check(args: argparse.Namespace) -> None:
    from facture.utils import store

    health = store.check_store_health()
    for table, count in health.counts.items():
        print(f"{table:<10} {count:>6}")
    for table in health.corrupt_tables:
        print(f"CORRUPT: {table}")
    for backup in health.corrupt_backups:
        print(f"backup:  {backup}")
    if not health.ok:
        raise FactureError("Store has corrupt tables")
    print("Store OK")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="facture", description="Provincial invoicing for Canada")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create config/data dirs and example files").set_defaults(
        func=_cmd_init
    )

    p = sub.add_parser("seed-services", help="add the default service catalogue")
    p.add_argument("file", nargs="?", help="YAML catalogue (default: bundled list)")
    p.set_defaults(func=_cmd_seed_services)

    p = sub.add_parser("company", help="manage companies")
    company_sub = p.add_subparsers(dest="action", required=True)
    company_sub.add_parser("add").add_argument("file")
    company_sub.add_parser("list")
    company_sub.add_parser("delete").add_argument("id")
    p.set_defaults(func=_cmd_company)

    p = sub.add_parser("services", help="list or manage services")
    service_sub = p.add_subparsers(dest="action")
    sp = service_sub.add_parser("add")
    sp.add_argument("name_en")
    sp.add_argument("price")
    sp.add_argument("--fr", dest="name_fr", help="French name")
    sp.add_argument("--category", choices=["CORE", "ADDITIONAL"], default="CORE", type=str.upper)
    sp = service_sub.add_parser("price", help="change the default price")
    sp.add_argument("id")
    sp.add_argument("price")
    service_sub.add_parser("delete").add_argument("id")
    p.set_defaults(func=_cmd_services)
    sub.add_parser("clients", help="list clients").set_defaults(func=_cmd_clients)

    p = sub.add_parser("next", help="preview the next invoice number for a province")
    p.add_argument("province")
    p.set_defaults(func=_cmd_next)

    p = sub.add_parser("create", help="create an invoice from a YAML file")
    p.add_argument("file")
    p.set_defaults(func=_cmd_create)

    p = sub.add_parser("list", help="list invoices, newest first")
    p.add_argument("--company", help="only invoices of this company id")
    p.set_defaults(func=_cmd_list)

    p = sub.add_parser("show", help="print one invoice")
    p.add_argument("invoice", help="invoice id or number")
    p.set_defaults(func=_cmd_show)

    p = sub.add_parser("pdf", help="render an invoice document")
    p.add_argument("invoice", help="invoice id or number")
    p.add_argument("-o", "--output", help="output path (default: invoice-<number>.<ext>)")
    p.add_argument("--format", choices=["pdf", "html"], help="default: pdf if FACTURE_PDF_URL is set")
    p.set_defaults(func=_cmd_pdf)

    p = sub.add_parser("delete", help="delete an invoice")
    p.add_argument("invoice", help="invoice id or number")
    p.set_defaults(func=_cmd_delete)

    sub.add_parser("check", help="report table sizes and corrupt files").set_defaults(func=_cmd_check)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the facture CLI."""
    logging.basicConfig(
        level=os.environ.get("FACTURE_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except FactureError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
