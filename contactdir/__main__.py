"""CLI entry point for the contact directory.

Usage:
    python -m contactdir list [--search TEXT] [--json]  # list contacts
    python -m contactdir show ID [--json]               # show one contact
    python -m contactdir add --first ... --phone   # create a contact
    python -m contactdir edit ID [--first ...]     # update a contact
    python -m contactdir delete ID                 # delete a contact
    python -m contactdir import FILE               # bulk import from CSV
    python -m contactdir import-template [FILE]    # write a sample CSV
    python -m contactdir check-index               # look for shared phone numbers
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import config
from .database import init_db
from .display import display_contact, display_contacts, display_import_summary
from .errors import ContactDirError, ContactValidationError, UniquenessConflict
from .models import Contact, PhoneEntry, PhoneType

console = Console()


def _service():
    from .service import DirectoryService

    init_db()
    return DirectoryService()


def _resolve_id(service, prefix: str) -> str:
    """Expand an ID prefix (as shown by ``list``) to a full contact id."""
    matches = [c.id for c in service.list_contacts() if c.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        return prefix
    raise ContactDirError(f"Ambiguous contact ID prefix: {prefix}")


def _parse_extra_phones(values: list[str] | None, *, lenient: bool) -> list[PhoneEntry]:
    """Parse ``NUMBER[:TYPE]`` arguments."""
    entries = []
    for value in values or []:
        number, _, type_name = value.rpartition(":") if ":" in value else (value, "", "mobile")
        entries.append(PhoneEntry(number.strip(), PhoneType.parse(type_name, lenient=lenient)))
    return entries


def _write_json(data) -> None:
    sys.stdout.write(json.dumps(data, indent=2) + "\n")


def _report_error(exc: Exception) -> None:
    if isinstance(exc, ContactValidationError):
        console.print("\n[red]Contact is invalid:[/red]")
        for err in exc.errors.values():
            console.print(f"  {err.field}: {err.message}")
    elif isinstance(exc, UniquenessConflict):
        console.print(
            f"\n[red]Error:[/red] This phone number is already in use by another contact "
            f"({exc.phone_key}, contact {exc.owner_id})"
        )
    else:
        console.print(f"\n[red]Error:[/red] {exc}")
    sys.exit(1)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_list(args: argparse.Namespace) -> None:
    """List contacts, optionally filtered by a search term."""
    service = _service()
    contacts = service.list_contacts(search=args.search)
    if args.json:
        _write_json([c.to_dict() for c in contacts])
        return
    display_contacts(contacts)


def cmd_show(args: argparse.Namespace) -> None:
    service = _service()
    try:
        contact = service.get_contact(_resolve_id(service, args.id))
    except ContactDirError as exc:
        _report_error(exc)
        return
    if args.json:
        _write_json(contact.to_dict())
        return
    display_contact(contact)


def cmd_add(args: argparse.Namespace) -> None:
    """Create a contact from command-line fields."""
    service = _service()
    try:
        candidate = Contact(
            first_name=args.first,
            last_name=args.last,
            email=args.email,
            primary_phone=args.phone,
            additional_phones=_parse_extra_phones(args.extra, lenient=False),
        )
        contact = service.create_contact(candidate)
    except (ContactDirError, ValueError) as exc:
        _report_error(exc)
        return

    console.print(f"\n[bold green]Contact created:[/bold green] {contact.display_name}")
    console.print(f"  ID: {contact.id}")


def cmd_edit(args: argparse.Namespace) -> None:
    """Update a contact; fields not given keep their current value."""
    service = _service()
    try:
        contact_id = _resolve_id(service, args.id)
        current = service.get_contact(contact_id)
        extra = current.additional_phones
        if args.extra is not None:
            extra = _parse_extra_phones(args.extra, lenient=True)
        candidate = Contact(
            first_name=args.first if args.first is not None else current.first_name,
            last_name=args.last if args.last is not None else current.last_name,
            email=args.email if args.email is not None else current.email,
            primary_phone=args.phone if args.phone is not None else current.primary_phone,
            additional_phones=extra,
        )
        contact = service.update_contact(contact_id, candidate)
    except ContactDirError as exc:
        _report_error(exc)
        return

    console.print(f"\n[bold green]Contact updated:[/bold green] {contact.display_name}")


def cmd_delete(args: argparse.Namespace) -> None:
    service = _service()
    try:
        contact_id = _resolve_id(service, args.id)
        service.delete_contact(contact_id)
    except ContactDirError as exc:
        _report_error(exc)
        return
    console.print(f"\n[bold green]Deleted contact:[/bold green] {contact_id}")


def cmd_import(args: argparse.Namespace) -> None:
    """Import contacts from a CSV file."""
    from .csv_import import import_csv

    service = _service()
    console.print(f"\n[bold]Importing contacts from {args.file}...[/bold]")
    try:
        summary = import_csv(
            Path(args.file), service,
            workers=args.workers, delimiter=args.delimiter,
        )
    except (FileNotFoundError, ContactDirError) as exc:
        _report_error(exc)
        return

    display_import_summary(summary)


def cmd_import_template(args: argparse.Namespace) -> None:
    """Write the sample CSV template to FILE (or stdout)."""
    from .csv_import import SAMPLE_CSV

    if not args.file:
        sys.stdout.write(SAMPLE_CSV)
        return
    path = Path(args.file)
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    console.print(f"\n[green]Template written to {path}[/green]")


def cmd_check_index(args: argparse.Namespace) -> None:
    """Verify no phone number is shared by two contacts."""
    service = _service()
    try:
        count = service.check_index()
    except ContactDirError as exc:
        _report_error(exc)
        return
    console.print(f"\n[bold green]Phone index OK:[/bold green] {count} numbers, no conflicts.")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m contactdir",
        description="Contact directory",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", type=Path, help="Path to the SQLite database file")
    sub = parser.add_subparsers(dest="command")

    # list (also the default when no subcommand given)
    ls = sub.add_parser("list", help="List contacts (default)")
    ls.add_argument("--search", help="Filter by name, email or phone")
    ls.add_argument("--json", action="store_true", help="Print contacts as JSON")

    # show
    sh = sub.add_parser("show", help="Show a contact")
    sh.add_argument("id", help="Contact ID or prefix")
    sh.add_argument("--json", action="store_true", help="Print the contact as JSON")

    # add
    ad = sub.add_parser("add", help="Create a contact")
    ad.add_argument("--first", required=True, help="First name")
    ad.add_argument("--last", required=True, help="Last name")
    ad.add_argument("--email", required=True, help="Email address")
    ad.add_argument("--phone", required=True, help="Primary phone number")
    ad.add_argument(
        "--extra", action="append", metavar="NUMBER[:TYPE]",
        help="Additional phone (type: mobile, home, work); repeatable",
    )

    # edit
    ed = sub.add_parser("edit", help="Update a contact")
    ed.add_argument("id", help="Contact ID or prefix")
    ed.add_argument("--first", help="First name")
    ed.add_argument("--last", help="Last name")
    ed.add_argument("--email", help="Email address")
    ed.add_argument("--phone", help="Primary phone number")
    ed.add_argument(
        "--extra", action="append", metavar="NUMBER[:TYPE]",
        help="Replace additional phones; repeatable",
    )

    # delete
    dl = sub.add_parser("delete", help="Delete a contact")
    dl.add_argument("id", help="Contact ID or prefix")

    # import
    im = sub.add_parser("import", help="Import contacts from a CSV file")
    im.add_argument("file", help="CSV file with First Name, Last Name, Email, Phone columns")
    im.add_argument("--workers", type=int, help=f"Row check threads (default: {config.IMPORT_WORKERS})")
    im.add_argument("--delimiter", help="Field delimiter (default: ',')")

    # import-template
    it = sub.add_parser("import-template", help="Write a sample import CSV")
    it.add_argument("file", nargs="?", help="Output path (default: stdout)")

    # check-index
    sub.add_parser("check-index", help="Check for phone numbers shared by two contacts")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging on stderr
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )

    if args.db:
        config.DB_PATH = args.db

    commands = {
        "list": cmd_list,
        "show": cmd_show,
        "add": cmd_add,
        "edit": cmd_edit,
        "delete": cmd_delete,
        "import": cmd_import,
        "import-template": cmd_import_template,
        "check-index": cmd_check_index,
    }

    # Default to "list" when no subcommand given
    command = args.command or "list"
    if command == "list" and not hasattr(args, "search"):
        args.search = None
        args.json = False
    commands[command](args)


if __name__ == "__main__":
    main()
