"""Rich terminal output for contacts and import results."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import Contact, ImportSummary, SkipReason
from .phone_utils import format_phone

console = Console()

_REASON_COLORS = {
    SkipReason.DUPLICATE_IN_DIRECTORY: "yellow",
    SkipReason.DUPLICATE_IN_BATCH: "yellow",
    SkipReason.VALIDATION_ERROR: "red",
    SkipReason.PERSISTENCE_ERROR: "red",
}


def _format_phones(contact: Contact) -> str:
    """Primary phone first, then each extra number with its type."""
    lines = [f"{format_phone(contact.primary_phone)} (Primary)"]
    for p in contact.additional_phones:
        lines.append(f"{format_phone(p.number)} ({p.type.value.capitalize()})")
    return "\n".join(lines)


def display_contacts(contacts: list[Contact]) -> None:
    if not contacts:
        console.print("\n[yellow]No contacts found.[/yellow]")
        return

    table = Table(title="Contacts", show_lines=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Email")
    table.add_column("Phone Numbers")

    for c in contacts:
        table.add_row(c.id[:8], c.display_name, c.email, _format_phones(c))

    console.print()
    console.print(table)
    console.print()


def display_contact(contact: Contact) -> None:
    body = (
        f"[bold]First Name:[/bold] {contact.first_name}\n"
        f"[bold]Last Name:[/bold] {contact.last_name}\n"
        f"[bold]Email:[/bold] {contact.email}\n"
        f"[bold]Phone Numbers:[/bold]\n{_format_phones(contact)}"
    )
    console.print()
    console.print(Panel(body, title=contact.display_name, subtitle=contact.id))


def display_import_summary(summary: ImportSummary) -> None:
    """Render the per-row outcome table for skipped rows plus totals."""
    skipped = [o for o in summary.outcomes if not o.accepted]
    if skipped:
        table = Table(title="Skipped Rows")
        table.add_column("Row", justify="right")
        table.add_column("Reason", no_wrap=True)
        table.add_column("Detail")
        for o in skipped:
            color = _REASON_COLORS[o.reason]
            table.add_row(str(o.row_number), f"[{color}]{o.reason.value}[/{color}]", o.message)
        console.print()
        console.print(table)

    style = "yellow" if summary.cancelled else "bold green"
    console.print(f"\n[{style}]Import complete:[/{style}] {summary.describe()}\n")
