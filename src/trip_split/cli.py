"""CLI for trip-split using Typer."""

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .calculator import is_balanced, round_for_display
from .config import load_settings
from .db import Database
from .exceptions import AlreadySharedError, TripSplitError
from .models import User
from .service import TripService
from .ui import parse_names, prompt_payer, prompt_split_with

app = typer.Typer(
    name="trip-split",
    help="Track shared travel expenses and share who owes whom",
)
users_app = typer.Typer(help="Manage user accounts")
trips_app = typer.Typer(help="Manage trips")
destinations_app = typer.Typer(help="Manage trip destinations")
expenses_app = typer.Typer(help="Record and list trip expenses")

app.add_typer(users_app, name="users")
app.add_typer(trips_app, name="trips")
app.add_typer(destinations_app, name="destinations")
app.add_typer(expenses_app, name="expenses")

console = Console()

DATE_FORMATS = ["%Y-%m-%d"]

AS_USER = typer.Option(..., "--as", "-u", help="Username to act as")
VERBOSE = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool = False) -> Iterator[TripService]:
    """Open the database and yield a service, reporting domain errors."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path, timeout=settings.database_timeout)
        yield TripService(settings, db)
    except AlreadySharedError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        sys.exit(1)
    except (TripSplitError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def format_money(amount: Decimal, symbol: str = "$", use_color: bool = True) -> str:
    """
    Format a balance for display, rounded to cents.

    Positive (is owed) amounts are prefixed with +, negative (owes) with -.
    """
    rounded = round_for_display(amount)
    if rounded > 0:
        text = f"+{symbol}{rounded:,.2f}"
        return f"[green]{text}[/green]" if use_color else text
    if rounded < 0:
        text = f"-{symbol}{abs(rounded):,.2f}"
        return f"[red]{text}[/red]" if use_color else text
    return f"{symbol}0.00"


def display_balances(balances: Mapping[str, Decimal], title: str, symbol: str = "$"):
    """Display a balance map as a table."""
    if not balances:
        console.print("[yellow]No expenses yet, nothing to settle.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Participant", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Status", style="dim")

    for name, amount in balances.items():
        rounded = round_for_display(amount)
        status = "is owed" if rounded > 0 else "owes" if rounded < 0 else "settled"
        table.add_row(name, format_money(amount, symbol), status)

    console.print(table)


def _user(service: TripService, username: str) -> User:
    user = service.resolve_user(username)
    assert user.id is not None
    return user


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise typer.BadParameter(f"'{value}' is not a number") from e


# ============================================================================
# Setup & users
# ============================================================================


@app.command("init-db")
def init_db(verbose: bool = VERBOSE):
    """Create the database schema and the default user accounts."""
    with open_service(verbose) as service:
        if not service.db.check_connection():
            console.print("[bold red]Cannot reach the database.[/bold red]")
            sys.exit(1)

        created = service.seed_default_users()
        console.print("[bold green]✓ Database initialized[/bold green]")
        if created:
            console.print(f"  Created users: {', '.join(created)}")
        else:
            console.print("  [dim]Default users already exist[/dim]")


@users_app.command("add")
def users_add(
    username: str = typer.Argument(..., help="Username for the new account"),
    verbose: bool = VERBOSE,
):
    """Register a user account."""
    with open_service(verbose) as service:
        user = service.register_user(username)
        console.print(f"[green]✓ Created user {user.username}[/green]")


@users_app.command("list")
def users_list(verbose: bool = VERBOSE):
    """List user accounts."""
    with open_service(verbose) as service:
        users = service.db.list_users()
        if not users:
            console.print("[yellow]No users. Run 'trip-split init-db' first.[/yellow]")
            return
        for user in users:
            console.print(f"  {user.username}")


# ============================================================================
# Trips
# ============================================================================


@trips_app.command("create")
def trips_create(
    name: str = typer.Argument(..., help="Trip name"),
    as_user: str = AS_USER,
    start: Optional[datetime] = typer.Option(None, "--start", formats=DATE_FORMATS),
    end: Optional[datetime] = typer.Option(None, "--end", formats=DATE_FORMATS),
    description: str = typer.Option("", "--description", "-d"),
    verbose: bool = VERBOSE,
):
    """Create a trip."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        trip = service.create_trip(
            user_id=user.id,
            name=name,
            start_date=start.date() if start else None,
            end_date=end.date() if end else None,
            description=description,
        )
        console.print(f"[green]✓ Created trip {trip.id}: {trip.name}[/green]")


@trips_app.command("list")
def trips_list(as_user: str = AS_USER, verbose: bool = VERBOSE):
    """List your trips, newest first."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        trips = service.db.list_trips(user.id)
        if not trips:
            console.print("[yellow]No trips yet.[/yellow]")
            return

        table = Table(title="Trips", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Dates")
        table.add_column("Description", no_wrap=False)
        for trip in trips:
            dates = f"{trip.start_date or '?'} → {trip.end_date or '?'}"
            table.add_row(str(trip.id), trip.name, dates, trip.description)
        console.print(table)


@trips_app.command("show")
def trips_show(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """Show a trip with its destinations, expenses and balances."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        trip = service.get_trip(trip_id, user.id)
        symbol = service.settings.display_currency_symbol

        console.print(f"\n[bold]{trip.name}[/bold]")
        if trip.start_date or trip.end_date:
            console.print(f"  {trip.start_date or '?'} → {trip.end_date or '?'}")
        if trip.description:
            console.print(f"  {trip.description}")

        destinations = service.list_destinations(trip_id, user.id)
        console.print("\n[bold]Destinations:[/bold]")
        if not destinations:
            console.print("  [dim]none[/dim]")
        for dest in destinations:
            where = f" ({dest.location})" if dest.location else ""
            when = f" on {dest.visit_date}" if dest.visit_date else ""
            console.print(f"  [{dest.id}] {dest.name}{where}{when}")

        expenses = service.fetch_expenses(trip_id, user.id)
        console.print(f"\n[bold]Expenses:[/bold] {len(expenses)}")
        console.print()
        display_balances(service.compute_settlement(trip_id, user.id), "Balances", symbol)


@trips_app.command("update")
def trips_update(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    name: Optional[str] = typer.Option(None, "--name"),
    start: Optional[datetime] = typer.Option(None, "--start", formats=DATE_FORMATS),
    end: Optional[datetime] = typer.Option(None, "--end", formats=DATE_FORMATS),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    verbose: bool = VERBOSE,
):
    """Change a trip's name, dates or description."""
    fields = {}
    if name is not None:
        fields["name"] = name
    if start is not None:
        fields["start_date"] = start.date()
    if end is not None:
        fields["end_date"] = end.date()
    if description is not None:
        fields["description"] = description

    with open_service(verbose) as service:
        user = _user(service, as_user)
        trip = service.update_trip(trip_id, user.id, **fields)
        console.print(f"[green]✓ Updated trip {trip.id}: {trip.name}[/green]")


@trips_app.command("delete")
def trips_delete(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = VERBOSE,
):
    """Delete a trip with its destinations, expenses and shares."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        trip = service.get_trip(trip_id, user.id)
        if not yes:
            response = input(f"Delete trip '{trip.name}' and all its data? [y/N] ")
            if response.strip().lower() not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return
        service.delete_trip(trip_id, user.id)
        console.print(f"[green]✓ Deleted trip {trip_id}[/green]")


# ============================================================================
# Destinations
# ============================================================================


@destinations_app.command("add")
def destinations_add(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    name: str = typer.Argument(..., help="Destination name"),
    as_user: str = AS_USER,
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    visit_date: Optional[datetime] = typer.Option(
        None, "--date", formats=DATE_FORMATS, help="Visit date"
    ),
    notes: str = typer.Option("", "--notes", "-n"),
    verbose: bool = VERBOSE,
):
    """Add a destination to a trip."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        dest = service.add_destination(
            trip_id,
            user.id,
            name=name,
            location=location,
            visit_date=visit_date.date() if visit_date else None,
            notes=notes,
        )
        console.print(f"[green]✓ Added destination {dest.id}: {dest.name}[/green]")


@destinations_app.command("list")
def destinations_list(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """List a trip's destinations in visit order."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        destinations = service.list_destinations(trip_id, user.id)
        if not destinations:
            console.print("[yellow]No destinations yet.[/yellow]")
            return

        table = Table(title="Destinations", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Location")
        table.add_column("Date")
        table.add_column("Notes", no_wrap=False)
        for dest in destinations:
            table.add_row(
                str(dest.id),
                dest.name,
                dest.location or "",
                str(dest.visit_date or ""),
                dest.notes,
            )
        console.print(table)


@destinations_app.command("remove")
def destinations_remove(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    destination_id: int = typer.Argument(..., help="Destination ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """Remove a destination from a trip."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        if service.remove_destination(trip_id, user.id, destination_id):
            console.print(f"[green]✓ Removed destination {destination_id}[/green]")
        else:
            console.print(f"[yellow]No destination {destination_id} on this trip.[/yellow]")


# ============================================================================
# Expenses
# ============================================================================


@expenses_app.command("add")
def expenses_add(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    amount: str = typer.Argument(..., help="Amount paid"),
    as_user: str = AS_USER,
    payer: Optional[str] = typer.Option(None, "--payer", "-p", help="Who paid"),
    split_with: Optional[str] = typer.Option(
        None,
        "--split-with",
        "-s",
        help="Comma-separated names sharing the cost (excluding the payer)",
    ),
    description: str = typer.Option("", "--description", "-d"),
    verbose: bool = VERBOSE,
):
    """
    Record an expense split equally between the payer and others.

    Prompts for the payer and participants, with completion over names
    already used in the trip, when --payer or --split-with is omitted.
    """
    value = _parse_amount(amount)

    with open_service(verbose) as service:
        user = _user(service, as_user)

        known: list[str] = []
        if payer is None or split_with is None:
            known = service.participant_names(trip_id, user.id)

        if payer is None:
            payer = prompt_payer(known)
            if payer is None:
                console.print("[yellow]Cancelled.[/yellow]")
                return

        if split_with is None:
            participants = prompt_split_with(known, payer)
            if participants is None:
                console.print("[yellow]Cancelled.[/yellow]")
                return
        else:
            participants = parse_names(split_with)

        expense = service.add_expense(
            trip_id,
            user.id,
            payer=payer,
            amount=value,
            split_with=participants,
            description=description,
        )
        console.print(f"[green]✓ Recorded expense {expense.id}[/green]")


@expenses_app.command("list")
def expenses_list(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """List the expenses you recorded for a trip."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        expenses = service.fetch_expenses(trip_id, user.id)
        if not expenses:
            console.print("[yellow]No expenses yet.[/yellow]")
            return

        symbol = service.settings.display_currency_symbol
        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Paid by")
        table.add_column("Amount", justify="right")
        table.add_column("Split with", no_wrap=False)
        for expense in expenses:
            desc = expense.description
            table.add_row(
                str(expense.id),
                desc[:30] + "..." if len(desc) > 30 else desc,
                expense.payer,
                f"{symbol}{round_for_display(expense.amount):,.2f}",
                ", ".join(expense.split_with) or "[dim]nobody[/dim]",
            )
        console.print(table)


@expenses_app.command("remove")
def expenses_remove(
    expense_id: int = typer.Argument(..., help="Expense ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """Delete an expense you recorded."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        if service.remove_expense(expense_id, user.id):
            console.print(f"[green]✓ Removed expense {expense_id}[/green]")
        else:
            console.print(f"[yellow]No expense {expense_id} recorded by you.[/yellow]")


# ============================================================================
# Settlement & sharing
# ============================================================================


@app.command()
def settlement(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    as_user: str = AS_USER,
    verbose: bool = VERBOSE,
):
    """Show who owes whom for a trip."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        trip = service.get_trip(trip_id, user.id)
        expenses = service.fetch_expenses(trip_id, user.id)
        balances = service.compute_settlement(trip_id, user.id)

        display_balances(
            balances,
            f"Settlement: {trip.name}",
            service.settings.display_currency_symbol,
        )
        if balances and not is_balanced(balances, len(expenses)):
            console.print("[yellow]⚠️  Balances do not sum to zero[/yellow]")


@app.command()
def share(
    trip_id: int = typer.Argument(..., help="Trip ID"),
    target: str = typer.Argument(..., help="Username to share with"),
    as_user: str = AS_USER,
    message: Optional[str] = typer.Option(None, "--message", "-m"),
    verbose: bool = VERBOSE,
):
    """Send a frozen copy of a trip's settlement to another user (once)."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        service.share_settlement(trip_id, user.id, target, message)
        console.print(f"[bold green]✓ Settlement shared with {target}[/bold green]")


@app.command()
def inbox(
    as_user: str = AS_USER,
    as_json: bool = typer.Option(False, "--json", help="Print the JSON wire shape"),
    verbose: bool = VERBOSE,
):
    """Show settlements other users shared with you, newest first."""
    with open_service(verbose) as service:
        user = _user(service, as_user)
        received = service.list_shared_with(user.id)

        if as_json:
            print(json.dumps([item.to_wire() for item in received], ensure_ascii=False))
            return

        if not received:
            console.print("[yellow]Nobody has shared a settlement with you yet.[/yellow]")
            return

        symbol = service.settings.display_currency_symbol
        for item in received:
            created = item.snapshot.created_at.strftime("%Y-%m-%d %H:%M")
            display_balances(
                item.snapshot.settlement_data,
                f"{item.trip_name} (from {item.from_username}, {created})",
                symbol,
            )
            if item.snapshot.message:
                console.print(f"  [italic]“{item.snapshot.message}”[/italic]")
            console.print()


if __name__ == "__main__":
    app()
