#!/usr/bin/env python3
"""
Management script for papertrade.

Usage (direct DB access):
    python manage.py db init
    python manage.py db seed [-f data/seed.yaml]
    python manage.py db clear
    python manage.py db status
    python manage.py accounts create NAME EMAIL [--cash 100000]
    python manage.py accounts show
"""

import asyncio
from decimal import Decimal, InvalidOperation
from pathlib import Path

import click
from sqlalchemy import func, select

from papertrade.database import AsyncSessionLocal, engine, Base
from papertrade.errors import TradingError
from papertrade.models import Account, Holding, Transaction, WatchlistEntry
from papertrade.seed import read_seed_file, seed_account
from papertrade.services import accounts as accounts_service


# ============================================================================
# Direct database operations (internal)
# ============================================================================


async def _init_db():
    """Initialize the database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _clear_db():
    """Drop and recreate all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _count_records():
    """Count records in each table."""
    async with AsyncSessionLocal() as session:
        counts = {}
        for model, name in [
            (Account, "accounts"),
            (Holding, "holdings"),
            (Transaction, "transactions"),
            (WatchlistEntry, "watchlist"),
        ]:
            result = await session.execute(select(func.count()).select_from(model))
            counts[name] = result.scalar_one()
        return counts


async def _seed(filepath: Path):
    """Create the demo accounts listed in a seed file."""
    data = read_seed_file(filepath)
    created = []
    skipped = []

    async with AsyncSessionLocal() as session:
        for account_data in data.get("accounts", []):
            result = await seed_account(session, account_data)
            if result is None:
                skipped.append(account_data["email"])
            else:
                created.append(result)

    return created, skipped


def _parse_cash(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"{value!r} is not a number", param_hint="--cash")


# ============================================================================
# CLI: Main group
# ============================================================================


@click.group()
def cli():
    """papertrade management commands."""
    pass


# ============================================================================
# CLI: db (direct database access)
# ============================================================================


@cli.group()
def db():
    """Direct database management."""
    pass


@db.command("init")
def db_init():
    """Create missing tables."""
    asyncio.run(_init_db())
    click.echo("Database initialized.")


@db.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear all data?")
def db_clear():
    """Clear all data from the database (destructive!)."""
    click.echo("Clearing database...")
    asyncio.run(_clear_db())
    click.echo("Database cleared and tables recreated.")


@db.command("status")
def db_status():
    """Show database status and record counts."""

    async def run():
        await _init_db()
        return await _count_records()

    counts = asyncio.run(run())

    click.echo("\nDatabase Status:")
    click.echo("-" * 30)
    for table, count in counts.items():
        click.echo(f"  {table:<15} {count:>10,}")
    click.echo("-" * 30)
    click.echo(f"  {'Total':<15} {sum(counts.values()):>10,}")


@db.command("seed")
@click.option(
    "--file", "-f",
    default="data/seed.yaml",
    type=click.Path(exists=True),
    help="YAML file with demo accounts",
)
def db_seed(file):
    """Load demo accounts with holdings, history and a watchlist."""
    click.echo(f"Seeding from {file}...")

    async def run():
        await _init_db()
        return await _seed(Path(file))

    created, skipped = asyncio.run(run())

    for account, api_key in created:
        click.echo(f"  Created {account.email}  API key: {api_key}")
    for email in skipped:
        click.echo(f"  Skipped {email} (already exists)")
    click.echo(f"\nDone: {len(created)} created, {len(skipped)} skipped")


# ============================================================================
# CLI: accounts
# ============================================================================


@cli.group()
def accounts():
    """Manage accounts."""
    pass


@accounts.command("create")
@click.argument("name")
@click.argument("email")
@click.option("--cash", default=None, help="Starting cash (default: INITIAL_BALANCE)")
def accounts_create(name, email, cash):
    """Create an account and print its API key (shown once)."""
    starting_cash = _parse_cash(cash)

    async def run():
        await _init_db()
        async with AsyncSessionLocal() as session:
            return await accounts_service.create_account(
                session, name=name, email=email, cash_balance=starting_cash
            )

    try:
        account, api_key = asyncio.run(run())
    except TradingError as e:
        raise click.ClickException(e.message)

    click.echo(f"Created account {account.id} ({account.email})")
    click.echo(f"Cash balance: ${account.cash_balance:,.2f}")
    click.echo(f"API key: {api_key}")
    click.echo("Store the key now; it cannot be shown again.")


@accounts.command("show")
def accounts_show():
    """List all accounts."""

    async def run():
        await _init_db()
        async with AsyncSessionLocal() as session:
            return await accounts_service.list_accounts(session)

    accounts_list = asyncio.run(run())

    if not accounts_list:
        click.echo("No accounts found.")
        return

    click.echo(f"\n{'Email':<32} {'Name':<24} {'Cash':>16}")
    click.echo("-" * 74)
    for a in accounts_list:
        click.echo(f"{a.email:<32} {a.name:<24} {a.cash_balance:>16,.2f}")
    click.echo(f"\nTotal: {len(accounts_list)} accounts")


if __name__ == "__main__":
    cli()
