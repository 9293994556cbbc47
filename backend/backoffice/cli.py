# Overview: Flask CLI command group for schema bootstrap and ledger consistency checks.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask ledger init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask ledger reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Consistency checks:
# - python -m flask ledger check-balances [--owner-id OWNER]
#   Compare cached customer balances with balances recomputed from debts,
#   payments and open-account sales. Exits 1 when any disagree.
# - python -m flask ledger check-stock [--owner-id OWNER]
#   Compare product quantities with the balance of their latest ledger record.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import reconciliation_service, stock_ledger_service


@click.group('ledger')
def ledger_group():
    """Ledger bootstrap and consistency commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@ledger_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset complete")


@ledger_group.command('check-balances')
@click.option('--owner-id', default=None, help='Only check customers of this owner')
@with_appcontext
def check_balances(owner_id):
    """Report customers whose cached balance has drifted from their history."""
    mismatches = reconciliation_service.verify_customer_balances(owner_id)

    if not mismatches:
        click.echo("PASS All customer balances match their event history")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'Owner':<20} {'Customer':<10} {'Cached':>14} {'Recomputed':>14} {'Diff':>14}")
    click.echo("=" * 80)
    for row in mismatches:
        click.echo(
            f"{row['owner_id']:<20} {row['customer_id']:<10} "
            f"{row['cached_balance']:>14} {row['recomputed_balance']:>14} {row['difference']:>14}"
        )
    click.echo("=" * 80 + "\n")

    current_app.logger.warning("%s customer balance(s) out of sync", len(mismatches))
    click.echo(f"FAIL {len(mismatches)} customer balance(s) out of sync")
    raise SystemExit(1)


@ledger_group.command('check-stock')
@click.option('--owner-id', default=None, help='Only check products of this owner')
@with_appcontext
def check_stock(owner_id):
    """Report products whose quantity disagrees with their latest ledger record."""
    query = db.session.query(Product)
    if owner_id is not None:
        query = query.filter(Product.owner_id == owner_id)

    drifted = 0
    for product in query.order_by(Product.id):
        level = stock_ledger_service.get_stock_level(product.owner_id, product.id)
        if not level["in_sync"]:
            drifted += 1
            click.echo(
                f"FAIL Product {product.id} ({product.name}): quantity={level['quantity']} "
                f"ledger_balance={level['ledger_balance']}"
            )

    if drifted:
        raise SystemExit(1)
    click.echo("PASS All product quantities match the stock ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
