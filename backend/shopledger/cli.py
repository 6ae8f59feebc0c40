# Overview: Flask CLI command groups for bootstrap and cashbox inspection.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="shopledger"; bash: export FLASK_APP=shopledger).
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cashboxes:
# - python -m flask cashboxes seed
#   Create the default cashboxes (A, B, C) if missing. Idempotent.
# - python -m flask cashboxes balances
#   Print every cashbox with its derived balance.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Cashbox
from .services.ledger_service import list_cashboxes_with_balances


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left alone)."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask cashboxes seed' next.")


@click.group('cashboxes')
def cashboxes_group():
    """Cashbox bootstrap and inspection commands."""


def seed_default_cashboxes() -> int:
    """Create configured default cashboxes that are missing. Returns the number created."""
    created = 0
    for code, label in current_app.config["DEFAULT_CASHBOXES"]:
        if db.session.query(Cashbox).filter_by(code=code).first() is None:
            db.session.add(Cashbox(code=code, label=label, is_active=True))
            created += 1
    db.session.commit()
    return created


@cashboxes_group.command('seed')
@with_appcontext
def seed_cashboxes():
    """Create the default cashboxes if they do not exist."""
    created = seed_default_cashboxes()
    if created:
        click.echo(f"PASS Created {created} cashbox(es).")
    else:
        click.echo("PASS Cashboxes already present.")


@cashboxes_group.command('balances')
@with_appcontext
def show_balances():
    """List cashboxes with their balances."""
    rows = list_cashboxes_with_balances()
    if not rows:
        click.echo("No cashboxes. Run 'python -m flask cashboxes seed'.")
        return

    click.echo(f"{'Code':<6} {'Label':<20} {'Active':<7} {'Balance':>12}")
    click.echo("-" * 48)
    for row in rows:
        active = "yes" if row["is_active"] else "no"
        click.echo(f"{row['code']:<6} {row['label'] or '':<20} {active:<7} {row['balance']:>12.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(cashboxes_group)
