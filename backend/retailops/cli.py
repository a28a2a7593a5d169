# Overview: Flask CLI commands for schema bootstrap and demo data.

# backend/retailops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to retailops (PowerShell: $env:FLASK_APP="retailops").
# - Use: python -m flask retail <command> [options]
#
# - python -m flask retail init-db
#   Create all tables (idempotent).
# - python -m flask retail reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask retail seed-demo [--company-id 1]
#   Create a small catalog, a warehouse, a branch and opening stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Product, Warehouse
from .services import warehouse_service


@click.group('retail')
def retail_group():
    """Schema bootstrap and demo data commands."""


@retail_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@retail_group.command('reset-db')
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
    click.echo("BUILD Creating tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


DEMO_PRODUCTS = [
    ("Espresso Beans 1kg", "Coffee", "COF-001", 24.50, 15.00, 120),
    ("Oat Milk 1L", "Dairy Alternatives", "OAT-001", 3.20, 1.90, 300),
    ("Paper Cups (50)", "Supplies", "SUP-001", 6.75, 3.10, 80),
]


@retail_group.command('seed-demo')
@click.option('--company-id', default=1, type=int, help='Owning company id')
@with_appcontext
def seed_demo(company_id):
    """Create demo catalog, warehouse, branch and stock."""
    if db.session.query(Product).filter_by(company_id=company_id).first():
        click.echo(f"WARN Company {company_id} already has products, skipping")
        return

    warehouse = Warehouse(company_id=company_id, name="Central Warehouse", location="Dock 1", manager_id=1)
    db.session.add(warehouse)
    db.session.flush()

    branch = Branch(company_id=company_id, name="High Street", location="12 High St", warehouse_id=warehouse.id)
    db.session.add(branch)

    for name, category, sku, price, cost, quantity in DEMO_PRODUCTS:
        product = Product(
            company_id=company_id, name=name, category=category, sku=sku,
            price=price, cost_price=cost, quantity=quantity,
        )
        db.session.add(product)
        db.session.flush()
        warehouse_service.assign_product(
            warehouse_id=warehouse.id, product_id=product.id, quantity=quantity // 2,
        )
        click.echo(f"PASS Created product: {name} ({sku})")

    db.session.commit()
    click.echo(f"DONE Seeded warehouse {warehouse.id} and branch {branch.id} for company {company_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(retail_group)
