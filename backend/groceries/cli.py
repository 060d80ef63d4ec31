# Overview: Flask CLI command groups for bootstrap, account recovery, and maintenance.

# backend/groceries/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="groceries:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (dev shortcut; production uses `flask db upgrade`).
# - python -m flask system seed
#   Load the starter catalog (idempotent, matched by product name).
#
# Accounts:
# - python -m flask users create --name "Admin" --email admin@groceries.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users unlock --email someone@example.com
#   Unlock an account locked by repeated failed logins.
#
# Maintenance:
# - python -m flask maintenance reclaim-sessions
#   Delete expired and idle sessions now (the background sweeper does this hourly).
# - python -m flask maintenance cleanup-login-attempts --retention-days 90
# - python -m flask maintenance cleanup-security-logs --retention-days 90
#   Delete audit rows older than the retention window.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import GroceryError
from .models import Product, User
from .services.auth_service import create_user
from .services.account_guard_service import normalize_email, unlock_account
from .services.catalog_service import create_product
from .services.session_service import reclaim_expired_sessions
from .services import maintenance_service


# (name, price, image, description, stock)
SEED_PRODUCTS = [
    ("Whole Wheat Bread", "3.49", "assets/images/products/whole_wheat_bread.png",
     "Freshly baked whole wheat bread, perfect for sandwiches.", 150),
    ("French Baguette", "2.99", "assets/images/products/french_baguette.png",
     "Authentic French baguette with crispy crust and soft interior.", 120),
    ("Chocolate Chip Cookies (Pack of 12)", "4.99", "assets/images/products/chocolate_chip_cookies.png",
     "Homemade style chocolate chip cookies, soft and chewy.", 100),
    ("Blueberry Muffins (Pack of 6)", "5.99", "assets/images/products/blueberry_muffins.png",
     "Fluffy muffins loaded with juicy blueberries.", 80),
    ("Croissants (Pack of 4)", "6.49", "assets/images/products/croissants.png",
     "Buttery, flaky croissants baked to golden perfection.", 90),
    ("Whole Milk (1L)", "2.49", "assets/images/products/whole_milk.png",
     "Fresh whole milk from local farms.", 200),
    ("Cheddar Cheese (250g)", "4.99", "assets/images/products/cheddar_cheese.png",
     "Sharp cheddar cheese, perfect for sandwiches and cooking.", 150),
    ("Greek Yogurt (500g)", "3.99", "assets/images/products/greek_yogurt.png",
     "Creamy Greek yogurt, high in protein.", 120),
    ("Butter (250g)", "3.49", "assets/images/products/butter.png",
     "Pure butter made from pasteurized cream.", 180),
    ("Bananas (1kg)", "1.99", "assets/images/products/bananas.png",
     "Fresh yellow bananas, rich in potassium.", 250),
    ("Avocado (each)", "1.79", "assets/images/products/avocado.png",
     "Ripe avocados, perfect for guacamole or toast.", 120),
    ("Chicken Breast (500g)", "7.99", "assets/images/products/chicken_breast.png",
     "Boneless, skinless chicken breast, high in protein.", 150),
    ("Salmon Fillet (300g)", "9.99", "assets/images/products/salmon_fillet.png",
     "Fresh Atlantic salmon fillet, rich in omega-3.", 80),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@with_appcontext
def seed_cli():
    """Load the starter catalog. Products that already exist (by name) are skipped."""
    created = 0
    for name, price, image_path, description, stock in SEED_PRODUCTS:
        if db.session.query(Product.id).filter_by(name=name).first() is not None:
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue
        create_product(
            name=name,
            price=Decimal(price),
            stock_quantity=stock,
            description=description,
            image_path=image_path,
        )
        created += 1
    click.echo(f"PASS Seeded {created} products")


@click.group('users')
def users_group():
    """Account bootstrap and recovery commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['customer', 'admin']), default='customer', show_default=True)
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_user_cli(name, email, password, role, phone):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name=name, email=email, password=password, phone=phone, role=role)
    except GroceryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('unlock')
@click.option('--email', prompt=True, help='Email of the locked account')
@with_appcontext
def unlock_user_cli(email):
    """Unlock an account and reset its failed login counter."""
    user_id = db.session.query(User.id).filter_by(email=normalize_email(email)).scalar()
    if user_id is None:
        raise click.ClickException(f"User '{email}' not found")
    unlock_account(user_id)
    click.echo(f"PASS Unlocked {email}")


@click.group('maintenance')
def maintenance_group():
    """Retention and cleanup commands."""


@maintenance_group.command('reclaim-sessions')
@with_appcontext
def reclaim_sessions_cli():
    """Delete expired and idle sessions."""
    deleted = reclaim_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


@maintenance_group.command('cleanup-login-attempts')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_login_attempts_cli(retention_days):
    deleted = maintenance_service.cleanup_login_attempts(retention_days=retention_days)
    click.echo(f"Deleted {deleted} login attempts older than {retention_days} days.")


@maintenance_group.command('cleanup-security-logs')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_logs_cli(retention_days):
    deleted = maintenance_service.cleanup_security_logs(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security log entries older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
