# Overview: Flask CLI command groups for bootstrap, demo data, and user management.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin user.
# - python -m flask system seed
#   Demo categories, products (with opening stock), customers and suppliers.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username ana --email ana@suaza.local --password "Password123!" --role seller
#   Create a user (prompts if options are omitted).
# - python -m flask users list

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Customer, Product, Supplier, User
from .models.auth import USER_ROLES
from .services.auth_service import create_user
from .services.products_service import create_product
from .validation import ServiceError

DEFAULT_ADMIN = ("admin", "admin@suaza.local", "Password123!")

DEMO_CATEGORIES = [
    ("Bebidas", "Gaseosas, jugos y agua"),
    ("Aseo", "Limpieza del hogar"),
    ("Granos", "Arroz, frijol y lenteja"),
]

# (code, name, category, price, cost, stock, min_stock)
DEMO_PRODUCTS = [
    ("BEB-001", "Agua 600ml", "Bebidas", "2000.00", "1100.00", 48, 12),
    ("BEB-002", "Gaseosa 1.5L", "Bebidas", "5500.00", "3800.00", 24, 6),
    ("ASE-001", "Detergente 1kg", "Aseo", "12900.00", "9100.00", 10, 4),
    ("GRA-001", "Arroz 500g", "Granos", "2800.00", "2000.00", 3, 5),
    ("GRA-002", "Frijol 500g", "Granos", "6200.00", "4700.00", 0, 5),
]

# (document_number, name, email, phone, credit_limit)
DEMO_CUSTOMERS = [
    ("900123456", "Tienda La Esquina", "compras@laesquina.co", "3001234567", "2000000.00"),
    ("1020304050", "Maria Gomez", "maria.gomez@example.com", "3109876543", "500000.00"),
]

# (name, contact_person, email, city, tax_id)
DEMO_SUPPLIERS = [
    ("Distribuidora Andina", "Carlos Ruiz", "ventas@andina.co", "Medellin", "800111222"),
    ("Aseo Total SAS", "Luisa Mejia", "pedidos@aseototal.co", "Bogota", "900333444"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create all tables and the default admin user.

    Default credentials: admin / Password123!  (change in production!)
    """
    click.echo("START Initializing Suaza backend...")

    db.create_all()
    click.echo("PASS Tables created")

    username, email, password = DEFAULT_ADMIN
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        create_user(username=username, email=email, password=password, role="admin")
        click.echo(f"PASS Created user: {username} ({email}) with role 'admin'")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {username} -> {email} / {password}")


@system_group.command('seed')
@with_appcontext
def seed_demo_data():
    """Load demo categories, products, customers and suppliers (skips existing rows)."""
    admin = db.session.query(User).filter_by(role="admin").first()

    categories = {}
    for name, description in DEMO_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if not category:
            category = Category(name=name, description=description)
            db.session.add(category)
            db.session.commit()
        categories[name] = category
    click.echo(f"PASS Categories: {', '.join(categories)}")

    created = 0
    for code, name, category, price, cost, stock, min_stock in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(code=code).first():
            continue
        create_product(
            patch={
                "code": code,
                "name": name,
                "category_id": categories[category].id,
                "price": Decimal(price),
                "cost": Decimal(cost),
                "min_stock": min_stock,
            },
            initial_stock=stock,
            user_id=admin.id if admin else None,
        )
        created += 1
    click.echo(f"PASS Created {created} products")

    created = 0
    for document_number, name, email, phone, credit_limit in DEMO_CUSTOMERS:
        if db.session.query(Customer).filter_by(document_number=document_number).first():
            continue
        db.session.add(
            Customer(
                document_number=document_number,
                name=name,
                email=email,
                phone=phone,
                credit_limit=Decimal(credit_limit),
            )
        )
        created += 1
    db.session.commit()
    click.echo(f"PASS Created {created} customers")

    created = 0
    for name, contact_person, email, city, tax_id in DEMO_SUPPLIERS:
        if db.session.query(Supplier).filter_by(email=email).first():
            continue
        db.session.add(
            Supplier(name=name, contact_person=contact_person, email=email, city=city, tax_id=tax_id)
        )
        created += 1
    db.session.commit()
    click.echo(f"PASS Created {created} suppliers")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), default='seller', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """Create a staff user."""
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except ServiceError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    click.echo(f"\n{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("=" * 75)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<10} {active_str}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
