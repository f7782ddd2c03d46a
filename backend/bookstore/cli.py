# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bookstore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "Password123!"]
#   Idempotent bootstrap: creates tables, default categories and the admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role STAFF]
#   List users with role and active status.
# - python -m flask users create --username clerk --email clerk@bookstore.local --full-name "Clerk" --role STAFF
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory low-stock --threshold 5
#   List books below the threshold.
# - python -m flask inventory reconcile [--book-id 3]
#   Compare each book's stock counter with the sum of its ledger entries.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.errors import BookstoreError
from .services import inventory_service


DEFAULT_CATEGORIES = [
    ("Fiction", "Novels and short stories"),
    ("Non-Fiction", "Biographies, history and essays"),
    ("Science", "Popular science and textbooks"),
    ("Technology", "Programming and computing"),
    ("Children", "Picture books and young readers"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Admin username')
@click.option('--admin-email', default='admin@bookstore.local', help='Admin email')
@click.option('--admin-password', default='Password123!', help='Admin password')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Initialize the bookstore: tables, default categories and an admin user.

    Safe to run repeatedly; existing categories and users are skipped.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing bookstore...")

    db.create_all()
    click.echo("PASS Tables created")

    click.echo("\nLIST Creating default categories...")
    created = 0
    for name, description in DEFAULT_CATEGORIES:
        if db.session.query(Category).filter_by(name=name).first():
            continue
        db.session.add(Category(name=name, description=description, is_active=True))
        created += 1
    db.session.commit()
    click.echo(f"PASS Created {created} categories")

    click.echo("\nUSERS Creating admin user...")
    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
    else:
        try:
            create_user(
                username=admin_username,
                email=admin_email,
                password=admin_password,
                full_name="Administrator",
                role=ROLE_ADMIN,
            )
            click.echo(f"PASS Created user: {admin_username} ({admin_email}) with role '{ROLE_ADMIN}'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{admin_username}': {str(e)}")
        except BookstoreError as e:
            click.echo(f"FAIL Failed to create user '{admin_username}': {e.message}")

    click.echo("\n" + "="*60)
    click.echo("DONE Bookstore Initialized")
    click.echo("="*60 + "\n")


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


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, full_name, password, role):
    """
    Create a new user with any role.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name,
            role=role,
        )
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}' (ID: {user.id})")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except BookstoreError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


# =============================================================================
# INVENTORY COMMANDS
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Report books with stock below this level')
@with_appcontext
def low_stock(threshold):
    """List non-discontinued books whose stock is below the threshold."""
    books = inventory_service.list_low_stock_books(threshold)

    if not books:
        click.echo("No low-stock books.")
        return

    for book in books:
        click.echo(f"{book.id:<5} {book.isbn:<15} {book.stock_quantity:>5}  {book.title}")


@inventory_group.command('reconcile')
@click.option('--book-id', type=int, default=None, help='Only check this book')
@with_appcontext
def reconcile(book_id):
    """
    Verify stock_quantity equals the sum of ledger deltas for each book.

    Exits with status 1 when any book is out of balance.
    """
    rows = inventory_service.reconcile_book_ledger(book_id)
    mismatches = [r for r in rows if not r["ok"]]

    for row in mismatches:
        click.echo(
            f"FAIL book {row['book_id']} '{row['title']}': "
            f"stock={row['stock_quantity']} ledger={row['ledger_total']}"
        )

    click.echo(f"Checked {len(rows)} books, {len(mismatches)} mismatched")
    if mismatches:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
