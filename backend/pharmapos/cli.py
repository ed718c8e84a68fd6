# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email admin@pharmapos.local --password "Password123!" --role admin
# - python -m flask users set-role cashier@pharmapos.local user
#
# Medicines catalog:
# - python -m flask medicines export medicines.json
# - python -m flask medicines import medicines.json
#   Replaces the whole medicines collection.
#
# B2B pharmacies:
# - python -m flask pharmacies list [--search city]
# - python -m flask pharmacies add --name "City Pharmacy" --reg 1001 --phone 9800000000 \
#       --email city@pharmacy.local --address "New Road, Kathmandu" --owner "Ram Sharma"
# - python -m flask pharmacies remove <pharmacy_id>
#
# Sales maintenance:
# - python -m flask sales pending-commits
#   List sales whose stock decrement never landed.
# - python -m flask sales repair-commits [--yes]
#   Apply the recorded decrements to current stock.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .schemas import RecordValidationError
from .services.auth_service import (
    AuthError,
    PasswordValidationError,
    ROLE_ADMIN,
    VALID_ROLES,
    create_user,
    get_role,
    set_role,
)
from .services.catalog_service import export_medicines, import_medicines
from .services.counterparty_service import (
    CounterpartyError,
    list_counterparties,
    register_counterparty,
    remove_counterparty,
)
from .services.document_store import DocumentStore
from .services.sales_service import pending_commits, repair_pending_commits


DEFAULT_ADMIN_EMAIL = "admin@pharmapos.local"
DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=DEFAULT_ADMIN_EMAIL, help='Email of the default admin')
@with_appcontext
def init_system(admin_email):
    """
    Initialize PharmaPOS: tables and a default admin account.

    The admin password defaults to "Password123!".

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing PharmaPOS...")
    db.create_all()

    user = db.session.query(User).filter_by(email=admin_email.lower()).first()
    if user:
        click.echo(f"PASS Using existing admin: {user.email}")
        if get_role(user) is None:
            set_role(user, ROLE_ADMIN)
            click.echo(f"PASS Assigned role '{ROLE_ADMIN}' to {user.email}")
    else:
        user = create_user(admin_email, DEFAULT_PASSWORD, role=ROLE_ADMIN, display_name="Admin")
        click.echo(f"PASS Created admin: {user.email} (password: {DEFAULT_PASSWORD})")

    click.echo("DONE PharmaPOS initialized.")


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
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@click.option('--display-name', default=None, help='Name printed as "sold by"')
@with_appcontext
def create_user_cli(email, password, role, display_name):
    """Create a new user. Password must be at least 8 characters."""
    try:
        user = create_user(email, password, role=role, display_name=display_name)
    except (AuthError, PasswordValidationError) as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.email).all()

    if not users:
        click.echo("No users found.")
        return

    store = DocumentStore()
    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<20} {'Active':<8} {'Role'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        role = get_role(user, store=store) or "none"
        click.echo(f"{user.id:<5} {user.email:<35} {(user.display_name or ''):<20} {active_str:<8} {role}")
    click.echo("="*80 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(VALID_ROLES)))
@with_appcontext
def set_role_cli(email, role):
    """Set the role of an existing user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User {email} not found")
        raise SystemExit(1)
    set_role(user, role)
    click.echo(f"PASS {user.email} is now '{role}'")


# =============================================================================
# MEDICINES
# =============================================================================

@click.group('medicines')
def medicines_group():
    """Medicines catalog import/export."""


@medicines_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_medicines_cli(path):
    data = export_medicines(DocumentStore())
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, ensure_ascii=False)
    click.echo(f"PASS Exported {len(data)} medicine(s) to {path}")


@medicines_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_medicines_cli(path):
    """Replace the medicines collection with the JSON object in PATH."""
    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            click.echo(f"FAIL {path} is not valid JSON: {exc}")
            raise SystemExit(1)
    try:
        count = import_medicines(DocumentStore(), data)
    except RecordValidationError as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)
    click.echo(f"PASS Imported {count} medicine(s)")


# =============================================================================
# PHARMACIES
# =============================================================================

@click.group('pharmacies')
def pharmacies_group():
    """B2B pharmacy registration."""


@pharmacies_group.command('list')
@click.option('--search', default="", help='Match any pharmacy field')
@with_appcontext
def list_pharmacies_cli(search):
    entries = list_counterparties(DocumentStore(), search)
    if not entries:
        click.echo("No pharmacies registered.")
        return
    for entry in entries:
        click.echo(f"{entry.id}  {entry.pharmacy_name}  {entry.owner_name}  {entry.phone}")
    click.echo(f"{len(entries)} pharmacy(ies)")


@pharmacies_group.command('add')
@click.option('--name', required=True, help='Pharmacy name')
@click.option('--reg', 'registration_number', required=True, help='Registration number')
@click.option('--phone', required=True)
@click.option('--email', required=True)
@click.option('--address', required=True)
@click.option('--owner', required=True, help='Owner name')
@with_appcontext
def add_pharmacy_cli(name, registration_number, phone, email, address, owner):
    """Register a pharmacy so it can be billed as a B2B customer."""
    data = {
        "pharmacyName": name,
        "registrationNumber": registration_number,
        "phone": phone,
        "email": email,
        "address": address,
        "ownerName": owner,
    }
    try:
        entry = register_counterparty(DocumentStore(), data, registered_by="cli")
    except CounterpartyError as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)
    click.echo(f"PASS Registered {entry.pharmacy_name} ({entry.id})")


@pharmacies_group.command('remove')
@click.argument('pharmacy_id')
@with_appcontext
def remove_pharmacy_cli(pharmacy_id):
    try:
        remove_counterparty(DocumentStore(), pharmacy_id)
    except CounterpartyError as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)
    click.echo(f"PASS Removed {pharmacy_id}")


# =============================================================================
# SALES
# =============================================================================

@click.group('sales')
def sales_group():
    """Sale commit inspection and repair."""


@sales_group.command('pending-commits')
@with_appcontext
def pending_commits_cli():
    commits = pending_commits(DocumentStore())
    if not commits:
        click.echo("No pending commits.")
        return
    for sale_id, intent in sorted(commits.items()):
        decrements = ", ".join(f"{k}-{v}" for k, v in (intent.get("decrements") or {}).items())
        click.echo(f"{sale_id}  {intent.get('createdAt', '')}  {intent.get('soldBy', '')}  [{decrements}]")
    click.echo(f"{len(commits)} pending commit(s)")


@sales_group.command('repair-commits')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def repair_commits_cli(yes):
    """Apply recorded stock decrements for every pending commit."""
    store = DocumentStore()
    commits = pending_commits(store)
    if not commits:
        click.echo("No pending commits.")
        return
    if not yes:
        click.confirm(f"Apply stock decrements for {len(commits)} sale(s)?", abort=True)

    repaired = repair_pending_commits(store)
    for sale_id, quantities in sorted(repaired.items()):
        click.echo(f"PASS {sale_id}: {quantities}")
    click.echo(f"DONE Repaired {len(repaired)} commit(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(medicines_group)
    app.cli.add_command(pharmacies_group)
    app.cli.add_command(sales_group)
