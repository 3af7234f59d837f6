# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent). Use "flask db upgrade" when migrations are in play.
# - python -m flask system create-owner --username owner --email owner@stockdesk.local
#   Create an owner account (prompts for the password).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff accounts:
# - python -m flask users create-staff --username kofi --email kofi@stockdesk.local
#   Create a staff account with every permission disabled.
# - python -m flask users list
#   List owners and staff with active status.
#
# Staff permissions:
# - python -m flask perms list [--module sales]
#   List permission keys grouped by module and sub-group.
# - python -m flask perms show kofi
#   Show a staff member's stored flags and effective capabilities.
# - python -m flask perms grant kofi manage_sales_edit
#   Enable a key (also enables its sub-group view key).
# - python -m flask perms revoke kofi manage_sales_view
#   Disable a key (disabling a view key disables its sub-group).
#
# Approvals:
# - python -m flask approvals list [--status PENDING] [--kind DAMAGE_REPORT]
#   List approval requests.
# - python -m flask approvals reprocess [--id 12]
#   Apply approved requests whose change never landed (all, or one by id).
#
# Stock reports:
# - python -m flask inventory low-stock
# - python -m flask inventory expiring [--days 14]

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import StockDeskError
from .models import User
from .permissions import (
    PERMISSION_DEFINITIONS,
    MODULE_MASTER_KEYS,
    get_permissions_by_module,
    validate_permission_key,
)
from .services.auth_service import create_user, PasswordValidationError
from .services import approval_service
from .services import inventory_service
from .services import permission_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create every table that does not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('create-owner')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_owner_cli(username, email, full_name, password):
    """
    Create an owner account. Owners pass every permission check and are
    the only users who can manage staff or decide non-sale approvals.
    """
    try:
        user = create_user(username, email, password, full_name=full_name, is_owner=True)
        click.echo(f"PASS Created owner: {user.username} ({user.email}) ID {user.id}")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except StockDeskError as e:
        click.echo(f"FAIL {e.message}")


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
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """Account inspection and bootstrap commands."""


@users_group.command('create-staff')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_staff_cli(username, email, full_name, password):
    """Create a staff account. Every permission starts disabled."""
    try:
        user = create_user(username, email, password, full_name=full_name, is_owner=False)
        click.echo(f"PASS Created staff: {user.username} ({user.email}) ID {user.id}")
        click.echo("     Grant access with: flask perms grant <username> <key>")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except StockDeskError as e:
        click.echo(f"FAIL {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.is_owner.desc(), User.username.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Role':<8} {'Active'}")
    click.echo("="*90)

    for user in users:
        role = "owner" if user.is_owner else "staff"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {role:<8} {active_str}")

    click.echo("="*90 + "\n")


@click.group('perms')
def perms_group():
    """Staff permission inspection and repair commands."""


def _find_user(username):
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
    return user


@perms_group.command('list')
@click.option('--module', help='Filter by module (products, sales, cash_tracking)')
@with_appcontext
def list_permissions_cli(module):
    """List permission keys grouped by module."""
    click.echo(f"\n{'='*80}")
    click.echo("All Permissions" if not module else f"Permissions in module: {module}")
    click.echo(f"{'='*80}\n")

    current_module = None
    total = 0
    rows = get_permissions_by_module(module) if module else PERMISSION_DEFINITIONS
    for key, label, perm_module, sub_group, action in rows:
        if perm_module != current_module:
            if current_module:
                click.echo("")
            click.echo(f"MODULE {perm_module} (master: {MODULE_MASTER_KEYS[perm_module].value})")
            click.echo("-"*80)
            current_module = perm_module
        click.echo(f"  {key.value:<30} {sub_group or '-':<16} {label}")
        total += 1

    click.echo(f"\n Total: {total} permissions\n")


@perms_group.command('show')
@click.argument('username')
@with_appcontext
def show_permissions_cli(username):
    """Show stored flags and effective access for a staff member."""
    user = _find_user(username)
    if not user:
        return
    if user.is_owner:
        click.echo(f"PASS '{username}' is an owner and holds every permission")
        return

    stored = permission_service.get_staff_permissions(user.id)
    effective = permission_service.PermissionSet.for_user(user.id)

    click.echo(f"{'Key':<30} {'Stored':<8} {'Effective'}")
    click.echo("-"*50)
    for key, enabled in stored.items():
        click.echo(f"{key:<30} {'on' if enabled else 'off':<8} {'yes' if effective.allows(key) else 'no'}")


def _toggle(username, permission_key, enabled):
    if not validate_permission_key(permission_key):
        click.echo(f"FAIL Unknown permission key '{permission_key}'")
        return
    user = _find_user(username)
    if not user:
        return
    try:
        permission_service.set_staff_permission(user.id, permission_key, enabled)
    except StockDeskError as e:
        click.echo(f"FAIL Error: {e.message}")
        return
    verb = "Granted" if enabled else "Revoked"
    click.echo(f"PASS {verb} '{permission_key}' for '{username}'")


@perms_group.command('grant')
@click.argument('username')
@click.argument('permission_key')
@with_appcontext
def grant_permission_cli(username, permission_key):
    """Enable a permission key for a staff member."""
    _toggle(username, permission_key, True)


@perms_group.command('revoke')
@click.argument('username')
@click.argument('permission_key')
@with_appcontext
def revoke_permission_cli(username, permission_key):
    """Disable a permission key for a staff member."""
    _toggle(username, permission_key, False)


@click.group('approvals')
def approvals_group():
    """Approval workflow inspection and repair."""


@approvals_group.command('list')
@click.option('--status', help='PENDING, APPROVED or REJECTED')
@click.option('--kind', help='Approval kind, e.g. DAMAGE_REPORT')
@with_appcontext
def list_approvals_cli(status, kind):
    """List approval requests, newest first."""
    try:
        requests_ = approval_service.list_requests(status=status, kind=kind)
    except StockDeskError as e:
        click.echo(f"FAIL {e.message}")
        return

    if not requests_:
        click.echo("No approval requests found.")
        return

    click.echo(f"{'ID':<6} {'Kind':<18} {'Target':<16} {'Status':<10} {'Applied'}")
    click.echo("-"*70)
    for r in requests_:
        target = f"{r.target_type}#{r.target_id}"
        applied = "yes" if r.applied_at else "-"
        click.echo(f"{r.id:<6} {r.kind:<18} {target:<16} {r.status:<10} {applied}")


@approvals_group.command('reprocess')
@click.option('--id', 'request_id', type=int, help='Only reprocess this request')
@with_appcontext
def reprocess_cli(request_id):
    """Apply APPROVED requests that were never applied."""
    if request_id:
        try:
            request = approval_service.reprocess(request_id)
            click.echo(f"PASS Request {request.id} applied at {request.applied_at}")
        except StockDeskError as e:
            click.echo(f"FAIL {e.message}")
        return

    result = approval_service.reprocess_unapplied()
    click.echo(f"PASS Applied {len(result['applied'])} request(s)")
    for failure in result["failed"]:
        click.echo(f"FAIL Request {failure['request_id']}: {failure['error']}")


@click.group('inventory')
def inventory_group():
    """Stock reports."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """Products at or under their low-stock threshold."""
    products = inventory_service.list_low_stock()
    if not products:
        click.echo("No low-stock products.")
        return
    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} boxes={p.quantity_box:<8g} kg={p.quantity_kg:<8g} threshold={p.low_stock_threshold:g}")


@inventory_group.command('expiring')
@click.option('--days', type=int, default=None, help='Window in days (default EXPIRY_WARNING_DAYS)')
@with_appcontext
def expiring_cli(days):
    """Products expiring within the window, expired ones included."""
    try:
        products = inventory_service.list_expiring(days)
    except StockDeskError as e:
        click.echo(f"FAIL {e.message}")
        return
    if not products:
        click.echo("No expiring products.")
        return
    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} expires {p.expiry_date.isoformat()} ({p.days_left} days left)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(approvals_group)
    app.cli.add_command(inventory_group)
