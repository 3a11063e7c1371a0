# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/duka/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"]
#   Idempotent bootstrap: creates tables, permissions, a default organization
#   with its roles, an owner and a super admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Duka Ltd" --code "DUKA" [--owner owner]
#
# Users:
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --username jane --email jane@duka.local --password "Password123!" --role manager
# - python -m flask users create-super-admin --username root --email root@duka.local --password "Password123!"
#
# Payroll:
# - python -m flask payroll preview --org-id 1

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .models import User, Organization, OrganizationMembership
from .permissions import DEFAULT_ROLES
from .services import auth_service, permission_service
from .services.auth_service import PasswordValidationError, MembershipError
from .services.payroll_service import preview_payroll, PayrollError

DEFAULT_PASSWORD = "Password123!"
ROLE_NAMES = [name for name, _ in DEFAULT_ROLES]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@with_appcontext
def init_system(org_name, org_code):
    """
    Initialize Duka: tables, permissions, a default organization and users.

    Creates:
    - Default organization (if none exists) with its default roles
    - Users: owner/owner@duka.local (business_owner), admin/admin@duka.local (super admin)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Duka...")
    db.create_all()

    perm_count = permission_service.initialize_permissions()
    click.echo(f"PASS Permissions ready ({perm_count} new)")

    owner = db.session.query(User).filter_by(username="owner").first()
    if not owner:
        owner = auth_service.create_user("owner", "owner@duka.local", DEFAULT_PASSWORD, full_name="Business Owner")
        click.echo(f"PASS Created user: {owner.username} ({owner.email})")

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = auth_service.create_organization(name=org_name, code=org_code, owner_user_id=owner.id)
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    admin = db.session.query(User).filter_by(username="admin").first()
    if not admin:
        admin = auth_service.create_user(
            "admin", "admin@duka.local", DEFAULT_PASSWORD, full_name="Platform Admin", is_super_admin=True
        )
        click.echo(f"PASS Created super admin: {admin.username} ({admin.email})")

    click.echo("\nDONE Duka initialized")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   owner -> owner@duka.local / {DEFAULT_PASSWORD}")
    click.echo(f"   admin -> admin@duka.local / {DEFAULT_PASSWORD}")


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
# ORGANIZATION MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    counts = dict(
        db.session.query(OrganizationMembership.organization_id, func.count(OrganizationMembership.id))
        .filter(OrganizationMembership.is_active.is_(True))
        .group_by(OrganizationMembership.organization_id)
        .all()
    )

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Plan':<12} {'Active':<8} {'Members'}")
    click.echo("="*80)

    for org in orgs:
        active_str = "Yes" if org.is_active else "No"
        click.echo(
            f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {org.subscription_plan:<12} "
            f"{active_str:<8} {counts.get(org.id, 0)}"
        )

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--owner', 'owner_username', help='Username of the owner')
@with_appcontext
def create_org_cli(name, code, owner_username):
    """Create a new organization (tenant) with default roles."""
    owner_id = None
    if owner_username:
        owner = db.session.query(User).filter_by(username=owner_username).first()
        if not owner:
            click.echo(f"FAIL User '{owner_username}' not found")
            return
        owner_id = owner.id

    try:
        org = auth_service.create_organization(name=name, code=code, owner_user_id=owner_id)
    except (ValueError, MembershipError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLE_NAMES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(org_id, username, email, password, role):
    """
    Create a user and add them to an organization with a role.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    try:
        user = auth_service.create_user(username, email, password)
        auth_service.add_member(organization_id=org.id, user_id=user.id, role_name=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ValueError, MembershipError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
    click.echo(f"     Organization: {org.name} (ID: {org.id})")


@users_group.command('create-super-admin')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_super_admin_cli(username, email, password):
    """
    Create a platform super admin.

    Super admins hold every permission in every organization and may log in
    without an organization to use the platform console.
    """
    try:
        user = auth_service.create_user(username, email, password, is_super_admin=True)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create super admin: {str(e)}")
        return

    click.echo(f"PASS Created super admin: {user.username} ({user.email}), ID: {user.id}")


@users_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_users(org_id):
    """List users with their memberships."""
    query = db.session.query(User)
    if org_id:
        query = query.join(OrganizationMembership, OrganizationMembership.user_id == User.id).filter(
            OrganizationMembership.organization_id == org_id
        )
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Memberships'}")
    click.echo("="*100)

    for user in users:
        parts = []
        for m in user.memberships:
            if org_id and m.organization_id != org_id:
                continue
            state = "" if m.is_active else " (inactive)"
            parts.append(f"{m.organization_id}:{m.role.name}{state}")
        if user.is_super_admin:
            parts.insert(0, "SUPER_ADMIN")
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {', '.join(parts) or 'none'}")

    click.echo("="*100 + "\n")


# =============================================================================
# PAYROLL COMMANDS
# =============================================================================

@click.group('payroll')
def payroll_group():
    """Payroll inspection commands."""


@payroll_group.command('preview')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def payroll_preview_cli(org_id):
    """Print this month's payroll for an organization without saving it."""
    try:
        preview = preview_payroll(org_id)
    except PayrollError as e:
        click.echo(f"FAIL {e}")
        return

    if not preview["employees"]:
        click.echo("No active employees.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Employee':<30} {'Gross':>12} {'NSSF':>10} {'PAYE':>10} {'Net':>12} {'SDL':>10} {'WCF':>8}")
    click.echo("="*100)
    for row in preview["employees"]:
        click.echo(
            f"{row['employee_name']:<30} {row['gross_salary']:>12,} {row['nssf_employee']:>10,} "
            f"{row['paye']:>10,} {row['net_salary']:>12,} {row['sdl_employer']:>10,} {row['wcf_employer']:>8,}"
        )
    t = preview["totals"]
    click.echo("-"*100)
    click.echo(
        f"{'TOTAL':<30} {t['gross']:>12,} {t['nssf_employee']:>10,} "
        f"{t['paye']:>10,} {t['net']:>12,} {t['sdl']:>10,} {t['wcf']:>8,}"
    )
    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(users_group)
    app.cli.add_command(payroll_group)
