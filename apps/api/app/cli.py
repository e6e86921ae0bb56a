"""CLI tools for onboarding operations."""

from functools import partial
from uuid import UUID

import anyio
import click
from sqlalchemy.exc import SQLAlchemyError

from app.db.enums import OnboardingKind, OrganizationType, Portal
from app.db.models import User
from app.db.session import SessionLocal
from app.services import onboarding_service, org_service, verification_session_service
from app.services.onboarding_service import OnboardingError, OnboardingPreconditionError
from app.services.verification_provider import VerificationProviderError, get_provider_client
from app.utils.normalization import normalize_email

PORTAL_CHOICE = click.Choice([p.value for p in Portal])


@click.group()
def cli():
    """Onboarding CLI tools."""
    pass


@cli.command()
@click.option("--owner-email", required=True, help="Owner email (user is created if missing)")
@click.option("--portal", type=PORTAL_CHOICE, required=True, help="Portal the organization joins")
@click.option(
    "--type",
    "org_type",
    type=click.Choice([t.value for t in OrganizationType]),
    required=True,
    help="Entity kind",
)
@click.option("--name", default=None, help="Organization (company) name")
@click.option("--first-name", default=None, help="Owner first name for a new user")
@click.option("--last-name", default=None, help="Owner last name for a new user")
def create_org(
    owner_email: str,
    portal: str,
    org_type: str,
    name: str | None,
    first_name: str | None,
    last_name: str | None,
):
    """
    Create an organization ready for onboarding.

    Example:
        python -m app.cli create-org --owner-email "founder@acme.com" --portal issuer --type COMPANY --name "Acme Sdn Bhd"
    """
    email = normalize_email(owner_email)
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(email=email, first_name=first_name, last_name=last_name)
            db.add(user)
            db.flush()
            click.echo(f"✓ Created user: {email}")

        org = org_service.create_org(
            db, owner=user, portal=portal, org_type=org_type, name=name
        )
        db.commit()

        click.echo(f"✓ Created {org_type.lower()} organization on {portal} portal")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Owner: {email}")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m app.cli revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            raise SystemExit(1)

        old_version = user.token_version
        user.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


@cli.command()
@click.option("--portal", type=PORTAL_CHOICE, required=True)
@click.option(
    "--kind",
    type=click.Choice([k.value for k in OnboardingKind]),
    required=True,
    help="Onboarding flow whose form settings to apply",
)
def configure_provider(portal: str, kind: str):
    """
    Register the webhook URL and form settings with the verification provider.

    Example:
        python -m app.cli configure-provider --portal investor --kind INDIVIDUAL
    """
    try:
        outcomes = anyio.run(
            partial(
                onboarding_service.configure_provider,
                get_provider_client(),
                portal=Portal(portal),
                kind=OnboardingKind(kind),
            )
        )
    except OnboardingPreconditionError as e:
        click.echo(f"❌ {e.code}: {e.message}")
        raise SystemExit(1)

    for outcome in outcomes:
        if outcome.ok:
            click.echo(f"✓ {outcome.action}")
        else:
            click.echo(f"⚠ {outcome.action} failed: {outcome.error}")
    if not all(outcome.ok for outcome in outcomes):
        raise SystemExit(1)


@cli.command()
@click.option("--org-id", required=True, type=click.UUID, help="Organization ID")
@click.option("--portal", type=PORTAL_CHOICE, required=True)
def sync_onboarding(org_id: UUID, portal: str):
    """
    Pull the provider's status for an organization (recover a lost webhook).

    Example:
        python -m app.cli sync-onboarding --org-id 1c0e... --portal investor
    """
    db = SessionLocal()
    try:
        org = org_service.get_org_by_id(db, org_id)
        if not org:
            click.echo(f"❌ Organization not found: {org_id}")
            raise SystemExit(1)

        result = anyio.run(
            partial(
                onboarding_service.sync_onboarding_status,
                db,
                user_id=org.owner_user_id,
                organization_id=org.id,
                portal=Portal(portal),
            )
        )
        click.echo(f"✓ Synced {result.request_id}")
        click.echo(f"  Provider status: {result.provider_status}")
        click.echo(f"  Session status: {result.session_status}")
        click.echo(f"  Onboarding status: {result.onboarding_status}")
    except OnboardingError as e:
        click.echo(f"❌ {e}")
        raise SystemExit(1)
    except VerificationProviderError as e:
        click.echo(f"❌ Provider error ({e.code}): {e.message}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--limit", default=50, show_default=True, help="Maximum sessions to list")
def list_pending(limit: int):
    """List active sessions still waiting on the user or the provider."""
    db = SessionLocal()
    try:
        sessions = verification_session_service.list_open_sessions(db, limit=limit)
        if not sessions:
            click.echo("No pending verification sessions")
            return
        for session in sessions:
            click.echo(
                f"{session.request_id}  {session.status:<18} {session.portal:<9} "
                f"org={session.organization_id} created={session.created_at:%Y-%m-%d %H:%M}"
            )
    finally:
        db.close()


if __name__ == "__main__":
    cli()
