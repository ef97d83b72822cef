"""CLI tools for compliance administration."""

from uuid import UUID

import click

from dealer_aml.core.config import settings
from dealer_aml.core.structured_logging import configure_logging
from dealer_aml.core.exceptions import ComplianceError
from dealer_aml.db.models import Organization, OrganizationSettings
from dealer_aml.db.session import SessionLocal
from dealer_aml.services import alert_service, period_service


@click.group()
def cli():
    """Dealer AML CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--rfc", required=True, help="Obligated subject key (dealer RFC, 12-13 chars)")
@click.option("--activity-key", default="VEH", show_default=True, help="SAT activity key")
def create_org(name: str, slug: str, rfc: str, activity_key: str):
    """
    Create an organization and its SAT filing settings.

    Example:
        python -m dealer_aml.cli create-org --name "Autos del Norte" --slug "autos-norte" --rfc "ADN010101AB1"
    """
    slug = slug.lower().strip()
    if not slug.replace("-", "").replace("_", "").isalnum():
        raise click.ClickException("Slug must be alphanumeric (with optional hyphens/underscores)")
    rfc = rfc.upper().strip()
    if len(rfc) not in (12, 13):
        raise click.ClickException("RFC must be 12 (legal entity) or 13 (individual) characters")

    db = SessionLocal()
    try:
        existing = db.query(Organization).filter(Organization.slug == slug).first()
        if existing:
            raise click.ClickException(f"Organization with slug '{slug}' already exists")

        org = Organization(name=name, slug=slug)
        db.add(org)
        db.flush()
        db.add(OrganizationSettings(
            organization_id=org.id,
            obligated_subject_key=rfc,
            activity_key=activity_key,
        ))
        db.commit()

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {slug}")
        click.echo(f"  Filing as {rfc} / {activity_key}")
    except click.ClickException:
        db.rollback()
        raise
    finally:
        db.close()


@cli.command()
@click.option("--org-id", required=True, type=click.UUID, help="Organization ID")
def sweep_overdue(org_id: UUID):
    """Flip past-deadline alerts of an organization to OVERDUE."""
    db = SessionLocal()
    try:
        flipped = alert_service.sweep_overdue(db, org_id)
        click.echo(f"✓ {flipped} alert(s) marked OVERDUE")
    finally:
        db.close()


@cli.command()
@click.option("--year", required=True, type=int)
@click.option("--month", required=True, type=click.IntRange(1, 12))
def period(year: int, month: int):
    """Print the 17-17 window and deadline for a reported month."""
    try:
        window = period_service.period_for(year, month)
        deadline = period_service.deadline_for(year, month)
    except ComplianceError as e:
        raise click.ClickException(str(e))
    click.echo(f"{window.display_name} ({window.reported_month})")
    click.echo(f"  Start:    {window.start.isoformat()}")
    click.echo(f"  End:      {window.end.isoformat()}")
    click.echo(f"  Deadline: {deadline.isoformat()}")


if __name__ == "__main__":
    cli()
