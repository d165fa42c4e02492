"""CLI tools for access-control administration and scheduled sweeps."""

import logging

import click

from app.core.config import build_access_config, settings
from app.core.errors import AccessError
from app.db.session import SessionLocal
from app.services import migration_linking_service, platform_service, retention_service


@click.group()
@click.option("--verbose", is_flag=True, help="Log at INFO level")
def cli(verbose: bool):
    """Org access CLI tools."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _run_sweep(label: str, sweep) -> None:
    db = SessionLocal()
    try:
        count = sweep(db)
        click.echo(f"✓ {label}: {count}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@cli.command("expire-impersonation")
def expire_impersonation():
    """Mark impersonation sessions past expiry as expired."""
    _run_sweep("Expired impersonation sessions", retention_service.expire_impersonation_sessions)


@cli.command("purge-users")
def purge_users():
    """Hard-delete accounts soft-deleted longer than RETENTION_DAYS."""
    config = build_access_config(settings)
    _run_sweep(
        "Purged users",
        lambda db: retention_service.purge_deleted_users(db, config),
    )


@cli.command("purge-orgs")
def purge_orgs():
    """Hard-delete organizations soft-deleted longer than RETENTION_DAYS."""
    config = build_access_config(settings)
    _run_sweep(
        "Purged organizations",
        lambda db: retention_service.purge_deleted_orgs(db, config),
    )


@cli.command("purge-invitation-codes")
def purge_invitation_codes():
    """Hard-delete invitation codes revoked longer than RETENTION_DAYS."""
    config = build_access_config(settings)
    _run_sweep(
        "Purged invitation codes",
        lambda db: retention_service.purge_revoked_invitation_codes(db, config),
    )


@cli.command("grant-admin")
@click.option("--user-id", required=True, help="Identity-provider user id")
def grant_admin(user_id: str):
    """
    Grant the platform admin flag to an existing profile.

    This is the bootstrap command for the first admin; later grants go
    through the platform console.

    Example:
        org-access grant-admin --user-id "user_2abc"
    """
    db = SessionLocal()
    try:
        profile = platform_service.bootstrap_admin(db, user_id)
        db.commit()
        click.echo(f"✓ {profile.user_id} is a platform admin")
    except AccessError as e:
        db.rollback()
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command("link-migrated-user")
@click.option("--temporary-id", required=True, help="Placeholder id the user was imported with")
@click.option("--user-id", required=True, help="Real identity-provider user id")
def link_migrated_user(temporary_id: str, user_id: str):
    """Relink an imported user to their real id (requires MIGRATION_LINKING_ENABLED)."""
    config = build_access_config(settings)
    db = SessionLocal()
    try:
        counts = migration_linking_service.link_migrated_user(
            db, config, temporary_user_id=temporary_id, real_user_id=user_id
        )
        db.commit()
    except AccessError as e:
        db.rollback()
        raise click.ClickException(e.message)
    finally:
        db.close()

    if not counts:
        click.echo("Nothing to link")
        return
    for column, updated in sorted(counts.items()):
        click.echo(f"✓ {column}: {updated}")


if __name__ == "__main__":
    cli()
