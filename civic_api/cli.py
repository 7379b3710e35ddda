"""CLI commands for Civic API."""

import click

from civic_api.db.seed import seed_all
from civic_api.db.session import SessionLocal


@click.group()
def cli():
    """Civic API CLI."""
    pass


@cli.command()
def seed():
    """Seed wards, an administrator and demo staff."""
    click.echo("Seeding initial data...")
    db = SessionLocal()
    try:
        seed_all(db)
        click.echo("✓ Seed data created.")
    except Exception as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        db.rollback()
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Restart on code changes.")
def serve(host, port, reload):
    """Run the API server."""
    import uvicorn

    uvicorn.run("civic_api.main:app", host=host, port=port, reload=reload, log_level="info")


if __name__ == "__main__":
    cli()
