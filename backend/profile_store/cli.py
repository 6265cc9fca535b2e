"""
profile-bootstrap command line.

Usage:
    profile-bootstrap apply [MANIFEST] [--mongo-uri URI] [--db NAME] [--json] [--no-stats]
    profile-bootstrap manifests
    profile-bootstrap show MANIFEST

MANIFEST is a built-in manifest name or a path to an Extended JSON file.

Environment Variables:
    MONGO_URI: MongoDB connection string
    MONGO_DB_NAME: Override the manifest's target database
    APP_USER_PASSWORD: Password for a newly created application user
    SEED_ADMIN_USER_ID / SEED_ADMIN_USERNAME: Admin seed profile
    LOG_LEVEL: Logging level (default: INFO)

Exit status is 0 when every entry succeeded, 1 when any entry failed and 2
when the run could not start (unreachable database, invalid manifest).
"""
import asyncio
from typing import Optional

import typer

from profile_store.config import Settings, get_settings
from profile_store.core.errors import DatabaseConnectionError, ManifestError
from profile_store.core.logging import setup_logging
from profile_store.database.connections import close_client, connect
from profile_store.database.databases.userprofile_db import INIT_MANIFEST
from profile_store.database.registry import dump_manifest, list_manifests, load_manifest
from profile_store.models.manifest import Manifest
from profile_store.models.report import ApplyReport
from profile_store.services.applier import ManifestApplier

EXIT_ABORTED = 2
EXIT_INTERRUPTED = 130

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Bootstrap the user-profile MongoDB database from a manifest.",
)


async def run_apply(
    manifest: Manifest,
    settings: Settings,
    mongo_uri: Optional[str] = None,
    db_name: Optional[str] = None,
    collect_stats: Optional[bool] = None,
) -> ApplyReport:
    """
    Connect, apply one manifest and disconnect.

    Raises:
        DatabaseConnectionError: If the database cannot be reached
    """
    client = await connect(mongo_uri, settings)
    try:
        target = db_name or settings.mongo_db_name
        if target:
            manifest = manifest.for_database(target)
        database = client[manifest.database]
        applier = ManifestApplier(database, settings=settings, collect_stats=collect_stats)
        return await applier.apply(manifest)
    finally:
        close_client(client)


@app.command()
def apply(
    manifest: str = typer.Argument(INIT_MANIFEST, help="Built-in manifest name or JSON file"),
    mongo_uri: Optional[str] = typer.Option(None, "--mongo-uri", help="Overrides MONGO_URI"),
    db: Optional[str] = typer.Option(None, "--db", help="Target database name"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    stats: bool = typer.Option(True, "--stats/--no-stats", help="Collect collection sizes"),
) -> None:
    """Apply a manifest to the target database."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        loaded = load_manifest(manifest, settings)
    except ManifestError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_ABORTED)

    try:
        report = asyncio.run(
            run_apply(loaded, settings, mongo_uri=mongo_uri, db_name=db, collect_stats=stats)
        )
    except DatabaseConnectionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_ABORTED)
    except KeyboardInterrupt:
        typer.echo("Interrupted; re-run to finish reconciling", err=True)
        raise typer.Exit(EXIT_INTERRUPTED)

    typer.echo(report.model_dump_json(indent=2) if as_json else report.summary())
    raise typer.Exit(report.exit_code)


@app.command("manifests")
def manifests_command() -> None:
    """List the built-in manifests."""
    settings = get_settings()
    for name in list_manifests():
        manifest = load_manifest(name, settings)
        typer.echo(f"{name}\t{manifest.database}\t{manifest.description}")


@app.command()
def show(manifest: str = typer.Argument(..., help="Built-in manifest name or JSON file")) -> None:
    """Print a manifest as Extended JSON."""
    try:
        loaded = load_manifest(manifest, get_settings())
    except ManifestError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_ABORTED)
    typer.echo(dump_manifest(loaded))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
