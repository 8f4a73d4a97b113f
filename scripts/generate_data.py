"""
Data generation and loading script for the Query Strategy Lab.

Seeds categories, products, users and orders with items for one size tier,
inserting in batched transactions, and prints the created row counts.
Unset options fall back to the SEED_* settings, as in ``querylab seed``.
Appended runs never collide on unique keys: a new ``--run-id`` starts its own
key sequences and a reused one continues them.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Optional

import typer

from querylab.config import get_settings
from querylab.errors import StorageError
from querylab.infrastructure.db_factory import get_sync_connection
from querylab.infrastructure.schema import table_counts
from querylab.infrastructure.session import Session
from querylab.seeding import SeedRunner
from querylab.utils.logging import configure_logging

app = typer.Typer(help="Generate a synthetic e-commerce dataset and load it into Postgres.")


@app.command()
def main(
    size: Optional[str] = typer.Option(
        None,
        "--size",
        "-s",
        help="Dataset tier (small, medium, large). Defaults to SEED_SIZE.",
    ),
    reset: Optional[bool] = typer.Option(
        None,
        "--reset/--append",
        help="Drop and recreate the tables first, or append to the existing data. Defaults to SEED_RESET.",
    ),
    run_id: Optional[str] = typer.Option(
        None,
        "--run-id",
        help="Lowercase [a-z0-9] uniqueness token. Defaults to SEED_RUN_ID, then a timestamp.",
    ),
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        "-b",
        help="Rows per INSERT batch; each batch is one transaction. Defaults to SEED_BATCH_SIZE.",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    dsn: Optional[str] = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
) -> None:
    """
    Generate one dataset tier and load it into Postgres.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    start = time.perf_counter()
    try:
        with get_sync_connection(dsn) as conn:
            session = Session(conn)
            try:
                runner = SeedRunner.from_settings(
                    session, settings, size=size, reset=reset, run_id=run_id, batch_size=batch_size, seed=seed
                )
            except ValueError as exc:
                raise typer.BadParameter(str(exc)) from exc
            typer.echo(
                f"Seeding tier '{runner.tier.name}' ({runner.tier.describe()}), run_id={runner.run_id}, "
                f"reset={runner.reset}, batch={runner.batch_size}, seed={seed}"
            )
            summary = runner.run()
            counts = table_counts(session)
    except StorageError as exc:
        typer.echo(f"Seeding aborted: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    duration = time.perf_counter() - start
    created = summary.orders + summary.order_items + summary.users + summary.products + summary.categories
    typer.echo(json.dumps({"created": summary.to_dict(), "table_counts": counts}, indent=2))
    typer.echo(f"Seeding completed in {duration:.2f}s ({created / duration:,.0f} rows/s overall).")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
