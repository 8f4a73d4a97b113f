from __future__ import annotations

import json
import sys
from typing import List, Optional

import typer

from querylab.config import build_dsn, get_settings
from querylab.errors import QueryLabError
from querylab.infrastructure.db_factory import get_sync_connection
from querylab.infrastructure.session import Session, open_session
from querylab.orchestrator import available_use_cases, available_variants, resolve_strategy, run_comparisons
from querylab.reporter import print_results
from querylab.seeding import SEED_TIERS, SeedRunner
from querylab.strategies.order_writes import create_order
from querylab.utils.logging import configure_logging

app = typer.Typer(help="Query Strategy Lab CLI: seed an e-commerce dataset and compare query strategies.")


def _setup_logging() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _redact(dsn: str) -> str:
    scheme, sep, rest = dsn.partition("://")
    if "@" not in rest:
        return dsn
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}{sep}{user}:***@{host}"


def _fail(error: QueryLabError) -> None:
    typer.echo(json.dumps(error.to_envelope(), indent=2), err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values and the registered use cases.
    """
    settings = get_settings()
    typer.echo(
        f"DB={_redact(build_dsn(settings))} | pool={settings.db_pool_min_size}-{settings.db_pool_max_size} "
        f"statement_timeout_ms={settings.db_statement_timeout_ms}"
    )
    typer.echo(
        f"seed size={settings.seed_size} reset={settings.seed_reset} batch={settings.seed_batch_size} | "
        f"page size={settings.default_page_size} (max {settings.max_page_size})"
    )
    for name, tier in SEED_TIERS.items():
        typer.echo(f"  tier {name}: {tier.describe()}")
    for use_case in available_use_cases():
        typer.echo(f"  {use_case}: {', '.join(available_variants(use_case))}")


@app.command()
def seed(
    size: Optional[str] = typer.Option(None, "--size", "-s", help="Dataset tier: small, medium or large."),
    reset: Optional[bool] = typer.Option(
        None, "--reset/--no-reset", help="Drop and recreate the schema before seeding."
    ),
    run_id: Optional[str] = typer.Option(
        None, "--run-id", help="Lowercase [a-z0-9] token that keeps unique keys distinct across runs."
    ),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", help="Rows per insert batch."),
    random_seed: Optional[int] = typer.Option(None, "--seed", help="RNG seed for reproducible content."),
) -> None:
    """
    Generate a dataset tier and load it into PostgreSQL.

    Options left unset fall back to SEED_SIZE, SEED_RESET, SEED_RUN_ID and SEED_BATCH_SIZE.
    """
    _setup_logging()
    try:
        with get_sync_connection() as conn:
            try:
                runner = SeedRunner.from_settings(
                    Session(conn),
                    get_settings(),
                    size=size,
                    reset=reset,
                    run_id=run_id,
                    batch_size=batch_size,
                    seed=random_seed,
                )
            except ValueError as exc:
                raise typer.BadParameter(str(exc)) from exc
            summary = runner.run()
    except QueryLabError as exc:
        _fail(exc)
    typer.echo(json.dumps(summary.to_dict(), indent=2))


@app.command()
def compare(
    use_case: str = typer.Option(
        "pairs",
        "--use-case",
        "-u",
        help="Use case to compare (e.g. users.orders), 'pairs' for every paired use case, or 'all'.",
    ),
    runs: int = typer.Option(1, "--runs", "-n", min=1, help="Measurement runs per variant."),
    warmup: bool = typer.Option(False, "--warmup", help="Run each variant once before measuring."),
    no_persist: bool = typer.Option(False, "--no-persist", help="Do not write results/latest.json."),
) -> None:
    """
    Run the variants of one or more use cases side by side and print the comparison.
    """
    _setup_logging()
    if use_case == "list":
        typer.echo("Available use cases: " + ", ".join(available_use_cases()))
        return
    try:
        results = run_comparisons(use_cases=[use_case], runs=runs, warmup=warmup, persist=not no_persist)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--use-case") from exc
    print_results(results)


@app.command()
def query(
    use_case: str = typer.Argument(..., help="Use case key, e.g. orders.search."),
    variant: Optional[str] = typer.Option(None, "--variant", "-v", help="naive or optimized."),
    params: str = typer.Option("{}", "--params", "-p", help='Request as JSON, e.g. \'{"userId": 3}\'.'),
) -> None:
    """
    Run a single strategy and print its response envelope as JSON.
    """
    _setup_logging()
    try:
        payload = json.loads(params)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not valid JSON: {exc}", param_hint="--params") from exc
    try:
        strategy = resolve_strategy(use_case, variant)  # type: ignore[arg-type]
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        with open_session() as session:
            result = strategy.execute(session, payload)
    except QueryLabError as exc:
        _fail(exc)
    typer.echo(json.dumps(result.to_envelope(), indent=2, default=str))


def _parse_item(raw: str) -> dict:
    product_id, sep, quantity = raw.partition(":")
    if not sep:
        quantity = "1"
    try:
        return {"productId": int(product_id), "quantity": int(quantity)}
    except ValueError as exc:
        raise typer.BadParameter(f"expected PRODUCT_ID[:QUANTITY], got {raw!r}", param_hint="--item") from exc


@app.command("create-order")
def create_order_command(
    user_id: int = typer.Option(..., "--user-id", "-u", help="Id of the ordering user."),
    items: List[str] = typer.Option(..., "--item", "-i", help="PRODUCT_ID[:QUANTITY], repeatable."),
) -> None:
    """
    Create a pending order priced from current product prices.
    """
    _setup_logging()
    payload = {"userId": user_id, "items": [_parse_item(raw) for raw in items]}
    try:
        with open_session() as session:
            result = create_order(session, payload)
    except QueryLabError as exc:
        _fail(exc)
    typer.echo(json.dumps(result.to_envelope(), indent=2, default=str))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
