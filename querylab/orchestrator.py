"""
Orchestrator for running strategy variants side by side, profiling each run,
checking the variants agree, and persisting the comparison.

Usage (example from CLI):
    from querylab.orchestrator import run_comparisons

    results = run_comparisons(use_cases=["users.orders", "products.report"])
    print(results)

Outputs are saved to `results/` by default:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import statistics
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Mapping, Optional, Tuple

from querylab.config import get_settings
from querylab.diagnostics import CountingRecorder, Recorder
from querylab.domain.results import EntityResult, Result
from querylab.equivalence import outputs_equivalent
from querylab.errors import UnknownStrategyError
from querylab.infrastructure.session import Session, open_session
from querylab.strategies.abstract import QueryStrategy, Variant
from querylab.strategies.orders import (
    DailyOrderReportStrategy,
    OrderDetailStrategy,
    OrderFullDetailStrategy,
    OrderLookupStrategy,
    OrderSearchStrategy,
    OrdersPageStrategy,
)
from querylab.strategies.products import (
    CategorySummaryStrategy,
    ProductLookupStrategy,
    ProductReportAggregatedStrategy,
    ProductReportInMemoryStrategy,
    ProductSearchStrategy,
    ProductsPageStrategy,
)
from querylab.strategies.users import (
    AllUsersStrategy,
    PaginatedUsersStrategy,
    UserExportStrategy,
    UserLookupStrategy,
    UserOrdersEagerStrategy,
    UserOrdersNPlusOneStrategy,
    UsersByDateStrategy,
)
from querylab.utils.logging import bind_context, get_logger
from querylab.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

SessionFactory = Callable[[Optional[Recorder]], ContextManager[Session]]
RequestPayload = Dict[str, Any]


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _round_stats(stats: dict, decimals: int = 2) -> dict:
    """Round all float values in a stats dictionary."""
    return {k: _round_float(v, decimals) if isinstance(v, float) else v for k, v in stats.items()}


def _summarize(values: List[float], decimals: int = 2) -> dict:
    return _round_stats(
        {
            "median": statistics.median(values),
            "mean": statistics.mean(values),
            "stddev": statistics.stdev(values) if len(values) > 1 else 0.0,
            "min": min(values),
            "max": max(values),
        },
        decimals=decimals,
    )


def _aggregate_runs(run_results: List[dict]) -> dict:
    """
    Aggregate multiple runs of one variant into a statistical summary.

    Duration gets median/mean/stddev/min/max; memory and CPU are summarized when
    the profiler captured them. Rows and round trips are deterministic for a
    fixed dataset, so the first run's values are reported.
    """
    durations = [r["duration_seconds"] for r in run_results]
    cpu_percents = [r["cpu_percent"] for r in run_results if r.get("cpu_percent")]
    peak_rss_values = [r["peak_rss_bytes"] for r in run_results if r.get("peak_rss_bytes")]

    aggregated = {
        "duration_seconds": _summarize(durations, decimals=4),
        "rows": run_results[0]["rows"],
        "queries": run_results[0]["queries"],
        "errors": sum(1 for r in run_results if r.get("error")),
    }
    if cpu_percents:
        aggregated["cpu_percent"] = _summarize(cpu_percents, decimals=1)
    if peak_rss_values:
        aggregated["peak_rss_bytes"] = {
            "median": int(statistics.median(peak_rss_values)),
            "mean": int(statistics.mean(peak_rss_values)),
            "stddev": int(statistics.stdev(peak_rss_values)) if len(peak_rss_values) > 1 else 0,
            "min": min(peak_rss_values),
            "max": max(peak_rss_values),
        }
    return aggregated


def _strategy_factories() -> Dict[str, Dict[Variant, Callable[[], QueryStrategy]]]:
    """Registry of use cases and the variants that serve them."""
    return {
        "users.list": {"naive": AllUsersStrategy, "optimized": PaginatedUsersStrategy},
        "users.orders": {"naive": UserOrdersNPlusOneStrategy, "optimized": UserOrdersEagerStrategy},
        "users.by_date": {"naive": UsersByDateStrategy},
        "users.get": {"optimized": UserLookupStrategy},
        "users.export": {"naive": UserExportStrategy},
        "orders.search": {"naive": OrderSearchStrategy},
        "orders.detail": {"naive": OrderFullDetailStrategy, "optimized": OrderDetailStrategy},
        "orders.get": {"optimized": OrderLookupStrategy},
        "orders.list": {"optimized": OrdersPageStrategy},
        "orders.daily_report": {"naive": DailyOrderReportStrategy},
        "products.search": {"naive": ProductSearchStrategy},
        "products.report": {
            "naive": ProductReportInMemoryStrategy,
            "optimized": ProductReportAggregatedStrategy,
        },
        "products.list": {"optimized": ProductsPageStrategy},
        "products.get": {"optimized": ProductLookupStrategy},
        "products.categories": {"optimized": CategorySummaryStrategy},
    }


def available_use_cases() -> List[str]:
    """List every registered use case key."""
    return sorted(_strategy_factories().keys())


def paired_use_cases() -> List[str]:
    """Use cases served by both a naive and an optimized variant."""
    return sorted(key for key, variants in _strategy_factories().items() if len(variants) == 2)


def available_variants(use_case: str) -> List[Variant]:
    factories = _strategy_factories()
    if use_case not in factories:
        raise UnknownStrategyError(f"Unknown use case '{use_case}'. Available: {', '.join(sorted(factories))}")
    return sorted(factories[use_case])


def resolve_strategy(use_case: str, variant: Optional[Variant] = None) -> QueryStrategy:
    """
    Instantiate the strategy registered for ``use_case``/``variant``.

    With no variant, the optimized one is preferred when it exists.
    """
    variants = _strategy_factories().get(use_case)
    if variants is None:
        raise UnknownStrategyError(f"Unknown use case '{use_case}'. Available: {', '.join(available_use_cases())}")
    if variant is None:
        variant = "optimized" if "optimized" in variants else "naive"
    if variant not in variants:
        raise UnknownStrategyError(
            f"Use case '{use_case}' has no {variant} variant. Available: {', '.join(sorted(variants))}"
        )
    return variants[variant]()


def sample_request(session: Session, use_case: str) -> RequestPayload:
    """
    Pick a representative request for ``use_case`` from the seeded data.

    Lookups target the busiest user and the first order/product so that the
    naive variants actually have a graph to walk.
    """
    if use_case == "users.orders":
        user_id = session.fetch_value(
            "SELECT user_id FROM orders GROUP BY user_id ORDER BY COUNT(*) DESC, user_id LIMIT 1",
            label="sample.busiest_user",
        )
        return {"userId": user_id or 1}
    if use_case in ("orders.detail", "orders.get"):
        return {"id": session.fetch_value("SELECT MIN(id) FROM orders", label="sample.order") or 1}
    if use_case == "users.get":
        return {"id": session.fetch_value("SELECT MIN(id) FROM users", label="sample.user") or 1}
    if use_case == "products.get":
        return {"id": session.fetch_value("SELECT MIN(id) FROM products", label="sample.product") or 1}
    if use_case == "products.search":
        name = session.fetch_value("SELECT name FROM products ORDER BY id LIMIT 1", label="sample.product_name")
        return {"query": name.split()[-1].lower() if name else ""}
    if use_case in ("users.list", "orders.list", "products.list"):
        return {"page": 1, "pageSize": get_settings().default_page_size}
    return {}


def _row_count(result: Optional[Result]) -> int:
    if result is None:
        return 0
    if isinstance(result, EntityResult):
        return 1
    return len(result.data)


def _merge_result(
    strategy: QueryStrategy,
    result: Optional[Result],
    stats: ProfileStats,
    recorder: CountingRecorder,
    error: Optional[str],
) -> dict:
    """Merge a strategy outcome with profiler stats and round-trip counts."""
    return {
        "strategy": strategy.name,
        "variant": strategy.variant,
        "rows": _row_count(result),
        "queries": recorder.queries,
        "duration_seconds": _round_float(stats.duration_seconds, 4),
        "peak_rss_bytes": stats.peak_rss_bytes,
        "rss_growth_bytes": stats.rss_growth_bytes,
        "peak_traced_bytes": stats.peak_traced_bytes,
        "cpu_percent": _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None,
        "warning": getattr(result, "warning", None) or getattr(strategy, "warning", None),
        "error": error,
    }


def _profiled_execute(
    strategy: QueryStrategy,
    request: Mapping[str, Any],
    session_factory: SessionFactory,
) -> Tuple[dict, Optional[Result]]:
    label = f"{strategy.use_case}/{strategy.variant}"
    recorder = CountingRecorder()
    result: Optional[Result] = None
    error: Optional[str] = None

    slog = bind_context(log, use_case=strategy.use_case, variant=strategy.variant, strategy=strategy.name)
    slog.info(f"[STRATEGY START] {label}")
    with profile_block(label) as stats:
        try:
            with session_factory(recorder) as session:
                result = strategy.execute(session, dict(request))
            slog.info(
                f"[STRATEGY SUCCESS] {label}",
                extra={"rows": _row_count(result), "queries": recorder.queries},
            )
        except Exception as exc:  # noqa: BLE001 - intentional broad catch to record failures
            slog.exception(f"[STRATEGY FAILED] {label}")
            error = str(exc)

    return _merge_result(strategy, result, stats, recorder, error), result


def compare_use_case(
    use_case: str,
    request: Optional[Mapping[str, Any]] = None,
    runs: int = 1,
    warmup: bool = False,
    session_factory: SessionFactory = open_session,
) -> dict:
    """
    Run every variant of ``use_case`` with the same request.

    Parameters
    ----------
    use_case : str
        Registered use case key, e.g. ``"users.orders"``.
    request : mapping | None
        Request payload shared by the variants. Sampled from the data when None.
    runs : int
        Measurement runs per variant; more than one adds aggregated statistics.
    warmup : bool
        Whether to run each variant once, unmeasured, before measuring.
    session_factory : callable
        Opens a session bound to a recorder; defaults to a pooled connection.

    Returns
    -------
    dict
        ``use_case``, ``request``, one entry per variant under ``variants``,
        and ``equivalent`` (None unless both variants of a pair succeeded).
    """
    if runs < 1:
        raise ValueError("runs must be >= 1")
    variants = available_variants(use_case)
    if request is None:
        with session_factory(None) as session:
            request = sample_request(session, use_case)

    entries: List[dict] = []
    outputs: Dict[str, Optional[Result]] = {}
    for variant in variants:
        if warmup:
            log.info(f"[WARMUP] {use_case}/{variant}", extra={"use_case": use_case, "variant": variant})
            _profiled_execute(resolve_strategy(use_case, variant), request, session_factory)

        run_results: List[dict] = []
        last_output: Optional[Result] = None
        for run_num in range(1, runs + 1):
            entry, last_output = _profiled_execute(resolve_strategy(use_case, variant), request, session_factory)
            entry["run"] = run_num
            run_results.append(entry)

        if runs > 1:
            summary = {k: v for k, v in run_results[-1].items() if k not in ("run",)}
            summary.update(_aggregate_runs(run_results))
            summary["runs"] = runs
            summary["individual_runs"] = run_results
            entries.append(summary)
        else:
            entries.append(run_results[0])
        outputs[variant] = last_output

    equivalent: Optional[bool] = None
    naive, optimized = outputs.get("naive"), outputs.get("optimized")
    if naive is not None and optimized is not None:
        equivalent = outputs_equivalent(use_case, naive, optimized, request)
        if not equivalent:
            log.warning(f"[EQUIVALENCE] {use_case} variants disagree", extra={"use_case": use_case})

    return {
        "use_case": use_case,
        "request": dict(request),
        "variants": entries,
        "equivalent": equivalent,
    }


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for path in (latest_path, archive_path):
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, default=str)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_comparisons(
    use_cases: Optional[Iterable[str]] = None,
    runs: int = 1,
    warmup: bool = False,
    results_dir: Optional[Path | str] = None,
    persist: bool = True,
    session_factory: SessionFactory = open_session,
) -> List[dict]:
    """
    Compare one or more use cases and optionally persist the results.

    ``None`` or ``["all"]`` selects every registered use case; ``["pairs"]``
    selects only those with both variants.
    """
    names = list(use_cases) if use_cases is not None else ["all"]
    if names == ["all"]:
        names = available_use_cases()
    elif names == ["pairs"]:
        names = paired_use_cases()
    for name in names:
        available_variants(name)

    results: List[dict] = []
    for index, name in enumerate(names, start=1):
        log.info(f"{'=' * 60}")
        log.info(f"[USE CASE {index}/{len(names)}] {name}", extra={"use_case": name})
        log.info(f"{'=' * 60}")
        results.append(compare_use_case(name, runs=runs, warmup=warmup, session_factory=session_factory))

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "runs": runs,
        "use_cases": names,
        "results": results,
    }
    if persist:
        _persist_results(payload, Path(results_dir or get_settings().results_dir))

    log.info(
        f"[ORCHESTRATOR COMPLETE] {len(names)} use case(s) compared",
        extra={"use_cases": names, "total_use_cases": len(names)},
    )
    return results


__all__ = [
    "available_use_cases",
    "available_variants",
    "compare_use_case",
    "paired_use_cases",
    "resolve_strategy",
    "run_comparisons",
    "sample_request",
]
