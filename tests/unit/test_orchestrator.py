from __future__ import annotations

import contextlib
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from querylab import orchestrator
from querylab.diagnostics import CountingRecorder
from querylab.domain.models import User
from querylab.domain.results import PlainResult
from querylab.errors import UnknownStrategyError
from querylab.orchestrator import (
    available_use_cases,
    compare_use_case,
    paired_use_cases,
    resolve_strategy,
    run_comparisons,
)
from querylab.utils.profiler import ProfileStats

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
MEASUREMENT_RUN_COUNT = 3


def _users(count: int) -> list:
    return [
        User(id=i, email=f"u{i}@example.com", name="U", created_at=NOW, updated_at=NOW) for i in range(1, count + 1)
    ]


class _StubStrategy:
    use_case = "stub.list"
    variant = "naive"
    name = "stub_naive"
    description = "issues one round trip per row"
    warning = "slow on purpose"
    rows = 3
    instances = 0

    def __init__(self) -> None:
        type(self).instances += 1

    def execute(self, session, request=None):
        for _ in range(self.rows):
            session.recorder.record("db.query", {"label": "stub"})
        return PlainResult(data=_users(self.rows), total=self.rows, warning=self.warning)


class _OptimizedStub(_StubStrategy):
    variant = "optimized"
    name = "stub_optimized"
    warning = None
    rows = 3

    def execute(self, session, request=None):
        session.recorder.record("db.query", {"label": "stub"})
        return PlainResult(data=_users(self.rows), total=self.rows)


class _DivergentStub(_OptimizedStub):
    rows = 2


class _FailingStub(_OptimizedStub):
    def execute(self, session, request=None):
        raise RuntimeError("intentional failure")


class _FakeSession:
    def __init__(self, recorder) -> None:
        self.recorder = recorder or CountingRecorder()


@contextlib.contextmanager
def _fake_session_factory(recorder=None):
    yield _FakeSession(recorder)


@pytest.fixture
def stub_registry(monkeypatch):
    registry = {"stub.list": {"naive": _StubStrategy, "optimized": _OptimizedStub}}
    monkeypatch.setattr(orchestrator, "_strategy_factories", lambda: registry)
    _StubStrategy.instances = 0
    return registry


def test_registry_covers_every_pair_and_single_variant():
    assert paired_use_cases() == ["orders.detail", "products.report", "users.list", "users.orders"]
    for single in ("users.by_date", "orders.search", "products.search"):
        assert single in available_use_cases()
        assert orchestrator.available_variants(single) == ["naive"]
    assert available_use_cases() == sorted(available_use_cases())


def test_resolve_strategy_prefers_optimized_variant():
    assert resolve_strategy("users.orders").variant == "optimized"
    assert resolve_strategy("users.orders", "naive").name == "user_orders_n_plus_one"
    assert resolve_strategy("products.search").variant == "naive"


def test_resolve_strategy_rejects_unknown_names():
    with pytest.raises(UnknownStrategyError):
        resolve_strategy("users.nope")
    with pytest.raises(UnknownStrategyError, match="no optimized variant"):
        resolve_strategy("orders.search", "optimized")


def test_compare_counts_round_trips_and_checks_equivalence(stub_registry):
    result = compare_use_case("stub.list", request={}, session_factory=_fake_session_factory)

    naive, optimized = result["variants"]
    assert (naive["variant"], naive["queries"], naive["rows"]) == ("naive", 3, 3)
    assert (optimized["variant"], optimized["queries"], optimized["rows"]) == ("optimized", 1, 3)
    assert naive["warning"] == "slow on purpose"
    assert naive["error"] is None
    assert naive["duration_seconds"] >= 0
    assert result["equivalent"] is True


def test_compare_flags_divergent_outputs(stub_registry):
    stub_registry["stub.list"]["optimized"] = _DivergentStub
    result = compare_use_case("stub.list", request={}, session_factory=_fake_session_factory)
    assert result["equivalent"] is False


def test_compare_records_failures_without_raising(stub_registry):
    stub_registry["stub.list"]["optimized"] = _FailingStub
    result = compare_use_case("stub.list", request={}, session_factory=_fake_session_factory)

    failed = result["variants"][1]
    assert failed["error"] == "intentional failure"
    assert failed["rows"] == 0
    assert result["equivalent"] is None


def test_compare_aggregates_repeated_runs(stub_registry):
    result = compare_use_case(
        "stub.list",
        request={},
        runs=MEASUREMENT_RUN_COUNT,
        warmup=True,
        session_factory=_fake_session_factory,
    )

    naive = result["variants"][0]
    assert naive["runs"] == MEASUREMENT_RUN_COUNT
    assert len(naive["individual_runs"]) == MEASUREMENT_RUN_COUNT
    assert set(naive["duration_seconds"]) == {"median", "mean", "stddev", "min", "max"}
    assert naive["queries"] == 3
    # one warmup plus the measured runs, each with a fresh instance
    assert _StubStrategy.instances == 1 + MEASUREMENT_RUN_COUNT


def test_run_comparisons_persists_latest_and_archive(stub_registry, tmp_path: Path):
    results = run_comparisons(
        use_cases=["stub.list"],
        results_dir=tmp_path,
        session_factory=_fake_session_factory,
    )

    latest = json.loads((tmp_path / "latest.json").read_text(encoding="utf-8"))
    archives = list(tmp_path.glob("run-*.json"))
    assert latest["use_cases"] == ["stub.list"]
    assert latest["results"][0]["equivalent"] is True
    assert len(archives) == 1
    assert results[0]["use_case"] == "stub.list"


def test_run_comparisons_validates_names_before_running(stub_registry, tmp_path: Path):
    with pytest.raises(UnknownStrategyError):
        run_comparisons(use_cases=["stub.list", "missing"], results_dir=tmp_path, session_factory=_fake_session_factory)
    assert not (tmp_path / "latest.json").exists()


def test_merge_result_reports_profiler_and_recorder():
    recorder = CountingRecorder()
    recorder.record("db.query", {"label": "a"})
    recorder.record("db.query", {"label": "b"})
    recorder.record("db.transaction", {"label": "t"})
    stats = ProfileStats(label="test", duration_seconds=0.123456, peak_rss_bytes=123, cpu_percent=12.34)

    merged = orchestrator._merge_result(
        _OptimizedStub(), PlainResult(data=_users(2), total=2), stats, recorder, None
    )

    assert recorder.labels() == ["a", "b"]
    assert recorder.labels("db.transaction") == ["t"]
    assert merged["queries"] == 2
    assert merged["rows"] == 2
    assert merged["duration_seconds"] == 0.1235
    assert merged["peak_rss_bytes"] == 123
    assert merged["cpu_percent"] == 12.3
