from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from querylab.infrastructure.schema import ORDER_STATUSES
from querylab.seeding.generator import (
    LOOKBACK,
    DatasetGenerator,
    category_seq_pattern,
    email_seq_pattern,
    validate_run_id,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
PRODUCTS = [(pid, Decimal(f"{pid}.25")) for pid in range(1, 11)]
USER_IDS = [101, 102, 103]


def test_run_id_is_accepted_unchanged():
    assert validate_run_id("run1") == "run1"
    assert validate_run_id("20240601t120000z0a1b") == "20240601t120000z0a1b"


@pytest.mark.parametrize("run_id", ["Run1", "run-1", "run_1", "run.1", "run 1", "", "--__--"])
def test_run_id_outside_lowercase_alphanumerics_is_rejected(run_id):
    with pytest.raises(ValueError, match=r"\[a-z0-9\]\+"):
        validate_run_id(run_id)


def test_generator_rejects_run_id_instead_of_rewriting_it():
    with pytest.raises(ValueError):
        DatasetGenerator("run-1", seed=1)


@pytest.mark.parametrize("first, second", [("run1", "run11"), ("runa", "runb"), ("1", "11")])
def test_distinct_run_ids_never_share_keys(first, second):
    # same seed, so only the run id can tell the keys apart
    a, b = DatasetGenerator(first, seed=1), DatasetGenerator(second, seed=1)

    a_categories = {row[0] for row in a.category_rows(50)}
    b_categories = {row[0] for row in b.category_rows(50)}
    a_emails = {row[0] for row in a.user_rows(200)}
    b_emails = {row[0] for row in b.user_rows(200)}

    assert not a_categories & b_categories
    assert not a_emails & b_emails


def test_seq_patterns_recover_sequence_of_own_keys_only():
    generator = DatasetGenerator("run1", seed=4)
    name = generator.category_rows(1, start_seq=17)[0][0]
    email = generator.user_rows(1, start_seq=23)[0][0]

    assert re.search(category_seq_pattern("run1"), name).group(1) == "17"
    assert re.search(email_seq_pattern("run1"), email).group(1) == "23"
    assert re.search(category_seq_pattern("un1"), name) is None
    assert re.search(email_seq_pattern("run11"), email) is None


def test_sequence_offsets_keep_keys_unique_within_a_run():
    generator = DatasetGenerator("gamma", seed=3)
    emails = [row[0] for row in generator.user_rows(5, start_seq=1)]
    emails += [row[0] for row in generator.user_rows(5, start_seq=6)]
    assert len(set(emails)) == 10
    assert all(".gamma." in email and email.endswith("@example.com") for email in emails)


def test_category_names_carry_run_id_and_sequence():
    rows = DatasetGenerator("delta", seed=1).category_rows(3)
    assert [name.rsplit(" ", 1)[1] for name, _ in rows] == ["delta-1", "delta-2", "delta-3"]


def test_product_rows_reference_existing_categories():
    rows = DatasetGenerator("eps", seed=2).product_rows(100, category_ids=[4, 9])
    for name, _description, price, stock, category_id in rows:
        assert name
        assert category_id in (4, 9)
        assert Decimal("1.00") <= price <= Decimal("1000.00")
        assert price == price.quantize(Decimal("0.01"))
        assert 0 <= stock <= 500


def test_product_rows_need_a_category():
    with pytest.raises(ValueError):
        DatasetGenerator("eps").product_rows(1, category_ids=[])


def test_order_totals_are_computed_before_persistence():
    orders = DatasetGenerator("zeta", seed=5).order_batch(50, USER_IDS, PRODUCTS, (1, 5), now=NOW)
    for order in orders:
        expected = sum((item.price * item.quantity for item in order.items), Decimal("0"))
        assert order.total_amount == expected


def test_order_items_are_drawn_without_replacement():
    orders = DatasetGenerator("eta", seed=8).order_batch(200, USER_IDS, PRODUCTS, (1, 10), now=NOW)
    for order in orders:
        product_ids = [item.product_id for item in order.items]
        assert 1 <= len(product_ids) <= 10
        assert len(product_ids) == len(set(product_ids))


def test_item_count_is_capped_by_available_products():
    orders = DatasetGenerator("theta", seed=8).order_batch(20, USER_IDS, PRODUCTS[:2], (5, 8), now=NOW)
    assert all(len(order.items) == 2 for order in orders)


def test_orders_reference_existing_rows_and_stay_in_range():
    prices = dict(PRODUCTS)
    orders = DatasetGenerator("iota", seed=13).order_batch(300, USER_IDS, PRODUCTS, (1, 5), now=NOW)
    for order in orders:
        assert order.user_id in USER_IDS
        assert order.status in ORDER_STATUSES
        assert NOW - LOOKBACK <= order.created_at <= NOW
        for item in order.items:
            assert 1 <= item.quantity <= 5
            assert item.price == prices[item.product_id]


def test_same_seed_reproduces_content():
    first = DatasetGenerator("kappa", seed=21).order_batch(10, USER_IDS, PRODUCTS, (1, 5), now=NOW)
    second = DatasetGenerator("kappa", seed=21).order_batch(10, USER_IDS, PRODUCTS, (1, 5), now=NOW)
    assert first == second
