"""Tests for the filter evaluator."""

from pathlib import Path

import pytest

from conftest import FakeRepo
from multigit.core import Checkout, Filter, apply_filters, resolve_working_set

A, B, C = Checkout(Path("/repos/a")), Checkout(Path("/repos/b")), Checkout(Path("/repos/c"))


@pytest.mark.parametrize("filters", [None, []])
def test_no_filters_is_identity(fake_inspect, filters):
    inspect = fake_inspect({})
    working_set = [A, B, C]

    assert apply_filters(working_set, filters, inspect) == working_set
    assert inspect.calls == []


def test_dirty_filter(fake_inspect):
    inspect = fake_inspect({"/repos/a": FakeRepo(dirty=False), "/repos/b": FakeRepo(dirty=True)})

    assert apply_filters([A, B], [Filter.DIRTY], inspect) == [B]


def test_filters_are_ored_and_order_is_kept(fake_inspect):
    inspect = fake_inspect(
        {
            "/repos/a": FakeRepo(tracking=True),
            "/repos/b": FakeRepo(),
            "/repos/c": FakeRepo(dirty=True),
        }
    )

    result = apply_filters([A, B, C], [Filter.DIRTY, Filter.TRACKING], inspect)

    assert result == [A, C]


def test_filter_that_matches_nothing(fake_inspect):
    inspect = fake_inspect({"/repos/a": FakeRepo(), "/repos/b": FakeRepo()})

    assert apply_filters([A, B], [Filter.TRACKING], inspect) == []


def test_inspection_failure_drops_checkout(fake_inspect):
    inspect = fake_inspect(
        {
            "/repos/a": FakeRepo(dirty=True),
            "/repos/b": FakeRepo(broken=True),
            "/repos/c": FakeRepo(dirty=True),
        }
    )
    failures = []

    result = apply_filters(
        [A, B, C], [Filter.DIRTY], inspect, on_error=lambda c, e: failures.append(c)
    )

    assert result == [A, C]
    assert failures == [B]


def test_result_is_ordered_subset(fake_inspect):
    working_set = [Checkout(Path(f"/repos/{n}")) for n in "abcdefg"]
    inspect = fake_inspect({c.path: FakeRepo(dirty=i % 2 == 0) for i, c in enumerate(working_set)})

    result = apply_filters(working_set, [Filter.DIRTY], inspect)

    assert result == [c for c in working_set if c in result]
    assert set(result) <= set(working_set)


def test_container_with_dirty_filter(tmp_path, checkout_factory, fake_inspect):
    repos = tmp_path / "repos"
    clean = checkout_factory(repos / "a")
    dirty = checkout_factory(repos / "b")
    inspect = fake_inspect({clean: FakeRepo(), dirty: FakeRepo(dirty=True)})

    working_set = resolve_working_set([], [repos])

    assert apply_filters(working_set, [Filter.DIRTY], inspect) == [Checkout(dirty)]
