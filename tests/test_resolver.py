"""Tests for working-set resolution."""

from pathlib import Path

from multigit.core import Checkout, resolve_working_set


class FakeScanner:
    """Synthetic directory trees: container path -> checkouts found under it."""

    def __init__(self, trees: dict):
        self.trees = {Path(k): [Path(p) for p in v] for k, v in trees.items()}
        self.scanned: list[Path] = []

    def __call__(self, root):
        self.scanned.append(Path(root))
        return list(self.trees.get(Path(root), []))


def paths(checkouts):
    return [c.path for c in checkouts]


def test_union_of_registered_and_scanned():
    scan = FakeScanner({"/repos": ["/repos/b", "/repos/a"], "/work": ["/work/x"]})

    result = resolve_working_set([Path("/solo")], [Path("/work"), Path("/repos")], scan=scan)

    assert paths(result) == [Path("/repos/a"), Path("/repos/b"), Path("/solo"), Path("/work/x")]


def test_deduplicates_by_normalized_path():
    scan = FakeScanner({"/repos": ["/repos/a", "/repos/./b"], "/repos/sub/..": ["/repos/a/"]})

    result = resolve_working_set(
        [Path("/repos/a"), Path("/repos//b")],
        [Path("/repos"), Path("/repos/sub/..")],
        scan=scan,
    )

    assert paths(result) == [Path("/repos/a"), Path("/repos/b")]


def test_registered_checkouts_are_not_reverified(tmp_path):
    gone = tmp_path / "deleted-checkout"

    result = resolve_working_set([gone], [])

    assert paths(result) == [gone]


def test_directory_override_ignores_registry():
    scan = FakeScanner({"/adhoc": ["/adhoc/one"], "/repos": ["/repos/a"]})

    result = resolve_working_set([Path("/solo")], [Path("/repos")], Path("/adhoc"), scan=scan)

    assert paths(result) == [Path("/adhoc/one")]
    assert scan.scanned == [Path("/adhoc")]


def test_empty_container_contributes_nothing():
    scan = FakeScanner({})

    assert resolve_working_set([], [Path("/nowhere")], scan=scan) == []


def test_resolution_is_deterministic(tmp_path, checkout_factory):
    for name in ("zeta", "alpha", "mid/beta", "mid/alpha"):
        checkout_factory(tmp_path / "container" / name)
    solo = checkout_factory(tmp_path / "solo")

    first = resolve_working_set([solo], [tmp_path / "container"])
    second = resolve_working_set([solo], [tmp_path / "container"])

    assert first == second
    assert first == sorted(first)
    assert [c.path.relative_to(tmp_path).as_posix() for c in first] == [
        "container/alpha",
        "container/mid/alpha",
        "container/mid/beta",
        "container/zeta",
        "solo",
    ]


def test_relative_paths_are_made_absolute(tmp_path, checkout_factory, monkeypatch):
    checkout_factory(tmp_path / "repos" / "a")
    monkeypatch.chdir(tmp_path)

    result = resolve_working_set([], [Path("repos")])

    assert result == [Checkout(tmp_path / "repos" / "a")]
