"""Tests for run-scoped namespaced memory."""

import pytest

from echos.memory import MemoryStore


@pytest.fixture
def store():
    return MemoryStore({"a": {"x": 1}, "b": {"secret": "s"}})


def test_read_view_flattens_granted_namespaces(store):
    assert store.read_view(["a"]) == {"a.x": 1}


def test_read_view_hides_ungranted_namespaces(store):
    view = store.read_view(["a"])
    assert not any(key.startswith("b.") for key in view)


def test_read_view_empty_grant(store):
    assert store.read_view([]) == {}
    assert store.read_view(None) == {}


def test_unknown_namespace_reads_as_empty(store):
    assert store.read_view(["zzz"]) == {}


def test_read_view_values_are_detached():
    store = MemoryStore({"a": {"cfg": {"mode": "safe"}}})

    store.read_view(["a"])["a.cfg"]["mode"] = "changed"

    assert store.get("a", "cfg") == {"mode": "safe"}


def test_write_is_shallow_merge(store):
    store.write("a", {"y": 2})
    store.write("a", {"x": 10})
    assert store.snapshot()["a"] == {"x": 10, "y": 2}


def test_write_creates_namespace(store):
    store.write("new", {"k": "v"})
    assert store.get("new", "k") == "v"
    assert "new" in store.namespaces()


def test_write_rejects_non_mapping(store):
    with pytest.raises(TypeError):
        store.write("a", ["not", "a", "mapping"])


def test_writer_bound_to_one_namespace(store):
    put = store.writer_for("b")
    put({"k": 1})
    assert store.get("b", "k") == 1
    assert store.get("a", "k") is None


def test_no_writer_without_namespace(store):
    assert store.writer_for(None) is None


def test_seed_is_not_mutated():
    seed = {"a": {"x": 1}}
    store = MemoryStore(seed)
    store.write("a", {"x": 2})
    assert seed == {"a": {"x": 1}}


def test_separate_stores_are_disjoint():
    seed = {"shared": {"n": 0}}
    first, second = MemoryStore(seed), MemoryStore(seed)
    first.write("shared", {"n": 1})
    assert second.get("shared", "n") == 0
