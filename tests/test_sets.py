import pytest

from wbkit.errors.sets import StringSet, string_key_set


def test_insert_returns_same_set_and_adds_members():
    s = StringSet()
    assert s.insert("a", "b") is s
    assert s.has("a")
    assert s.has("b")
    assert not s.has("c")


def test_delete_removes_and_ignores_missing():
    s = StringSet(["a", "b", "c"])
    assert s.delete("b", "missing") is s
    assert not s.has("b")
    assert s.has_all("a", "c")


def test_has_all_and_has_any():
    s = StringSet(["x", "y"])
    assert s.has_all("x", "y")
    assert not s.has_all("x", "z")
    assert s.has_any("z", "y")
    assert not s.has_any("z", "w")
    assert s.has_all()
    assert not s.has_any()


def test_difference_matches_documented_example():
    s = StringSet(["a1", "a2", "a3"])
    s2 = StringSet(["a1", "a2", "a4", "a5"])
    assert s.difference(s2) == {"a3"}
    assert s2.difference(s) == {"a4", "a5"}
    assert isinstance(s.difference(s2), StringSet)


def test_union_matches_documented_example():
    s = StringSet(["a1", "a2"])
    s2 = StringSet(["a3", "a4"])
    assert s.union(s2) == {"a1", "a2", "a3", "a4"}
    assert s.union(s2).equal(s2.union(s))


def test_intersection_matches_documented_example():
    s = StringSet(["a1", "a2"])
    s2 = StringSet(["a2", "a3"])
    result = s.intersection(s2)
    assert result == {"a2"}
    assert isinstance(result, StringSet)


def test_superset_and_equal():
    big = StringSet(["a", "b", "c"])
    small = StringSet(["a", "b"])
    assert big.is_superset(small)
    assert not small.is_superset(big)
    assert not big.equal(small)
    assert big.equal(StringSet(["c", "b", "a"]))


def test_sorted_list_is_ordered():
    s = StringSet(["b", "c", "a"])
    assert s.sorted_list() == ["a", "b", "c"]


def test_unsorted_list_has_same_members_as_sorted_list():
    s = StringSet(["q", "m", "z", "d"])
    assert sorted(s.unsorted_list()) == s.sorted_list()
    assert len(s.unsorted_list()) == len(s)


def test_pop_any_on_empty_returns_none():
    assert StringSet().pop_any() is None


def test_pop_any_removes_a_member():
    s = StringSet(["only"])
    assert s.pop_any() == "only"
    assert len(s) == 0


def test_string_key_set_uses_mapping_keys():
    result = string_key_set({"k1": 1, "k2": object()})
    assert result.equal(StringSet(["k1", "k2"]))


def test_string_key_set_rejects_non_mapping():
    with pytest.raises(TypeError):
        string_key_set(["k1", "k2"])


def test_string_key_set_rejects_non_string_keys():
    with pytest.raises(TypeError):
        string_key_set({1: "a"})