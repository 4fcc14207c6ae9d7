"""Unit tests for the configuration diff engine."""

from __future__ import annotations

import pytest

from clusterguard._config_loader import parse_config_text
from clusterguard._diff import MISSING, DiffKind, DiffRecord, generate_diff
from clusterguard._preflight_errors import DiffStructureError


def test_identical_trees_produce_no_diff() -> None:
    tree = {"spec": {"network": {"cidr": "10.0.0.0/16"}, "pools": [{"size": 2}]}}
    assert generate_diff(tree, tree) == [], "Identical trees should not differ"


def test_changed_leaf_reports_both_values() -> None:
    records = generate_diff(
        {"spec": {"network": {"cidr": "10.0.0.0/16"}}},
        {"spec": {"network": {"cidr": "10.1.0.0/16"}}},
    )
    assert records == [
        DiffRecord(
            ("spec", "network", "cidr"),
            DiffKind.CHANGED,
            old="10.0.0.0/16",
            new="10.1.0.0/16",
        )
    ], "Expected one changed record for the CIDR"


def test_added_subtree_is_a_single_record() -> None:
    stored = {"spec": {"region": "eu-west-1"}}
    incoming = {"spec": {"region": "eu-west-1", "tags": {"env": "prod", "team": "x"}}}

    records = generate_diff(stored, incoming)

    assert len(records) == 1, "Wholesale additions should be summarised"
    assert records[0].kind is DiffKind.ADDED
    assert records[0].dotted_path == ".spec.tags"
    assert records[0].old is MISSING
    assert records[0].new == {"env": "prod", "team": "x"}


def test_removed_key_reports_old_value() -> None:
    records = generate_diff({"spec": {"a": 1, "b": 2}}, {"spec": {"a": 1}})
    assert [(r.dotted_path, r.kind, r.old) for r in records] == [
        (".spec.b", DiffKind.REMOVED, 2)
    ], "Expected the removed key to carry its stored value"


def test_sequences_compare_by_index() -> None:
    stored = {"pools": [{"name": "a", "size": 1}, {"name": "b", "size": 1}]}
    incoming = {"pools": [{"name": "a", "size": 2}, {"name": "b", "size": 1}, {"name": "c"}]}

    records = generate_diff(stored, incoming)

    assert [(r.dotted_path, r.kind) for r in records] == [
        (".pools.0.size", DiffKind.CHANGED),
        (".pools.2", DiffKind.ADDED),
    ], "Expected positional comparison with trailing addition"


def test_trailing_sequence_elements_are_removed() -> None:
    records = generate_diff({"zones": ["a", "b", "c"]}, {"zones": ["a"]})
    assert [(r.dotted_path, r.kind) for r in records] == [
        (".zones.1", DiffKind.REMOVED),
        (".zones.2", DiffKind.REMOVED),
    ], "Expected one removal per trailing index"


def test_reordered_sequence_reports_changes() -> None:
    records = generate_diff({"zones": ["a", "b"]}, {"zones": ["b", "a"]})
    assert [r.dotted_path for r in records] == [".zones.0", ".zones.1"]


def test_type_mismatch_is_a_leaf_change() -> None:
    records = generate_diff({"spec": {"vpc": {"id": "x"}}}, {"spec": {"vpc": "x"}})
    assert len(records) == 1
    assert records[0].kind is DiffKind.CHANGED
    assert records[0].old == {"id": "x"}
    assert records[0].new == "x"


def test_boolean_never_equals_integer() -> None:
    records = generate_diff({"enabled": True}, {"enabled": 1})
    assert [r.kind for r in records] == [DiffKind.CHANGED], "True and 1 must differ"


def test_int_and_float_compare_numerically() -> None:
    assert generate_diff({"size": 2}, {"size": 2.0}) == []


def test_nan_leaves_compare_equal() -> None:
    tree = parse_config_text("spec:\n  ratio: .nan\n", source="cluster.yaml")

    assert generate_diff(tree, tree) == [], "A .nan leaf should equal itself"
    assert [r.kind for r in generate_diff(tree, {"spec": {"ratio": 0.5}})] == [
        DiffKind.CHANGED
    ]


def test_null_to_value_is_a_change() -> None:
    records = generate_diff({"spec": {"ami": None}}, {"spec": {"ami": "ami-1"}})
    assert [(r.kind, r.old, r.new) for r in records] == [
        (DiffKind.CHANGED, None, "ami-1")
    ], "A null leaf is present, so setting it is a change"


def test_keys_are_visited_in_sorted_order() -> None:
    stored = {"b": 1, "a": 1, "c": 1}
    incoming = {"c": 2, "a": 2, "b": 2}
    assert [r.dotted_path for r in generate_diff(stored, incoming)] == [".a", ".b", ".c"]


def test_non_string_keys_sort_after_string_keys() -> None:
    records = generate_diff({1: "x", "z": "x"}, {1: "y", "z": "y"})
    assert [r.path for r in records] == [("z",), (1,)]


def test_output_is_deterministic() -> None:
    stored = {"spec": {"x": [1, 2, {"k": "v"}], "y": {"z": None}}}
    incoming = {"spec": {"x": [1, 3], "y": {"z": False}, "w": "new"}}
    first = generate_diff(stored, incoming)
    assert all(generate_diff(stored, incoming) == first for _ in range(5))


def test_inputs_are_not_mutated() -> None:
    stored = {"spec": {"pools": [{"size": 1}]}}
    incoming = {"spec": {"pools": [{"size": 2}], "extra": {}}}
    before = (repr(stored), repr(incoming))
    generate_diff(stored, incoming)
    assert (repr(stored), repr(incoming)) == before


@pytest.mark.parametrize(
    ("stored", "incoming"),
    [("scalar", {}), ({}, ["a", "list"]), (None, {}), ({}, 3)],
)
def test_non_mapping_root_is_rejected(stored: object, incoming: object) -> None:
    with pytest.raises(DiffStructureError, match="mapping at its root"):
        generate_diff(stored, incoming)


def test_describe_renders_each_kind() -> None:
    assert DiffRecord(("a",), DiffKind.ADDED, new=1).describe() == "added .a: 1"
    assert DiffRecord(("a",), DiffKind.REMOVED, old=1).describe() == "removed .a: 1"
    assert (
        DiffRecord(("a", 0), DiffKind.CHANGED, old="x", new="y").describe()
        == "changed .a.0: 'x' -> 'y'"
    )
