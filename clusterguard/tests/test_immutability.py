"""Unit tests for the immutability checker."""

from __future__ import annotations

from clusterguard._diff import DiffKind, DiffRecord, generate_diff
from clusterguard._immutability import assert_immutable_violations
from clusterguard._preflight_errors import ImmutableViolation

STORED = {"spec": {"network": {"cidr": "10.0.0.0/16"}}}
INCOMING = {"spec": {"network": {"cidr": "10.1.0.0/16"}}}


def test_prefix_rule_flags_descendant_change() -> None:
    diffs = generate_diff(STORED, INCOMING)

    violations = assert_immutable_violations(diffs, ["spec.network"])

    assert len(violations) == 1, "Expected exactly one violation"
    violation = violations[0]
    assert isinstance(violation, ImmutableViolation)
    assert violation.path == ".spec.network.cidr"
    assert violation.pattern == ".spec.network"
    assert (violation.old, violation.new) == ("10.0.0.0/16", "10.1.0.0/16")


def test_unrelated_addition_is_not_a_violation() -> None:
    incoming = {"spec": {"network": {"cidr": "10.0.0.0/16"}, "tags": {"env": "prod"}}}
    diffs = generate_diff(STORED, incoming)

    assert [(d.dotted_path, d.kind) for d in diffs] == [(".spec.tags", DiffKind.ADDED)]
    assert assert_immutable_violations(diffs, [".spec.network"]) == []


def test_no_patterns_means_no_violations() -> None:
    diffs = generate_diff(STORED, INCOMING)
    assert assert_immutable_violations(diffs, []) == []


def test_empty_diff_means_no_violations() -> None:
    assert assert_immutable_violations([], [".spec"]) == []


def test_every_matching_pattern_yields_a_violation() -> None:
    diffs = generate_diff(STORED, INCOMING)

    violations = assert_immutable_violations(
        diffs, [".spec", ".spec.network", ".spec.network.cidr"]
    )

    assert [v.pattern for v in violations] == [
        ".spec",
        ".spec.network",
        ".spec.network.cidr",
    ], "No deduplication across patterns"


def test_all_violating_records_are_collected() -> None:
    stored = {"spec": {"region": "eu-west-1", "vpc": "a", "tags": {}}}
    incoming = {"spec": {"region": "eu-south-1", "vpc": "b", "tags": {"x": 1}}}
    diffs = generate_diff(stored, incoming)

    violations = assert_immutable_violations(diffs, [".spec.region", ".spec.vpc"])

    assert [v.path for v in violations] == [".spec.region", ".spec.vpc"]


def test_removed_subtree_containing_immutable_path_is_a_violation() -> None:
    diffs = generate_diff(STORED, {"spec": {}})

    violations = assert_immutable_violations(diffs, [".spec.network.cidr"])

    assert len(violations) == 1
    assert violations[0].path == ".spec.network"
    assert violations[0].old == {"cidr": "10.0.0.0/16"}
    assert violations[0].new is None


def test_added_subtree_without_immutable_path_is_allowed() -> None:
    diffs = generate_diff({"spec": {}}, {"spec": {"network": {"mtu": 1500}}})

    assert assert_immutable_violations(diffs, [".spec.network.cidr"]) == [], (
        "Adding a block that lacks the immutable key changes nothing immutable"
    )


def test_added_subtree_containing_immutable_path_is_a_violation() -> None:
    diffs = generate_diff({"spec": {}}, {"spec": {"network": {"cidr": "10.0.0.0/16"}}})

    (violation,) = assert_immutable_violations(diffs, [".spec.network.cidr"])

    assert violation.path == ".spec.network"
    assert (violation.old, violation.new) == (None, {"cidr": "10.0.0.0/16"})


def test_removed_element_without_wildcard_target_is_allowed() -> None:
    stored = {"spec": {"nodePools": [{"type": "spot"}, {"size": 2}]}}
    incoming = {"spec": {"nodePools": [{"type": "spot"}]}}
    diffs = generate_diff(stored, incoming)

    assert assert_immutable_violations(diffs, [".spec.nodePools.*.type"]) == []


def test_removed_element_with_wildcard_target_is_a_violation() -> None:
    stored = {"spec": {"nodePools": [{"type": "spot"}, {"type": "on-demand"}]}}
    incoming = {"spec": {"nodePools": [{"type": "spot"}]}}
    diffs = generate_diff(stored, incoming)

    violations = assert_immutable_violations(diffs, [".spec.nodePools.*.type"])

    assert [v.path for v in violations] == [".spec.nodePools.1"]


def test_type_change_dropping_immutable_key_is_a_violation() -> None:
    diffs = [
        DiffRecord(("spec", "network"), DiffKind.CHANGED, old={"cidr": "a"}, new="x")
    ]
    assert len(assert_immutable_violations(diffs, [".spec.network.cidr"])) == 1


def test_changed_ancestor_of_type_mismatch_is_a_violation_only_when_matched() -> None:
    diffs = [DiffRecord(("spec", "network"), DiffKind.CHANGED, old={}, new="x")]
    assert assert_immutable_violations(diffs, [".spec.network.cidr"]) == []
    assert len(assert_immutable_violations(diffs, [".spec.network"])) == 1


def test_wildcard_rule_flags_any_node_pool() -> None:
    stored = {"spec": {"nodePools": [{"type": "spot"}, {"type": "on-demand"}]}}
    incoming = {"spec": {"nodePools": [{"type": "spot"}, {"type": "spot"}]}}
    diffs = generate_diff(stored, incoming)

    violations = assert_immutable_violations(diffs, [".spec.nodePools.*.type"])

    assert [v.path for v in violations] == [".spec.nodePools.1.type"]


def test_category_is_attached_and_described() -> None:
    diffs = generate_diff(STORED, INCOMING)

    (violation,) = assert_immutable_violations(
        diffs, [".spec.network"], category="infrastructure"
    )

    assert violation.category == "infrastructure"
    assert violation.describe() == (
        "infrastructure: immutable path changed: .spec.network.cidr "
        "('10.0.0.0/16' -> '10.1.0.0/16')"
    )


def test_checker_does_not_mutate_inputs() -> None:
    diffs = generate_diff(STORED, INCOMING)
    patterns = [".spec.network"]
    snapshot = (list(diffs), list(patterns))

    assert_immutable_violations(diffs, patterns)

    assert (diffs, patterns) == snapshot
