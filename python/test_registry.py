"""
Test fingerprinting and CombinationRegistry

Tests fingerprint values, order independence, uniqueness and canonical
get-or-insert behavior
"""

from itertools import combinations

from constants import JoinCombination
from errors import InvariantViolationError
from registry import CombinationRegistry, fingerprint


def test_fingerprint_single():
    """Test fingerprints of single tables"""
    assert fingerprint([1], 2) == 1
    assert fingerprint([0], 2) == 0
    print("✓ fingerprint single works")


def test_fingerprint_multiple():
    """Test positional encoding of several tables"""
    # 1 * 1 + 3 * 4
    assert fingerprint([1, 3], 4) == 13

    # 0 * 1 + 1 * 3 + 2 * 9
    assert fingerprint([0, 1, 2], 3) == 21
    print("✓ fingerprint multiple works")


def test_fingerprint_empty():
    """Test that an empty set hashes to zero"""
    assert fingerprint([], 0) == 0
    print("✓ fingerprint empty works")


def test_fingerprint_order_independent():
    """Test that assembly order does not matter"""
    assert fingerprint([3, 1, 2], 5) == fingerprint([1, 2, 3], 5)
    assert fingerprint({4, 0}, 5) == fingerprint((0, 4), 5)
    print("✓ fingerprint order independence works")


def test_fingerprint_unique():
    """Test that distinct member sets never collide"""
    table_num = 7
    seen = {}

    for size in range(1, 5):
        for subset in combinations(range(table_num), size):
            key = fingerprint(subset, table_num)
            assert key not in seen, f"{subset} collides with {seen[key]}"
            seen[key] = subset

    print("✓ fingerprint uniqueness works")


def test_get_or_insert_new():
    """Test inserting a new combination"""
    registry = CombinationRegistry(table_num=3)
    combination = JoinCombination(members=frozenset({0, 1}), extensions=frozenset({2}))

    combination_id, inserted = registry.get_or_insert(combination)

    assert inserted is True
    assert combination_id == 0
    assert registry.get(combination_id) is combination
    assert len(registry) == 1
    assert {0, 1} in registry
    print("✓ get_or_insert new works")


def test_get_or_insert_existing_returns_canonical():
    """Test that the first instance for a member set stays canonical"""
    registry = CombinationRegistry(table_num=3)
    first = JoinCombination(members=frozenset({0, 1}), extensions=frozenset({2}))
    second = JoinCombination(members=frozenset({1, 0}), extensions=frozenset({2}))

    first_id, _ = registry.get_or_insert(first)
    second_id, inserted = registry.get_or_insert(second)

    assert inserted is False
    assert second_id == first_id
    assert registry.get(second_id) is first
    assert len(registry) == 1
    print("✓ get_or_insert existing works")


def test_lookup_and_ids_by_width():
    """Test lookup by members and filtering by width"""
    registry = CombinationRegistry(table_num=3)
    for members in ({0}, {1}, {0, 1}):
        registry.get_or_insert(JoinCombination(members=frozenset(members), extensions=frozenset()))

    assert registry.lookup([1, 0]) == 2
    assert registry.ids_by_width(1) == [0, 1]
    assert registry.ids_by_width(2) == [2]
    assert [c.width for c in registry] == [1, 1, 2]
    print("✓ lookup and ids_by_width work")


def test_lookup_missing_raises():
    """Test that a missing fingerprint is an invariant violation"""
    registry = CombinationRegistry(table_num=3)

    try:
        registry.lookup([0, 2])
    except InvariantViolationError:
        pass
    else:
        raise AssertionError("expected InvariantViolationError")

    try:
        registry.get(5)
    except InvariantViolationError:
        pass
    else:
        raise AssertionError("expected InvariantViolationError")

    print("✓ missing lookups raise")


if __name__ == '__main__':
    print("\nTesting CombinationRegistry...\n")

    test_fingerprint_single()
    test_fingerprint_multiple()
    test_fingerprint_empty()
    test_fingerprint_order_independent()
    test_fingerprint_unique()
    test_get_or_insert_new()
    test_get_or_insert_existing_returns_canonical()
    test_lookup_and_ids_by_width()
    test_lookup_missing_raises()

    print("\n✅ All registry tests passed!\n")
