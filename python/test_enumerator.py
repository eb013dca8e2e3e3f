"""
Test JoinPlanner implementation

Tests combination enumeration, width bounds, deduplication, edges and
agreement with brute-force enumeration
"""

from constants import ForeignKey, TableDefinition
from enumerator import JoinPlanner, enumerate_connected_subsets
from join_graph import SchemaGraph


def _table(name, *targets):
    """TableDefinition with one foreign key per target"""
    return TableDefinition(
        name=name,
        foreign_keys=[ForeignKey(columns=[f"{t}_id"], ref_table=t) for t in targets]
    )


def _plan(definitions, join_num=5):
    planner = JoinPlanner(SchemaGraph.from_definitions(definitions))
    planner.plan(join_num)
    return planner


def _named(planner, members):
    return frozenset(planner.graph.node(index).name for index in members)


def _joined_sets(planner):
    """Member name sets of all combinations with two or more tables"""
    return [
        _named(planner, combination.members)
        for combination in planner.registry
        if combination.width >= 2
    ]


def _blog_schema():
    """Star-and-cycle schema plus one isolated table"""
    return [
        _table('users'),
        _table('posts', 'users'),
        _table('comments', 'posts', 'users'),
        _table('tags'),
        _table('post_tags', 'posts', 'tags'),
        _table('likes', 'comments', 'users'),
        _table('settings'),
    ]


def test_single_table():
    """Test planning with a single table and no references"""
    planner = _plan([_table('a')])

    assert len(planner.registry) == 1
    assert _joined_sets(planner) == []
    assert planner.table_ref_joined_tables[0] == {}
    assert planner.table_bridges[0] == {}

    print("✓ single table works")


def test_two_tables():
    """Test planning with one reference a -> b"""
    planner = _plan([_table('a', 'b'), _table('b')])

    assert _joined_sets(planner) == [frozenset({'a', 'b'})]
    assert planner.counts() == {1: 2, 2: 1}

    joined_id = planner.registry.lookup({0, 1})
    assert joined_id in planner.table_ref_joined_tables[0].values()
    assert joined_id in planner.table_ref_joined_tables[1].values()
    assert planner.table_bridges[0] == {1: joined_id}
    assert planner.table_bridges[1] == {}

    print("✓ two tables work")


def test_chain():
    """Test chain a -> b -> c"""
    planner = _plan([_table('a', 'b'), _table('b', 'c'), _table('c')])

    joined = _joined_sets(planner)
    assert sorted(joined, key=sorted) == [
        frozenset({'a', 'b'}),
        frozenset({'a', 'b', 'c'}),
        frozenset({'b', 'c'}),
    ]
    assert len(joined) == len(set(joined))

    # No edge bypasses b
    assert frozenset({'a', 'c'}) not in joined

    print("✓ chain works")


def test_chain_width_bound():
    """Test chain a -> b -> c limited to pairs"""
    planner = _plan([_table('a', 'b'), _table('b', 'c'), _table('c')], join_num=2)

    assert sorted(_joined_sets(planner), key=sorted) == [
        frozenset({'a', 'b'}),
        frozenset({'b', 'c'}),
    ]
    assert planner.counts() == {1: 3, 2: 2}

    print("✓ chain width bound works")


def test_join_num_one_disables_joins():
    """Test that a join width of one only seeds single tables"""
    planner = _plan([_table('a', 'b'), _table('b')], join_num=1)

    assert planner.counts() == {1: 2}
    assert planner.table_ref_joined_tables == [{}, {}]
    assert planner.table_bridges == [{}, {}]

    print("✓ join_num one works")


def test_invalid_join_num_raises():
    """Test that a join width below one is rejected"""
    planner = JoinPlanner(SchemaGraph.from_definitions([_table('a')]))

    try:
        planner.plan(0)
    except ValueError:
        pass
    else:
        raise AssertionError("expected ValueError")

    print("✓ invalid join_num raises")


def test_extensions_are_forward_targets():
    """Test that extensions hold forward targets outside the combination"""
    planner = _plan([_table('a', 'b'), _table('b', 'c'), _table('c')])
    registry = planner.registry

    assert registry.get(registry.lookup({0})).extensions == frozenset({1})
    assert registry.get(registry.lookup({0, 1})).extensions == frozenset({2})
    assert registry.get(registry.lookup({1, 2})).extensions == frozenset()
    assert registry.get(registry.lookup({0, 1, 2})).extensions == frozenset()

    print("✓ extensions work")


def test_table_edges_chain():
    """Test table -> combination edges on the chain"""
    planner = _plan([_table('a', 'b'), _table('b', 'c'), _table('c')])
    registry = planner.registry

    def edges(table):
        return {
            (_named(planner, registry.get(partner).members), _named(planner, registry.get(result).members))
            for partner, result in planner.table_ref_joined_tables[table].items()
        }

    assert edges(0) == {
        (frozenset({'b'}), frozenset({'a', 'b'})),
        (frozenset({'b', 'c'}), frozenset({'a', 'b', 'c'})),
    }
    assert edges(1) == {
        (frozenset({'a'}), frozenset({'a', 'b'})),
        (frozenset({'c'}), frozenset({'b', 'c'})),
    }
    assert edges(2) == {
        (frozenset({'b'}), frozenset({'b', 'c'})),
        (frozenset({'a', 'b'}), frozenset({'a', 'b', 'c'})),
    }

    print("✓ table edges work")


def test_combination_merge_edges_chain():
    """Test combination -> combination edges on the chain"""
    planner = _plan([_table('a', 'b'), _table('b', 'c'), _table('c')])
    registry = planner.registry

    ab = registry.get(registry.lookup({0, 1}))
    assert ab.ref_joined_tables == {registry.lookup({2}): registry.lookup({0, 1, 2})}

    bc = registry.get(registry.lookup({1, 2}))
    assert bc.ref_joined_tables == {}

    print("✓ combination merge edges work")


def test_merge_edges_respect_width_bound():
    """Test that merged combinations never exceed the join width"""
    planner = _plan(_blog_schema(), join_num=3)
    registry = planner.registry

    for combination in registry:
        for partner_id, result_id in combination.ref_joined_tables.items():
            partner = registry.get(partner_id)
            result = registry.get(result_id)
            assert not partner.members & combination.members
            assert result.members == partner.members | combination.members
            assert result.width <= 3

    print("✓ merge edges respect width bound")


def test_width_bound_and_no_duplicates():
    """Test width bound and duplicate-free membership"""
    for join_num in range(1, 6):
        planner = _plan(_blog_schema(), join_num=join_num)
        members = [combination.members for combination in planner.registry]

        assert all(1 <= len(m) <= join_num for m in members)
        assert len(members) == len(set(members))

    print("✓ width bound and no duplicates work")


def test_matches_brute_force():
    """Test that every connected subset is discovered exactly once"""
    for join_num in range(1, 6):
        planner = _plan(_blog_schema(), join_num=join_num)
        planned = [combination.members for combination in planner.registry]
        expected = enumerate_connected_subsets(planner.graph, join_num)

        assert len(planned) == len(set(planned))
        assert set(planned) == set(expected), f"join_num={join_num}"

    print("✓ planner matches brute force")


def test_combinations_cached_under_every_member():
    """Test that each combination is reachable from all its members"""
    planner = _plan(_blog_schema(), join_num=4)

    for combination_id, combination in enumerate(planner.registry):
        for member in combination.members:
            assert combination_id in planner.combination_ids(member, combination.width)

    print("✓ combinations cached under every member")


def test_back_reference_only_growth():
    """Test growth through tables that are only referenced, never referencing"""
    # Both a and c point at b; {a, b, c} is only reachable through b's back references
    planner = _plan([_table('a', 'b'), _table('b'), _table('c', 'b')])

    assert frozenset({'a', 'b', 'c'}) in _joined_sets(planner)
    assert frozenset({'a', 'c'}) not in _joined_sets(planner)

    print("✓ back-reference growth works")


def test_plan_is_independent_of_input_order():
    """Test that reordering tables yields an isomorphic plan"""
    definitions = _blog_schema()

    def signature(planner):
        registry = planner.registry
        table_edges = set()
        for node in planner.graph.nodes:
            for partner, result in planner.table_ref_joined_tables[node.index].items():
                table_edges.add((
                    node.name,
                    _named(planner, registry.get(partner).members),
                    _named(planner, registry.get(result).members),
                ))

        merge_edges = set()
        for combination in registry:
            for partner, result in combination.ref_joined_tables.items():
                merge_edges.add((
                    _named(planner, combination.members),
                    _named(planner, registry.get(partner).members),
                    _named(planner, registry.get(result).members),
                ))

        return set(_joined_sets(planner)), table_edges, merge_edges

    expected = signature(_plan(definitions, join_num=4))
    assert signature(_plan(list(reversed(definitions)), join_num=4)) == expected
    assert signature(_plan(definitions[3:] + definitions[:3], join_num=4)) == expected

    print("✓ plan is independent of input order")


def test_plan_resets_state():
    """Test that planning twice gives the same result"""
    planner = JoinPlanner(SchemaGraph.from_definitions(_blog_schema()))

    first = planner.plan(4)
    first_sets = set(_joined_sets(planner))
    second = planner.plan(4)

    assert first == second
    assert set(_joined_sets(planner)) == first_sets

    print("✓ plan resets state")


def test_enumerate_connected_subsets():
    """Test brute-force enumeration on the chain"""
    graph = SchemaGraph.from_definitions([_table('a', 'b'), _table('b', 'c'), _table('c')])

    subsets = enumerate_connected_subsets(graph, 5)

    assert subsets == [
        frozenset({0}), frozenset({1}), frozenset({2}),
        frozenset({0, 1}), frozenset({1, 2}),
        frozenset({0, 1, 2}),
    ]

    print("✓ enumerate_connected_subsets works")


if __name__ == '__main__':
    print("\nTesting JoinPlanner...\n")

    test_single_table()
    test_two_tables()
    test_chain()
    test_chain_width_bound()
    test_join_num_one_disables_joins()
    test_invalid_join_num_raises()
    test_extensions_are_forward_targets()
    test_table_edges_chain()
    test_combination_merge_edges_chain()
    test_merge_edges_respect_width_bound()
    test_width_bound_and_no_duplicates()
    test_matches_brute_force()
    test_combinations_cached_under_every_member()
    test_back_reference_only_growth()
    test_plan_is_independent_of_input_order()
    test_plan_resets_state()
    test_enumerate_connected_subsets()

    print("\n✅ All JoinPlanner tests passed!\n")
