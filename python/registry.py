"""
Combination Registry

Fingerprinting of table sets and the registry that deduplicates join
combinations discovered from different starting tables.
"""

from typing import Dict, Iterable, Iterator, List, Tuple

from constants import (
    FINGERPRINT_MODULUS,
    CombinationId,
    Fingerprint,
    JoinCombination,
    TableIndex,
)
from errors import InvariantViolationError


def fingerprint(members: Iterable[TableIndex], table_num: int) -> Fingerprint:
    """
    Compute the fingerprint of a set of table indices

    Indices are sorted and read as digits of a base-table_num number, so the
    encoding is reversible while every index is below table_num.

    Example: {1, 3} with table_num=4 => 1 * 1 + 3 * 4 = 13

    Args:
        members: Table indices (any order)
        table_num: Total number of tables in the planning run

    Returns:
        Fingerprint of the set
    """
    result = 0
    multiplier = 1
    for index in sorted(members):
        result += index * multiplier
        multiplier = multiplier * table_num % FINGERPRINT_MODULUS

    return result


class CombinationRegistry:
    """
    Arena of canonical join combinations keyed by fingerprint

    Combinations are stored in a flat list and referenced by position.
    The first instance registered for a member set is canonical; later
    derivations of the same set resolve to it.
    """

    def __init__(self, table_num: int):
        self.table_num = table_num
        self.combinations: List[JoinCombination] = []
        self._ids: Dict[Fingerprint, CombinationId] = {}

    def get_or_insert(self, combination: JoinCombination) -> Tuple[CombinationId, bool]:
        """
        Return the canonical id for a combination, inserting it if new

        Args:
            combination: Freshly derived combination

        Returns:
            Tuple of (canonical id, True if the combination was inserted)
        """
        key = combination.fingerprint(self.table_num)

        existing = self._ids.get(key)
        if existing is not None:
            return existing, False

        combination_id = len(self.combinations)
        self.combinations.append(combination)
        self._ids[key] = combination_id

        return combination_id, True

    def id_of(self, key: Fingerprint) -> CombinationId:
        """Id registered under a fingerprint; a miss is a planner defect"""
        combination_id = self._ids.get(key)
        if combination_id is None:
            raise InvariantViolationError(f"no combination registered under fingerprint {key}")
        return combination_id

    def lookup(self, members: Iterable[TableIndex]) -> CombinationId:
        return self.id_of(fingerprint(members, self.table_num))

    def get(self, combination_id: CombinationId) -> JoinCombination:
        if not 0 <= combination_id < len(self.combinations):
            raise InvariantViolationError(f"unknown combination id {combination_id}")
        return self.combinations[combination_id]

    def ids_by_width(self, width: int) -> List[CombinationId]:
        return [
            combination_id
            for combination_id, combination in enumerate(self.combinations)
            if combination.width == width
        ]

    def __contains__(self, members: Iterable[TableIndex]) -> bool:
        return fingerprint(members, self.table_num) in self._ids

    def __len__(self) -> int:
        return len(self.combinations)

    def __iter__(self) -> Iterator[JoinCombination]:
        return iter(self.combinations)
