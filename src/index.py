# Qualflow - information-flow qualifier inference
# Copyright (C) 2021 GrammaTech, Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# This project is sponsored by the Office of Naval Research, One Liberty
# Center, 875 N. Randolph Street, Arlington, VA 22203 under contract #
# N68335-17-C-0700.  The content of the information does not necessarily
# reflect the position or policy of the Government and no official
# endorsement should be inferred.


'''Indices from values to the constraints and adapted values that mention them.
'''

from collections import defaultdict
from typing import AbstractSet, Dict, Iterable, Set
from .schema import (
    AdaptValue,
    AnnotatedValue,
    Constraint,
    EqualityConstraint,
    SubtypeConstraint,
    is_synthetic_identifier,
)


class ReferenceIndex:
    '''For every value, the constraints in which it is the smaller side (``sub_side``) or the
    larger side (``super_side``) of a subtype relation, and the adapted values built with it as
    declaration (``decl_index``) or context (``context_index``). An equality counts as a subtype
    relation in both directions.

    Registration is idempotent, so the index can be extended one constraint at a time while
    new constraints are derived.
    '''

    def __init__(self, constraints: Iterable[Constraint] = ()) -> None:
        self._sub_side: Dict[AnnotatedValue, Set[Constraint]] = defaultdict(set)
        self._super_side: Dict[AnnotatedValue, Set[Constraint]] = defaultdict(set)
        self._decl_index: Dict[AnnotatedValue, Set[AdaptValue]] = defaultdict(set)
        self._context_index: Dict[AnnotatedValue, Set[AdaptValue]] = defaultdict(set)
        self.register_all(constraints)

    def register_all(self, constraints: Iterable[Constraint]) -> None:
        for c in constraints:
            self.register(c)

    def register(self, c: Constraint) -> None:
        for ref in (c.left, c.right):
            if isinstance(ref, AdaptValue):
                self._decl_index[ref.decl_value].add(ref)
                if not is_synthetic_identifier(ref.context_value.identifier):
                    self._context_index[ref.context_value].add(ref)
        if isinstance(c, SubtypeConstraint):
            self._sub_side[c.left].add(c)
            self._super_side[c.right].add(c)
        elif isinstance(c, EqualityConstraint):
            for av in (c.left, c.right):
                self._sub_side[av].add(c)
                self._super_side[av].add(c)

    # Lookups never create entries, so reading the index doesn't grow it.
    def sub_side(self, av: AnnotatedValue) -> AbstractSet[Constraint]:
        '''Constraints (av <: r).'''
        return self._sub_side.get(av, frozenset())

    def super_side(self, av: AnnotatedValue) -> AbstractSet[Constraint]:
        '''Constraints (r <: av).'''
        return self._super_side.get(av, frozenset())

    def adapted_from_decl(self, av: AnnotatedValue) -> AbstractSet[AdaptValue]:
        return self._decl_index.get(av, frozenset())

    def adapted_from_context(self, av: AnnotatedValue) -> AbstractSet[AdaptValue]:
        return self._context_index.get(av, frozenset())

    def referencing_constraints(self, av: AnnotatedValue) -> Set[Constraint]:
        '''Every constraint mentioning av directly or through an adapted value built from it.'''
        result: Set[Constraint] = set()
        pending = [av]
        visited = {av}
        while pending:
            current = pending.pop()
            result |= self.sub_side(current)
            result |= self.super_side(current)
            for adapted in self.adapted_from_decl(current) | self.adapted_from_context(current):
                if adapted not in visited:
                    visited.add(adapted)
                    pending.append(adapted)
        return result
