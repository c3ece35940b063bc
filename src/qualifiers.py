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


'''The qualifier lattice for information-flow inference, plus a tiny bit-packing helper used for
snapshots of annotation sets.
'''

from enum import Enum, unique
from typing import AbstractSet, FrozenSet, Iterable
import networkx


@unique
class Qualifier(Enum):
    SENSITIVE = 'sensitive'
    POLY = 'poly'
    CLEAR = 'clear'

    def __str__(self) -> str:
        return f'@{self.value.capitalize()}'

    def __repr__(self) -> str:
        return str(self)


SENSITIVE = Qualifier.SENSITIVE
POLY = Qualifier.POLY
CLEAR = Qualifier.CLEAR

ALL_QUALIFIERS: FrozenSet[Qualifier] = frozenset(Qualifier)

_MASKS = {SENSITIVE: 0x01, POLY: 0x02, CLEAR: 0x04}


def to_bits(annos: Iterable[Qualifier]) -> int:
    b = 0
    for anno in annos:
        b |= _MASKS[anno]
    return b


def from_bits(b: int) -> FrozenSet[Qualifier]:
    return frozenset(q for q, mask in _MASKS.items() if b & mask)


class QualifierLattice:
    '''The subtyping order CLEAR <: POLY <: SENSITIVE. Clear data may always be stored where
    sensitive data is allowed; the opposite flow is what the analysis rejects.

    The order is a DAG from subtypes to supertypes. It is tiny, so the reflexive-transitive
    closure is computed once and looked up afterwards.
    '''

    def __init__(self) -> None:
        self.graph = networkx.DiGraph()
        self.graph.add_edge(CLEAR, POLY)
        self.graph.add_edge(POLY, SENSITIVE)
        self._leq = {
            (sub, sup)
            for sub in self.graph.nodes
            for sup in networkx.descendants(self.graph, sub) | {sub}
        }

    @property
    def top(self) -> Qualifier:
        return SENSITIVE

    @property
    def bottom(self) -> Qualifier:
        return CLEAR

    def is_subtype(self, sub: Qualifier, sup: Qualifier) -> bool:
        return (sub, sup) in self._leq

    @staticmethod
    def adapt(context: Qualifier, declared: Qualifier) -> Qualifier:
        '''Viewpoint adaptation: a polymorphic declaration takes the qualifier of the context it is
        observed through; everything else is fixed.
        '''
        if declared == POLY:
            return context
        return declared

    def adapt_sets(self,
                   contexts: AbstractSet[Qualifier],
                   declared: AbstractSet[Qualifier]) -> FrozenSet[Qualifier]:
        return frozenset(self.adapt(c, d) for c in contexts for d in declared)
