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


'''The value graph: the central table of annotated values and the original constraints between
them, along with the facts about the analysed program that the solver consults (class hierarchy,
library methods, read-only values).
'''

from __future__ import annotations
from itertools import count
from typing import AbstractSet, Callable, Dict, FrozenSet, Iterable, Iterator, Optional, Set, \
        Tuple, Union
import networkx
from graphviz import Digraph
from .qualifiers import ALL_QUALIFIERS, Qualifier
from .schema import (
    AdaptValue,
    AnnotatedValue,
    Constraint,
    ConstraintSet,
    EqualityConstraint,
    FailureStatus,
    FieldAdaptValue,
    MethodAdaptValue,
    MethodRef,
    SubtypeConstraint,
    UnequalityConstraint,
    ValueKind,
)
from .value_types import NullType, ValueType


class ImmutabilityOracle:
    '''Answers whether a value, identified by its stable identifier, is read-only: nothing is ever
    written through it, so flow into it need not be treated as bidirectional.
    '''
    def __init__(self, read_only: Iterable[str] = ()) -> None:
        self.read_only = set(read_only)

    def is_read_only(self, identifier: str) -> bool:
        return identifier in self.read_only


Hierarchy = Union[Dict[str, Iterable[str]], Iterable[Tuple[str, Iterable[str]]], networkx.DiGraph]


class ValueGraph:
    '''A program's value graph. Owns the id space of its values; plain values are unique per
    identifier and adapted values are unique per (kind, declaration, context).

    The class hierarchy maps each class to its direct superclasses (or is a DiGraph with edges from
    subclass to superclass).
    '''
    def __init__(self,
                 hierarchy: Optional[Hierarchy] = None,
                 library_methods: Iterable[MethodRef] = (),
                 oracle: Optional[ImmutabilityOracle] = None,
                 source_level_qualifiers: AbstractSet[Qualifier] = ALL_QUALIFIERS,
                 failure_status: Optional[Callable[[Constraint], FailureStatus]] = None) -> None:
        self._ids = count()
        self._values: Dict[int, AnnotatedValue] = {}
        self._by_identifier: Dict[str, AnnotatedValue] = {}
        self._adapted: Dict[Tuple[ValueKind, int, int], AdaptValue] = {}
        self._constraints = ConstraintSet()
        if isinstance(hierarchy, networkx.DiGraph):
            self.hierarchy = hierarchy
        else:
            self.hierarchy = networkx.DiGraph()
            bindings = hierarchy.items() if isinstance(hierarchy, dict) else (hierarchy or ())
            for cls, supers in bindings:
                self.hierarchy.add_node(cls)
                for sup in supers:
                    self.hierarchy.add_edge(cls, sup)
        self.library_methods = set(library_methods)
        self.oracle = oracle if oracle is not None else ImmutabilityOracle()
        self.source_level_qualifiers = frozenset(source_level_qualifiers)
        self._failure_status = failure_status

    def value(self,
              identifier: str,
              kind: ValueKind = ValueKind.LOCAL,
              annotations: Optional[Iterable[Qualifier]] = None,
              method: Optional[MethodRef] = None,
              enclosing_class: Optional[str] = None,
              value_type: Optional[ValueType] = None,
              name: Optional[str] = None) -> AnnotatedValue:
        '''Look up the value with the given identifier, creating it if needed. Attributes other
        than the identifier are only used on creation.
        '''
        existing = self._by_identifier.get(identifier)
        if existing is not None:
            return existing
        av = AnnotatedValue(next(self._ids),
                            identifier,
                            kind,
                            annotations=annotations,
                            method=method,
                            enclosing_class=enclosing_class,
                            value_type=value_type,
                            name=name)
        self._register(av)
        return av

    def field_adapt(self, decl: AnnotatedValue, context: AnnotatedValue) -> FieldAdaptValue:
        return self._adapt(FieldAdaptValue, ValueKind.FIELD_ADAPT, decl, context)

    def method_adapt(self, decl: AnnotatedValue, context: AnnotatedValue) -> MethodAdaptValue:
        return self._adapt(MethodAdaptValue, ValueKind.METHOD_ADAPT, decl, context)

    def _adapt(self, cls, kind: ValueKind, decl: AnnotatedValue, context: AnnotatedValue):
        key = (kind, decl.id, context.id)
        av = self._adapted.get(key)
        if av is None:
            av = cls(next(self._ids), decl, context)
            self._adapted[key] = av
            self._values[av.id] = av
        return av

    def _register(self, av: AnnotatedValue) -> None:
        self._values[av.id] = av
        self._by_identifier[av.identifier] = av

    def lookup(self, identifier: str) -> Optional[AnnotatedValue]:
        return self._by_identifier.get(identifier)

    def values(self) -> Iterator[AnnotatedValue]:
        '''All plain values, in creation order. Adapted values are views and are not included.'''
        return (av for av in self._values.values() if not isinstance(av, AdaptValue))

    def __getitem__(self, value_id: int) -> AnnotatedValue:
        return self._values[value_id]

    def __len__(self) -> int:
        return len(self._values)

    def add_subtype(self, left: AnnotatedValue, right: AnnotatedValue) -> Constraint:
        return self._add(SubtypeConstraint(left, right))

    def add_equality(self, left: AnnotatedValue, right: AnnotatedValue) -> Constraint:
        return self._add(EqualityConstraint(left, right))

    def add_unequality(self, left: AnnotatedValue, right: AnnotatedValue) -> Constraint:
        return self._add(UnequalityConstraint(left, right))

    def _add(self, constraint: Constraint) -> Constraint:
        for av in (constraint.left, constraint.right):
            if self._values.get(av.id) is not av:
                raise ValueError(f'{av!r} does not belong to this value graph')
        self._constraints.add(constraint)
        return constraint

    def get_constraints(self) -> ConstraintSet:
        '''A fresh copy of the original constraints; the solver extends its copy while solving.'''
        return ConstraintSet(self._constraints)

    def supertypes(self, cls: Optional[str]) -> FrozenSet[str]:
        if cls is None or cls not in self.hierarchy:
            return frozenset()
        return frozenset(networkx.descendants(self.hierarchy, cls))

    def is_library_method(self, method: Optional[MethodRef]) -> bool:
        return method is not None and method in self.library_methods

    def is_read_only(self, av: AnnotatedValue) -> bool:
        if isinstance(av, AdaptValue):
            av = av.decl_value
        if isinstance(av.type, NullType):
            return True
        return self.oracle.is_read_only(av.identifier)

    def get_failure_status(self, constraint: Constraint) -> FailureStatus:
        '''Constraints entirely inside library code can't be fixed by the user, so a failure
        there is only a warning.
        '''
        if self._failure_status is not None:
            return self._failure_status(constraint)

        def declared(av: AnnotatedValue) -> AnnotatedValue:
            while isinstance(av, AdaptValue):
                av = av.decl_value
            return av

        if (self.is_library_method(declared(constraint.left).method) and
                self.is_library_method(declared(constraint.right).method)):
            return FailureStatus.WARN
        return FailureStatus.ERROR


def to_digraph(constraints: Iterable[Constraint], label: str = 'constraints') -> Digraph:
    '''Build a graphviz rendering of a set of constraints; call ``render`` on the result to write
    it out. Derived constraints are dashed.
    '''
    G = Digraph(label)
    G.attr(label=label, labeljust='l', labelloc='t')
    nodes: Dict[AnnotatedValue, str] = {}

    def node(av: AnnotatedValue) -> str:
        if av not in nodes:
            nodes[av] = f'n{len(nodes)}'
            G.node(nodes[av], label=str(av))
        return nodes[av]

    seen: Set[Constraint] = set()
    for c in constraints:
        if c in seen:
            continue
        seen.add(c)
        style = 'dashed' if c.is_derived() else 'solid'
        G.edge(node(c.left), node(c.right), label=c.symbol, style=style)
    return G
