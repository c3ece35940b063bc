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


'''Data types for the qualifier inference: annotated values, adapted values and constraints.
'''

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, unique
from typing import AbstractSet, Any, Dict, FrozenSet, Iterable, Iterator, List, Optional
import os
from .qualifiers import ALL_QUALIFIERS, Qualifier, QualifierLattice
from .value_types import ValueType


# Identifiers the value-graph builder gives to synthetic values; these are never written to.
CALLSITE_PREFIX = 'callsite-'
FAKE_PREFIX = 'fake-'


def is_synthetic_identifier(identifier: str) -> bool:
    return identifier.startswith(CALLSITE_PREFIX) or identifier.startswith(FAKE_PREFIX)


@unique
class FailureStatus(Enum):
    '''How a failing constraint is treated: errors are conflicts, warnings are reported and dropped.'''
    ERROR = 0
    WARN = 1


@unique
class ValueKind(Enum):
    LOCAL = 0
    PARAMETER = 1
    THIS = 2
    RETURN = 3
    FIELD = 4
    CONSTANT = 5
    LITERAL = 6
    ALLOC = 7
    METHOD_ADAPT = 8
    FIELD_ADAPT = 9


@dataclass(frozen=True)
class MethodRef:
    '''A method of the analysed program. Two methods with the same name in different classes are
    candidates for override matching.
    '''
    name: str
    declaring_class: str
    signature: str = ''

    def __str__(self) -> str:
        if self.signature:
            return f'<{self.declaring_class}: {self.signature}>'
        return f'<{self.declaring_class}: {self.name}>'


class AnnotatedValue:
    '''One program quantity carrying a qualifier set. The set is the solver's current knowledge:
    every qualifier still in it is a possible solution for the value.

    Values are created by a :py:class:`ValueGraph`, which owns the id space. Equality and hashing
    use the id only, so two values are the same exactly when the graph says so.
    '''
    def __init__(self,
                 value_id: int,
                 identifier: str,
                 kind: ValueKind,
                 annotations: Optional[Iterable[Qualifier]] = None,
                 method: Optional[MethodRef] = None,
                 enclosing_class: Optional[str] = None,
                 value_type: Optional[ValueType] = None,
                 name: Optional[str] = None) -> None:
        self.id = value_id
        self.identifier = identifier
        self.kind = kind
        if annotations is None:
            self._annotations: FrozenSet[Qualifier] = ALL_QUALIFIERS
        else:
            self._annotations = frozenset(annotations)
        self.method = method
        if enclosing_class is None and method is not None:
            enclosing_class = method.declaring_class
        self.enclosing_class = enclosing_class
        self.type = value_type
        self.name = name if name is not None else identifier

    @property
    def annotations(self) -> FrozenSet[Qualifier]:
        return self._annotations

    @annotations.setter
    def annotations(self, annos: AbstractSet[Qualifier]) -> None:
        self._annotations = frozenset(annos)

    @property
    def enclosing_method(self) -> Optional[MethodRef]:
        return self.method

    def is_param_or_return(self) -> bool:
        return self.kind in (ValueKind.PARAMETER, ValueKind.THIS, ValueKind.RETURN)

    def is_local_this(self) -> bool:
        return self.kind == ValueKind.LOCAL and self.name == 'this'

    def is_immutable(self) -> bool:
        '''Constants and synthetic placeholders keep their qualifiers for the whole solve.'''
        return self.kind == ValueKind.CONSTANT or is_synthetic_identifier(self.identifier)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, AnnotatedValue) and self.id == other.id

    def __lt__(self, other: AnnotatedValue) -> bool:
        return self.identifier < other.identifier

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        annos = ' '.join(sorted(map(str, self.annotations)))
        return f'{self.identifier}{{{annos}}}'

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.id}, {self.identifier!r})'


class AdaptValue(AnnotatedValue):
    '''A declaration observed through an adaptation context, e.g. a field read through a receiver.
    The qualifiers are a view over the two underlying values and can't be assigned directly.
    '''
    def __init__(self,
                 value_id: int,
                 kind: ValueKind,
                 decl_value: AnnotatedValue,
                 context_value: AnnotatedValue) -> None:
        self.decl_value = decl_value
        self.context_value = context_value
        method = context_value.method or decl_value.method
        enclosing_class = context_value.enclosing_class or decl_value.enclosing_class
        super().__init__(value_id,
                         f'{context_value.identifier}|>{decl_value.identifier}',
                         kind,
                         method=method,
                         enclosing_class=enclosing_class,
                         value_type=decl_value.type,
                         name=decl_value.name)

    @property
    def annotations(self) -> FrozenSet[Qualifier]:
        return frozenset(QualifierLattice.adapt(c, d)
                         for c in self.context_value.annotations
                         for d in self.decl_value.annotations)

    @annotations.setter
    def annotations(self, annos: AbstractSet[Qualifier]) -> None:
        raise AttributeError(f'{self!r} is adapted; write to its declaration or context instead')


class FieldAdaptValue(AdaptValue):
    def __init__(self,
                 value_id: int,
                 decl_value: AnnotatedValue,
                 context_value: AnnotatedValue) -> None:
        super().__init__(value_id, ValueKind.FIELD_ADAPT, decl_value, context_value)


class MethodAdaptValue(AdaptValue):
    def __init__(self,
                 value_id: int,
                 decl_value: AnnotatedValue,
                 context_value: AnnotatedValue) -> None:
        super().__init__(value_id, ValueKind.METHOD_ADAPT, decl_value, context_value)


class Constraint:
    '''A relation between two values. Constraints compare by kind and endpoints only; the causes
    (the constraints a derived one was inferred from) are bookkeeping.
    '''
    _tag = 0
    symbol = '?'

    def __init__(self, left: AnnotatedValue, right: AnnotatedValue) -> None:
        self.left = left
        self.right = right
        self.causes: List[Constraint] = []
        self._hash = hash((self._tag, left.id, right.id))

    def add_cause(self, cause: Constraint) -> None:
        if cause not in self.causes:
            self.causes.append(cause)

    def is_derived(self) -> bool:
        return bool(self.causes)

    def __eq__(self, other: Any) -> bool:
        return (type(self) is type(other) and
                self.left == other.left and
                self.right == other.right)

    def __lt__(self, other: Constraint) -> bool:
        if self._tag != other._tag:
            return self._tag < other._tag
        if self.left == other.left:
            return self.right < other.right
        return self.left < other.left

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        return f'{self.left} {self.symbol} {self.right}'

    def __repr__(self) -> str:
        return str(self)


class SubtypeConstraint(Constraint):
    '''left <: right'''
    _tag = 1
    symbol = '<:'


class EqualityConstraint(Constraint):
    _tag = 2
    symbol = '=='


class UnequalityConstraint(Constraint):
    _tag = 3
    symbol = '!='


class ConstraintSet:
    '''An insertion-ordered set of constraints. Iteration order is the order in which constraints
    were first added, which keeps solving deterministic for a given input.
    '''
    def __init__(self, constraints: Optional[Iterable[Constraint]] = None) -> None:
        self._constraints: Dict[Constraint, None] = {}
        if constraints:
            self.update(constraints)

    def add(self, constraint: Constraint) -> bool:
        if constraint in self._constraints:
            return False
        self._constraints[constraint] = None
        return True

    def add_subtype(self, left: AnnotatedValue, right: AnnotatedValue) -> bool:
        return self.add(SubtypeConstraint(left, right))

    def update(self, constraints: Iterable[Constraint]) -> None:
        for constraint in constraints:
            self.add(constraint)

    def discard(self, constraint: Constraint) -> None:
        self._constraints.pop(constraint, None)

    def __contains__(self, constraint: Any) -> bool:
        return constraint in self._constraints

    def __or__(self, other: ConstraintSet) -> ConstraintSet:
        result = ConstraintSet(self)
        result.update(other)
        return result

    def __eq__(self, other: Any) -> bool:
        return (isinstance(other, ConstraintSet) and
                self._constraints.keys() == other._constraints.keys())

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(list(self._constraints))

    def __str__(self) -> str:
        nt = os.linesep + '\t'
        return f'ConstraintSet:{nt}{nt.join(map(str, self._constraints))}'

    def __repr__(self) -> str:
        return f'ConstraintSet({list(self._constraints)!r})'
