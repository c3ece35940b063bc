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


"""Derivation of the linear constraints implied by an accepted subtype constraint.

For a constraint left <: right, the rules are:

* field read (left is x.f): if f is polymorphic or x is an array, x <: right; and for every
  r <: x.f, r <: right.
* field write (right is x.f): symmetrically, left <: x; and for every x.f <: r, left <: r.
* plain flow: parameters, returns and receivers that reach left also reach right, and if left is
  one of those, it reaches everything right reaches.
* adaptation bridging: when a parameter/return/receiver flows to another one of the same call,
  every actual flowing into the adapted parameter flows to every target of the adapted return of
  the same receiver (z <: y|>par, y|>ret <: x gives z <: x).
"""

from __future__ import annotations
from collections import deque
from typing import Deque, List, Optional
from .index import ReferenceIndex
from .qualifiers import POLY
from .schema import (
    AnnotatedValue,
    Constraint,
    ConstraintSet,
    EqualityConstraint,
    FieldAdaptValue,
    MethodAdaptValue,
    SubtypeConstraint,
    ValueKind,
)
from .value_types import ArrayType


def _flows_through_calls(av: AnnotatedValue) -> bool:
    return av.is_param_or_return() or av.is_local_this()


def _lesser(c: Constraint, av: AnnotatedValue) -> AnnotatedValue:
    """The value below av in c, a constraint from av's super side."""
    if isinstance(c, EqualityConstraint) and c.left == av:
        return c.right
    return c.left


def _greater(c: Constraint, av: AnnotatedValue) -> AnnotatedValue:
    """The value above av in c, a constraint from av's sub side."""
    if isinstance(c, EqualityConstraint) and c.right == av:
        return c.left
    return c.right


class LinearConstraintDeriver:
    def __init__(self, graph, index: ReferenceIndex) -> None:
        self.graph = graph
        self.index = index

    def can_connect(
        self, left: Optional[AnnotatedValue], right: Optional[AnnotatedValue]
    ) -> bool:
        """Two values can be connected if they live in the same method, or in methods of the same
        name where one's class is a supertype of the other's (an override).
        """
        if left is None or right is None:
            return False
        if left.kind == ValueKind.LITERAL or right.kind == ValueKind.LITERAL:
            return False
        left_sm = left.enclosing_method
        right_sm = right.enclosing_method
        if left_sm is None or right_sm is None:
            return False
        if left_sm == right_sm:
            return True
        if left_sm.name != right_sm.name:
            return False
        left_sc = left.enclosing_class
        right_sc = right.enclosing_class
        return (
            right_sc in self.graph.supertypes(left_sc)
            or left_sc in self.graph.supertypes(right_sc)
        )

    @staticmethod
    def _is_polymorphic_or_array(av: FieldAdaptValue) -> bool:
        annos = av.decl_value.annotations
        return annos == {POLY} or isinstance(av.context_value.type, ArrayType)

    @staticmethod
    def _linear(
        left: AnnotatedValue, right: AnnotatedValue, *causes: Constraint
    ) -> SubtypeConstraint:
        linear = SubtypeConstraint(left, right)
        for cause in causes:
            linear.add_cause(cause)
        return linear

    def _candidates(self, c: Constraint) -> List[SubtypeConstraint]:
        left, right = c.left, c.right
        candidates: List[SubtypeConstraint] = []
        # field read
        if isinstance(left, FieldAdaptValue):
            if self._is_polymorphic_or_array(left):
                candidates.append(self._linear(left.context_value, right, c))
            for lc in self.index.super_side(left):
                r = _lesser(lc, left)
                if r != right and not isinstance(r, MethodAdaptValue):
                    candidates.append(self._linear(r, right, lc, c))
        # field write
        elif isinstance(right, FieldAdaptValue):
            if self._is_polymorphic_or_array(right):
                candidates.append(self._linear(left, right.context_value, c))
            for gc in self.index.sub_side(right):
                r = _greater(gc, right)
                if left != r and not isinstance(r, MethodAdaptValue):
                    candidates.append(self._linear(left, r, c, gc))
        elif (
            not isinstance(left, MethodAdaptValue)
            and not isinstance(right, MethodAdaptValue)
            and self.can_connect(left, right)
        ):
            for lc in self.index.super_side(left):
                r = _lesser(lc, left)
                if (
                    r != right
                    and _flows_through_calls(r)
                    and not isinstance(r, MethodAdaptValue)
                ):
                    candidates.append(self._linear(r, right, lc, c))
            if _flows_through_calls(left):
                for gc in self.index.sub_side(right):
                    r = _greater(gc, right)
                    if left != r and not isinstance(r, MethodAdaptValue):
                        candidates.append(self._linear(left, r, c, gc))
            if _flows_through_calls(left) and _flows_through_calls(right):
                candidates.extend(self._bridge_adaptations(c))
        return candidates

    def _bridge_adaptations(self, c: Constraint) -> List[SubtypeConstraint]:
        bridged: List[SubtypeConstraint] = []
        for y_par in self.index.adapted_from_decl(c.left):
            if not isinstance(y_par, MethodAdaptValue):
                continue
            for y_ret in self.index.adapted_from_decl(c.right):
                if not isinstance(y_ret, MethodAdaptValue):
                    continue
                if y_par.context_value.id != y_ret.context_value.id:
                    continue
                for lc in self.index.super_side(y_par):
                    for gc in self.index.sub_side(y_ret):
                        r_par = _lesser(lc, y_par)
                        r_ret = _greater(gc, y_ret)
                        bridged.append(self._linear(r_par, r_ret, lc, c, gc))
        return bridged

    def derive(
        self, constraint: Constraint, existing: ConstraintSet
    ) -> ConstraintSet:
        """Compute every constraint that follows from ``constraint`` and is in neither
        ``existing`` nor already derived. New constraints are registered with the index as they
        are found and are themselves used for further derivation.
        """
        new_constraints = ConstraintSet()
        if not isinstance(constraint, SubtypeConstraint):
            return new_constraints
        queue: Deque[Constraint] = deque([constraint])
        while queue:
            c = queue.popleft()
            for linear in self._candidates(c):
                if (
                    linear not in existing
                    and linear not in new_constraints
                    and self.can_connect(linear.left, linear.right)
                ):
                    new_constraints.add(linear)
                    self.index.register(linear)
                    queue.append(linear)
        return new_constraints
