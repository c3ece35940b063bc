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


"""The generic constraint engine: applying a single constraint to the qualifier sets of its
endpoints. Specialized solvers drive this from a worklist and hook the writes it makes.
"""

from __future__ import annotations
from collections import deque
from typing import AbstractSet, Deque, FrozenSet, Iterable, Set
from .loggable import Loggable, LogLevel
from .qualifiers import Qualifier, QualifierLattice
from .schema import (
    AdaptValue,
    AnnotatedValue,
    Constraint,
    EqualityConstraint,
    FailureStatus,
    SubtypeConstraint,
    UnequalityConstraint,
)


class SolverError(Exception):
    pass


class UnsatisfiableConstraintError(SolverError):
    """Raised when applying a constraint would leave one of its endpoints without any qualifier."""

    def __init__(self, constraint: Constraint, reason: str = "") -> None:
        self.constraint = constraint
        message = f"Unsatisfiable constraint: {constraint}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class Worklist:
    """A FIFO queue that ignores constraints that are already queued. A constraint that is
    queued again after being removed goes to the back.
    """

    def __init__(self, constraints: Iterable[Constraint] = ()) -> None:
        self._queue: Deque[Constraint] = deque()
        self._queued: Set[Constraint] = set()
        self.extend(constraints)

    def add(self, constraint: Constraint) -> None:
        if constraint not in self._queued:
            self._queued.add(constraint)
            self._queue.append(constraint)

    def extend(self, constraints: Iterable[Constraint]) -> None:
        for constraint in constraints:
            self.add(constraint)

    def pop(self) -> Constraint:
        constraint = self._queue.popleft()
        self._queued.discard(constraint)
        return constraint

    def __contains__(self, constraint: Constraint) -> bool:
        return constraint in self._queued

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)


class ConstraintEngine(Loggable):
    """Applies constraints by removing the qualifiers of each endpoint that can't take part in any
    solution of the constraint. Removal is the only kind of write ``handle_constraint`` makes, so
    repeatedly applying constraints reaches a fixed point.

    Every write of a plain value goes through :py:meth:`set_annotations`; writes to an adapted
    value are turned into writes of its declaration and context.
    """

    def __init__(self, graph, verbose: LogLevel = LogLevel.QUIET) -> None:
        super(ConstraintEngine, self).__init__(verbose)
        self.graph = graph
        self.lattice = QualifierLattice()

    def get_annotations(self, av: AnnotatedValue) -> FrozenSet[Qualifier]:
        return av.annotations

    def get_failure_status(self, constraint: Constraint) -> FailureStatus:
        return self.graph.get_failure_status(constraint)

    def handle_constraint(self, constraint: Constraint) -> bool:
        """Apply the constraint and return whether any value changed. Raises
        :py:class:`UnsatisfiableConstraintError` without writing anything if the constraint has no
        solution with the current qualifiers.
        """
        left, right = constraint.left, constraint.right
        left_annos = self.get_annotations(left)
        right_annos = self.get_annotations(right)
        if isinstance(constraint, SubtypeConstraint):
            new_left = frozenset(l for l in left_annos
                                 if any(self.lattice.is_subtype(l, r) for r in right_annos))
            new_right = frozenset(r for r in right_annos
                                  if any(self.lattice.is_subtype(l, r) for l in new_left))
        elif isinstance(constraint, EqualityConstraint):
            new_left = new_right = left_annos & right_annos
        elif isinstance(constraint, UnequalityConstraint):
            new_left, new_right = left_annos, right_annos
            if len(right_annos) == 1:
                new_left = left_annos - right_annos
            if len(left_annos) == 1:
                new_right = right_annos - left_annos
        else:
            raise ValueError(f"Unknown constraint type {type(constraint)}")
        if not new_left or not new_right:
            raise UnsatisfiableConstraintError(
                constraint, f"{left_annos} vs. {right_annos}"
            )
        changed = False
        if new_left != left_annos:
            changed = self.set_annotations(left, new_left) or changed
        if new_right != right_annos:
            changed = self.set_annotations(right, new_right) or changed
        return changed

    def set_annotations(
        self, av: AnnotatedValue, annos: AbstractSet[Qualifier]
    ) -> bool:
        if isinstance(av, AdaptValue):
            return self._set_adapted(av, annos)
        if av.annotations == annos:
            return False
        av.annotations = annos
        return True

    def _set_adapted(
        self, av: AdaptValue, annos: AbstractSet[Qualifier]
    ) -> bool:
        """Keep only the declared and context qualifiers that still adapt to something in annos."""
        contexts = self.get_annotations(av.context_value)
        declared = self.get_annotations(av.decl_value)
        new_declared = frozenset(
            d for d in declared
            if any(self.lattice.adapt(c, d) in annos for c in contexts)
        )
        new_contexts = frozenset(
            c for c in contexts
            if any(self.lattice.adapt(c, d) in annos for d in new_declared)
        )
        changed = False
        if new_declared != declared:
            changed = self.set_annotations(av.decl_value, new_declared) or changed
        if new_contexts != contexts:
            changed = self.set_annotations(av.context_value, new_contexts) or changed
        return changed
