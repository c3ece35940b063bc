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


"""The driver for the qualifier inference.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Optional, Set
import os
from .engine import (
    ConstraintEngine,
    SolverError,
    UnsatisfiableConstraintError,
    Worklist,
)
from .index import ReferenceIndex
from .linear import LinearConstraintDeriver
from .loggable import LogLevel
from .qualifiers import CLEAR, POLY, SENSITIVE, Qualifier, from_bits, to_bits
from .schema import (
    AdaptValue,
    AnnotatedValue,
    Constraint,
    ConstraintSet,
    FailureStatus,
    FieldAdaptValue,
    MethodAdaptValue,
    SubtypeConstraint,
)

# Upper bound on how many times a single value may be rolled back to its initial qualifiers.
MAX_RESTORES = 3


class SolverConfigError(SolverError, ValueError):
    pass


@dataclass
class SolverConfig:
    """
    Parameters that change how the solver treats unsatisfiable constraints.
    """

    # On a failing constraint, demote the source side when the sink is clear, or polymorphic
    # against a sensitive source; otherwise demote the sink side.
    favor_source: bool = False
    # On a failing constraint, demote the sink side when the source is sensitive, or polymorphic
    # against a clear sink; otherwise demote the source side.
    favor_sink: bool = False
    # How many times a single value may be rolled back to its initial qualifiers, at most
    # MAX_RESTORES.
    max_restores: int = MAX_RESTORES

    @property
    def biased(self) -> bool:
        return self.favor_source or self.favor_sink

    @staticmethod
    def from_environ(environ: Optional[Mapping[str, str]] = None) -> SolverConfig:
        """Read the bias from the PREFER_SOURCE / PREFER_SINK environment variables; setting a
        variable (to anything) turns the bias on.
        """
        if environ is None:
            environ = os.environ
        return SolverConfig(
            favor_source="PREFER_SOURCE" in environ,
            favor_sink="PREFER_SINK" in environ,
        )


# The solve is a single worklist loop:
# * Each constraint taken from the worklist is applied. Writes to values put every constraint
#   mentioning the value (directly or through an adapted value) back on the worklist.
# * A constraint that applied cleanly is used to derive linear constraints, which join both the
#   worklist and the working set.
# * A constraint that failed is either a warning (reported once, dropped) or an error. With a bias
#   configured, the solver tries to repair an error by rolling back one side; otherwise, or if that
#   fails, the constraint is a conflict.
#
# Rolling back works against the fixed point, so it is bounded: a value is restored at most
# `max_restores` times and eliminated at most once per solve.
class Solver(ConstraintEngine):
    """Infers qualifiers for every value of a :py:class:`ValueGraph`. The constructor does not
    perform the computation; rather, :py:class:`Solver` objects are callable and return the set of
    conflicting constraints.
    """

    def __init__(
        self,
        graph,
        config: Optional[SolverConfig] = None,
        verbose: LogLevel = LogLevel.QUIET,
    ) -> None:
        super(Solver, self).__init__(graph, verbose)
        if config is None:
            config = SolverConfig()
        if config.favor_source and config.favor_sink:
            raise SolverConfigError(
                "Can only have one of {favor_source, favor_sink}!"
            )
        if not 0 <= config.max_restores <= MAX_RESTORES:
            raise SolverConfigError(
                f"max_restores must be between 0 and {MAX_RESTORES}, got {config.max_restores}"
            )
        self.config = config
        self._reset()

    def _reset(self) -> None:
        self.constraints = ConstraintSet()
        self.conflicts = ConstraintSet()
        self.index = ReferenceIndex()
        self.deriver = LinearConstraintDeriver(self.graph, self.index)
        self.worklist = Worklist()
        # A value has been updated iff it has an initial snapshot.
        self._initial: Dict[int, int] = {}
        self._restores: Dict[int, int] = {}
        self._warned: Set[Constraint] = set()
        self.eliminated: List[AnnotatedValue] = []
        self.restore_counter = 0

    def is_updated(self, av: AnnotatedValue) -> bool:
        return av.id in self._initial

    def initial_annotations(
        self, av: AnnotatedValue
    ) -> Optional[FrozenSet[Qualifier]]:
        """The qualifiers av had before the solver first changed them, if it ever did."""
        bits = self._initial.get(av.id)
        if bits is None:
            return None
        return from_bits(bits)

    def restore_count(self, av: AnnotatedValue) -> int:
        return self._restores.get(av.id, 0)

    def _requeue(self, av: AnnotatedValue) -> None:
        # sort to avoid non-determinism
        self.worklist.extend(sorted(self.index.referencing_constraints(av)))

    def set_annotations(
        self, av: AnnotatedValue, annos: FrozenSet[Qualifier]
    ) -> bool:
        if isinstance(av, AdaptValue):
            return super().set_annotations(av, annos)
        if av.annotations == annos:
            return False
        if av.is_immutable():
            return False
        if not self.is_updated(av):
            self._initial[av.id] = to_bits(av.annotations)
        self._requeue(av)
        return super().set_annotations(av, annos)

    def upgrade_to_equality(self, constraints: ConstraintSet) -> ConstraintSet:
        """Unless one side of a subtype constraint is read-only, a later write through the
        supertype side can flow back, so the flow is treated as an equality by adding the reverse
        constraint. Flow between parameters and returns of library methods is left alone.
        """
        upgraded = ConstraintSet()
        for c in constraints:
            upgraded.add(c)
            if not isinstance(c, SubtypeConstraint):
                continue
            sub, sup = c.left, c.right
            if self.graph.is_read_only(sub) or self.graph.is_read_only(sup):
                continue
            if (
                sub.is_param_or_return()
                and sup.is_param_or_return()
                and self.graph.is_library_method(sub.method)
                and self.graph.is_library_method(sup.method)
            ):
                continue
            reverse = SubtypeConstraint(sup, sub)
            reverse.add_cause(c)
            upgraded.add(reverse)
        return upgraded

    def _choose_demoted(self, c: Constraint) -> Optional[AnnotatedValue]:
        left_annos = self.get_annotations(c.left)
        right_annos = self.get_annotations(c.right)
        if self.config.favor_sink:
            if SENSITIVE in left_annos or (
                POLY in left_annos and CLEAR in right_annos
            ):
                return c.right
            return c.left
        if self.config.favor_source:
            if CLEAR in right_annos or (
                POLY in right_annos and SENSITIVE in left_annos
            ):
                return c.left
            return c.right
        return None

    def _resolve(self, av: AnnotatedValue) -> List[AnnotatedValue]:
        """The plain values whose rollback demotes av."""
        if isinstance(av, MethodAdaptValue):
            targets = [av.context_value, av.decl_value]
        elif isinstance(av, FieldAdaptValue):
            declared = av.decl_value
            if self.config.favor_source and declared.annotations == {SENSITIVE}:
                targets = [declared]
            else:
                targets = [av.context_value]
        else:
            return [av]
        resolved: List[AnnotatedValue] = []
        for target in targets:
            resolved.extend(self._resolve(target))
        return resolved

    def _restore(self, av: AnnotatedValue) -> None:
        self.debug("Restoring %s to %s", av, self.initial_annotations(av))
        self._requeue(av)
        av.annotations = self.initial_annotations(av)
        self._restores[av.id] = self.restore_count(av) + 1
        self.restore_counter += 1

    def _eliminate(self, av: AnnotatedValue) -> None:
        """Drop a source or sink by giving it the source-level qualifiers, and roll every updated
        value back to its initial qualifiers.
        """
        self.info("Eliminating a SOURCE/SINK: %s", av)
        self.eliminated.append(av)
        self._requeue(av)
        av.annotations = self.graph.source_level_qualifiers
        for v in self.graph.values():
            if self.is_updated(v):
                self._requeue(v)
                v.annotations = from_bits(self._initial.pop(v.id))

    def make_satisfiable(self, c: Constraint) -> bool:
        """Try to repair a failing constraint by rolling back the side the bias disfavors, then
        apply the constraint again. Returns the result of that second application, or False if
        nothing could be rolled back or the constraint still fails.
        """
        demoted = self._choose_demoted(c)
        if demoted is None:
            return False
        need_solve = False
        for av in self._resolve(demoted):
            if self.is_updated(av):
                if self.restore_count(av) < self.config.max_restores:
                    self._restore(av)
                    need_solve = True
            elif not av.is_immutable() and av not in self.eliminated:
                self._eliminate(av)
                need_solve = True
        if not need_solve:
            return False
        try:
            return self.handle_constraint(c)
        except SolverError as e:
            self.debug("Repair failed: %s", e)
            return False

    def _handle_failure(self, c: Constraint) -> None:
        status = self.get_failure_status(c)
        if status == FailureStatus.ERROR:
            if self.config.biased and self.make_satisfiable(c):
                return
            self.conflicts.add(c)
        elif status == FailureStatus.WARN:
            if c not in self._warned:
                self.warn("handling constraint %s failed.", c)
                self._warned.add(c)

    def __call__(self) -> ConstraintSet:
        """Solve the graph's constraints and return the ones that remain unsatisfiable."""
        self._reset()
        constraints = self.graph.get_constraints()
        self.info(
            "Solving qualifier constraints: %d in total...",
            len(constraints),
        )
        self.constraints = self.upgrade_to_equality(constraints)
        self.index.register_all(self.constraints)
        self.worklist.extend(self.constraints)

        while self.worklist:
            c = self.worklist.pop()
            try:
                self.handle_constraint(c)
            except UnsatisfiableConstraintError:
                self._handle_failure(c)
                continue
            new_constraints = self.deriver.derive(c, self.constraints)
            self.worklist.extend(new_constraints)
            self.constraints.update(new_constraints)

        # Repairs elsewhere may have made some of the conflicts satisfiable.
        for c in self.conflicts:
            try:
                self.handle_constraint(c)
            except UnsatisfiableConstraintError:
                continue
            self.conflicts.discard(c)

        self.info("Total restore number: %d", self.restore_counter)
        self.info(
            "Finish solving constraints. %d error(s)", len(self.conflicts)
        )
        return self.conflicts
