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


"""Constraint-based inference of information-flow qualifiers.

To invoke, build a ValueGraph: create its values (plain values by identifier, adapted values from a
declaration and a context), add the subtype/equality constraints between them, and describe the
program around them (class hierarchy, library methods, read-only values). Then, instantiate a
Solver with the graph and call it. The result of calling the solver object is the set of
constraints that could not be satisfied; the inferred qualifiers are left on the values.
"""

from .qualifiers import (
    ALL_QUALIFIERS,
    CLEAR,
    POLY,
    SENSITIVE,
    Qualifier,
    QualifierLattice,
    from_bits,
    to_bits,
)
from .value_types import ArrayType, ClassType, NullType, PrimitiveType, ValueType
from .schema import (
    CALLSITE_PREFIX,
    FAKE_PREFIX,
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
from .graph import ImmutabilityOracle, ValueGraph, to_digraph
from .index import ReferenceIndex
from .engine import ConstraintEngine, SolverError, UnsatisfiableConstraintError, Worklist
from .linear import LinearConstraintDeriver
from .solver import MAX_RESTORES, Solver, SolverConfig, SolverConfigError
from .loggable import LogLevel
from .version import __version__
