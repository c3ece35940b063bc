"""Unit tests for the value and constraint model and the qualifier lattice."""

import pytest
from qualflow import (
    ALL_QUALIFIERS,
    CLEAR,
    POLY,
    SENSITIVE,
    ArrayType,
    ClassType,
    ConstraintSet,
    EqualityConstraint,
    MethodRef,
    QualifierLattice,
    SubtypeConstraint,
    ValueGraph,
    ValueKind,
    from_bits,
    to_bits,
)


@pytest.mark.commit
def test_lattice_order():
    lattice = QualifierLattice()
    assert lattice.is_subtype(CLEAR, SENSITIVE)
    assert lattice.is_subtype(CLEAR, POLY)
    assert lattice.is_subtype(POLY, POLY)
    assert not lattice.is_subtype(SENSITIVE, CLEAR)
    assert not lattice.is_subtype(SENSITIVE, POLY)
    assert lattice.top == SENSITIVE
    assert lattice.bottom == CLEAR


@pytest.mark.parametrize(
    ("context", "declared", "expected"),
    [
        (SENSITIVE, POLY, SENSITIVE),
        (CLEAR, POLY, CLEAR),
        (SENSITIVE, CLEAR, CLEAR),
        (CLEAR, SENSITIVE, SENSITIVE),
        (POLY, POLY, POLY),
    ],
)
@pytest.mark.commit
def test_adapt(context, declared, expected):
    assert QualifierLattice.adapt(context, declared) == expected


@pytest.mark.commit
def test_bits():
    assert to_bits({SENSITIVE}) == 0x01
    assert to_bits({POLY, CLEAR}) == 0x06
    assert from_bits(0x05) == {SENSITIVE, CLEAR}
    assert from_bits(to_bits(ALL_QUALIFIERS)) == ALL_QUALIFIERS
    assert from_bits(0) == frozenset()


@pytest.mark.commit
def test_constraints_compare_by_endpoints():
    graph = ValueGraph()
    a = graph.value("a")
    b = graph.value("b")
    first = SubtypeConstraint(a, b)
    second = SubtypeConstraint(a, b)
    second.add_cause(SubtypeConstraint(b, a))
    assert first == second
    assert hash(first) == hash(second)
    assert first != SubtypeConstraint(b, a)
    assert first != EqualityConstraint(a, b)
    assert not first.is_derived()
    assert second.is_derived()


@pytest.mark.commit
def test_constraint_set_is_ordered_and_deduplicating():
    graph = ValueGraph()
    a, b, c = graph.value("a"), graph.value("b"), graph.value("c")
    cs = ConstraintSet()
    assert cs.add_subtype(b, c)
    assert cs.add_subtype(a, b)
    assert not cs.add(SubtypeConstraint(b, c))
    assert len(cs) == 2
    assert list(cs) == [SubtypeConstraint(b, c), SubtypeConstraint(a, b)]
    cs.discard(SubtypeConstraint(b, c))
    assert SubtypeConstraint(b, c) not in cs


@pytest.mark.commit
def test_values_are_unique_per_identifier():
    graph = ValueGraph()
    m = MethodRef("run", "Task")
    p = graph.value("p", ValueKind.PARAMETER, method=m)
    assert graph.value("p") is p
    assert p.enclosing_class == "Task"
    assert p.annotations == ALL_QUALIFIERS
    assert p.is_param_or_return()
    this = graph.value("run.this", ValueKind.LOCAL, method=m, name="this")
    assert this.is_local_this()
    assert not graph.value("callsite-1").is_local_this()
    assert graph.value("callsite-1").is_immutable()
    assert graph.value("k", ValueKind.CONSTANT).is_immutable()


@pytest.mark.commit
def test_adapted_values():
    graph = ValueGraph()
    m = MethodRef("main", "App")
    field = graph.value("App.f", ValueKind.FIELD, {POLY})
    receiver = graph.value("x", ValueKind.LOCAL, {SENSITIVE, CLEAR}, method=m,
                           value_type=ClassType("App"))
    read = graph.field_adapt(field, receiver)
    assert graph.field_adapt(field, receiver) is read
    assert graph.method_adapt(field, receiver) is not read
    assert read.kind == ValueKind.FIELD_ADAPT
    assert read.enclosing_method == m
    assert read.annotations == {SENSITIVE, CLEAR}
    with pytest.raises(AttributeError):
        read.annotations = {CLEAR}
    assert list(graph.values()) == [field, receiver]


@pytest.mark.commit
def test_array_type_str():
    assert str(ArrayType(ClassType("java.lang.String"), 2)) == "java.lang.String[][]"
    assert ArrayType(ClassType("A")) == ArrayType(ClassType("A"))


@pytest.mark.commit
def test_foreign_values_rejected():
    graph = ValueGraph()
    other = ValueGraph()
    a = graph.value("a")
    b = other.value("b")
    with pytest.raises(ValueError):
        graph.add_subtype(a, b)
