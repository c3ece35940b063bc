"""Tests for linear constraint derivation and connectability."""

import pytest
from qualflow import (
    POLY,
    SENSITIVE,
    ArrayType,
    ClassType,
    ConstraintSet,
    EqualityConstraint,
    LinearConstraintDeriver,
    MethodRef,
    ReferenceIndex,
    SubtypeConstraint,
    ValueGraph,
    ValueKind,
)

MAIN = MethodRef("main", "App")


def derive_closure(graph, constraints):
    """Register constraints and derive from each of them (including new ones) until nothing new
    is found. Returns the deriver and the extended set.
    """
    cs = ConstraintSet(constraints)
    index = ReferenceIndex(cs)
    deriver = LinearConstraintDeriver(graph, index)
    pending = list(cs)
    while pending:
        new_constraints = deriver.derive(pending.pop(0), cs)
        cs.update(new_constraints)
        pending.extend(new_constraints)
    return deriver, cs


def field_read(graph, field_annos, receiver_type=None):
    field = graph.value("App.f", ValueKind.FIELD, field_annos, enclosing_class="App")
    receiver = graph.value("x", method=MAIN, value_type=receiver_type)
    target = graph.value("y", method=MAIN)
    return graph.field_adapt(field, receiver), receiver, target


@pytest.mark.commit
def test_polymorphic_field_read_flows_from_receiver():
    graph = ValueGraph()
    read, receiver, target = field_read(graph, {POLY})
    c = SubtypeConstraint(read, target)
    _, cs = derive_closure(graph, [c])
    assert SubtypeConstraint(receiver, target) in cs
    derived = [d for d in cs if d == SubtypeConstraint(receiver, target)][0]
    assert derived.causes == [c]


@pytest.mark.commit
def test_array_read_flows_from_receiver():
    graph = ValueGraph()
    read, receiver, target = field_read(graph, {SENSITIVE}, ArrayType(ClassType("App")))
    _, cs = derive_closure(graph, [SubtypeConstraint(read, target)])
    assert SubtypeConstraint(receiver, target) in cs


@pytest.mark.commit
def test_fixed_field_read_does_not_flow_from_receiver():
    graph = ValueGraph()
    read, receiver, target = field_read(graph, {SENSITIVE}, ClassType("App"))
    _, cs = derive_closure(graph, [SubtypeConstraint(read, target)])
    assert len(cs) == 1


@pytest.mark.commit
def test_field_read_forwards_writes():
    graph = ValueGraph()
    read, receiver, target = field_read(graph, {SENSITIVE})
    z = graph.value("z", method=MAIN)
    _, cs = derive_closure(
        graph, [SubtypeConstraint(z, read), SubtypeConstraint(read, target)]
    )
    assert SubtypeConstraint(z, target) in cs


@pytest.mark.commit
def test_polymorphic_field_write_flows_to_receiver():
    graph = ValueGraph()
    write, receiver, value = field_read(graph, {POLY})
    _, cs = derive_closure(graph, [SubtypeConstraint(value, write)])
    assert SubtypeConstraint(value, receiver) in cs


@pytest.mark.commit
def test_parameter_and_return_only_is_closed():
    graph = ValueGraph()
    p = graph.value("p", ValueKind.PARAMETER, method=MAIN)
    r = graph.value("r", ValueKind.RETURN, method=MAIN)
    _, cs = derive_closure(graph, [SubtypeConstraint(p, r), SubtypeConstraint(r, p)])
    assert len(cs) == 2


@pytest.mark.commit
def test_parameter_flows_through_local_to_return():
    graph = ValueGraph()
    p = graph.value("p", ValueKind.PARAMETER, method=MAIN)
    local = graph.value("l", method=MAIN)
    r = graph.value("r", ValueKind.RETURN, method=MAIN)
    _, cs = derive_closure(graph, [SubtypeConstraint(p, local), SubtypeConstraint(local, r)])
    assert SubtypeConstraint(p, r) in cs
    assert len(cs) == 3


@pytest.mark.commit
def test_locals_do_not_propagate():
    graph = ValueGraph()
    a, b, c = (graph.value(n, method=MAIN) for n in "abc")
    _, cs = derive_closure(graph, [SubtypeConstraint(a, b), SubtypeConstraint(b, c)])
    assert SubtypeConstraint(a, c) not in cs


@pytest.mark.commit
def test_adaptations_of_same_receiver_are_bridged():
    """z <: y|>p, p <: r, y|>r <: x gives z <: x."""
    graph = ValueGraph()
    identity = MethodRef("identity", "Box")
    p = graph.value("Box.identity@parameter0", ValueKind.PARAMETER, method=identity)
    r = graph.value("Box.identity@return", ValueKind.RETURN, method=identity)
    y = graph.value("y", method=MAIN)
    other = graph.value("w", method=MAIN)
    z = graph.value("z", method=MAIN)
    x = graph.value("x", method=MAIN)
    constraints = [
        SubtypeConstraint(z, graph.method_adapt(p, y)),
        SubtypeConstraint(graph.method_adapt(r, y), x),
        SubtypeConstraint(graph.method_adapt(r, other), graph.value("v", method=MAIN)),
        SubtypeConstraint(p, r),
    ]
    _, cs = derive_closure(graph, constraints)
    assert SubtypeConstraint(z, x) in cs
    assert SubtypeConstraint(z, graph.value("v")) not in cs


@pytest.mark.commit
def test_closure_is_idempotent():
    graph = ValueGraph()
    p = graph.value("p", ValueKind.PARAMETER, method=MAIN)
    read, receiver, target = field_read(graph, {POLY})
    r = graph.value("r", ValueKind.RETURN, method=MAIN)
    deriver, cs = derive_closure(
        graph,
        [
            SubtypeConstraint(p, read),
            SubtypeConstraint(read, target),
            SubtypeConstraint(target, r),
            SubtypeConstraint(receiver, target),
        ],
    )
    for c in list(cs):
        assert len(deriver.derive(c, cs)) == 0


@pytest.mark.commit
def test_can_connect():
    base_run = MethodRef("run", "Base")
    sub_run = MethodRef("run", "Sub")
    other_run = MethodRef("run", "Other")
    graph = ValueGraph(hierarchy={"Sub": ["Base"], "Base": ["Object"], "Other": ["Object"]})
    deriver = LinearConstraintDeriver(graph, ReferenceIndex())
    a = graph.value("a", ValueKind.PARAMETER, method=base_run)
    b = graph.value("b", ValueKind.PARAMETER, method=sub_run)
    c = graph.value("c", ValueKind.PARAMETER, method=other_run)
    d = graph.value("d", method=MAIN)
    e = graph.value("e", method=MAIN)
    lit = graph.value("lit", ValueKind.LITERAL, method=MAIN)
    assert deriver.can_connect(a, b)
    assert deriver.can_connect(b, a)
    assert not deriver.can_connect(a, c)
    assert not deriver.can_connect(a, d)
    assert deriver.can_connect(d, e)
    assert not deriver.can_connect(d, lit)
    assert not deriver.can_connect(d, graph.value("global"))
    assert not deriver.can_connect(None, d)


@pytest.mark.parametrize("parameter_first", [True, False])
@pytest.mark.commit
def test_equality_flows_in_either_orientation(parameter_first):
    """p = l, l <: y gives p <: y whichever side of the equality p is written on."""
    graph = ValueGraph()
    p = graph.value("p", ValueKind.PARAMETER, method=MAIN)
    local = graph.value("l", method=MAIN)
    y = graph.value("y", method=MAIN)
    equality = EqualityConstraint(p, local) if parameter_first else EqualityConstraint(local, p)
    flow = SubtypeConstraint(local, y)
    cs = ConstraintSet([equality, flow])
    deriver = LinearConstraintDeriver(graph, ReferenceIndex(cs))
    derived = deriver.derive(flow, cs)
    assert SubtypeConstraint(p, y) in derived
    assert SubtypeConstraint(local, y) not in derived
    assert SubtypeConstraint(y, y) not in derived


@pytest.mark.parametrize("return_first", [True, False])
@pytest.mark.commit
def test_equality_forwards_to_parameter_sink(return_first):
    """p <: l, l = r gives p <: r whichever side of the equality r is written on."""
    graph = ValueGraph()
    p = graph.value("p", ValueKind.PARAMETER, method=MAIN)
    local = graph.value("l", method=MAIN)
    r = graph.value("r", ValueKind.RETURN, method=MAIN)
    equality = EqualityConstraint(r, local) if return_first else EqualityConstraint(local, r)
    flow = SubtypeConstraint(p, local)
    cs = ConstraintSet([equality, flow])
    deriver = LinearConstraintDeriver(graph, ReferenceIndex(cs))
    derived = deriver.derive(flow, cs)
    assert SubtypeConstraint(p, r) in derived
    assert SubtypeConstraint(p, local) not in derived
