from datetime import date

from taskflow import graph
from taskflow.index import TaskIndex
from taskflow.models import Priority, Project, Subtask, Task, TaskStatus, Workspace


def _setup(*tasks):
    inbox = Project.inbox()
    inbox.tasks.extend(tasks)
    ws = Workspace(projects=[inbox])
    return ws, TaskIndex(ws)


def test_add_dependency_keeps_both_directions():
    a, b = Task(id="a", name="A"), Task(id="b", name="B")
    _, index = _setup(a, b)
    assert graph.add_dependency(index, "a", "b")
    assert a.blocked_by == ["b"]
    assert b.blocks == ["a"]


def test_readding_an_edge_does_not_duplicate():
    a, b = Task(id="a", name="A"), Task(id="b", name="B")
    _, index = _setup(a, b)
    graph.add_dependency(index, "a", "b")
    assert graph.add_dependency(index, "a", "b")
    assert a.blocked_by == ["b"]
    assert b.blocks == ["a"]


def test_self_dependency_rejected():
    a = Task(id="a", name="A")
    _, index = _setup(a)
    assert not graph.add_dependency(index, "a", "a")
    assert a.blocked_by == []


def test_unknown_and_subtask_ids_rejected():
    a = Task(id="a", name="A", subtasks=[Subtask(id="s", name="S")])
    _, index = _setup(a)
    assert not graph.add_dependency(index, "a", "nope")
    assert not graph.add_dependency(index, "a", "s")
    assert not graph.add_dependency(index, "s", "a")
    assert a.blocked_by == [] and a.blocks == []


def test_transitive_cycle_rejected():
    a, b, c = Task(id="a", name="A"), Task(id="b", name="B"), Task(id="c", name="C")
    _, index = _setup(a, b, c)
    assert graph.add_dependency(index, "a", "b")  # b before a
    assert graph.add_dependency(index, "c", "a")  # a before c
    assert graph.would_create_cycle(index, "b", "c")
    assert not graph.add_dependency(index, "b", "c")
    assert b.blocked_by == []
    assert c.blocks == []


def test_completing_blocker_unblocks_but_reverse_edge_still_rejected():
    a, b = Task(id="a", name="A"), Task(id="b", name="B")
    _, index = _setup(a, b)
    graph.add_dependency(index, "a", "b")
    assert graph.is_blocked(index, a)

    b.status = TaskStatus.DONE
    assert not graph.is_blocked(index, a)
    assert not graph.add_dependency(index, "b", "a")


def test_remove_dependency_is_total():
    a, b = Task(id="a", name="A"), Task(id="b", name="B")
    _, index = _setup(a, b)
    graph.add_dependency(index, "a", "b")
    assert graph.remove_dependency(index, "a", "b")
    assert a.blocked_by == [] and b.blocks == []
    assert graph.remove_dependency(index, "a", "b")
    assert graph.remove_dependency(index, "ghost", "b")


def test_dangling_blocker_is_ignored():
    a = Task(id="a", name="A", blocked_by=["deleted"])
    _, index = _setup(a)
    assert not graph.is_blocked(index, a)
    assert graph.blocking_tasks(index, a) == []


def test_blocking_tasks_active_only():
    b_done = Task(id="b", name="B", status=TaskStatus.DONE, blocks=["a"])
    c_open = Task(id="c", name="C", blocks=["a"])
    a = Task(id="a", name="A", blocked_by=["b", "c"])
    _, index = _setup(a, b_done, c_open)
    assert [t.id for t in graph.blocking_tasks(index, a)] == ["b", "c"]
    assert [t.id for t in graph.blocking_tasks(index, a, active_only=True)] == ["c"]
    assert [t.id for t in graph.blocked_tasks(index, c_open)] == ["a"]


def test_dependency_dag_edges_point_from_blocker():
    a, b = Task(id="a", name="A"), Task(id="b", name="B")
    _, index = _setup(a, b)
    graph.add_dependency(index, "a", "b")
    G = graph.dependency_dag(index)
    assert list(G.edges) == [("b", "a")]


def test_find_cycles_on_malformed_data():
    a = Task(id="a", name="A", blocked_by=["b"], blocks=["b"])
    b = Task(id="b", name="B", blocked_by=["a"], blocks=["a"])
    _, index = _setup(a, b)
    assert len(graph.find_cycles(index)) == 1
    # the cycle walk terminates on malformed data
    assert graph.would_create_cycle(index, "a", "b")


def test_suggest_order_puts_blockers_first_then_priority():
    x = Task(id="x", name="X", priority=Priority.LOW)
    y = Task(id="y", name="Y", priority=Priority.URGENT)
    z = Task(id="z", name="Z", priority=Priority.HIGH)
    _, index = _setup(x, y, z)
    graph.add_dependency(index, "y", "x")
    order = graph.suggest_order(index, index.tasks())
    assert [t.id for t in order] == ["z", "x", "y"]


def test_suggest_order_breaks_ties_by_due_date():
    late = Task(id="late", name="Late", due_date=date(2024, 6, 1))
    soon = Task(id="soon", name="Soon", due_date=date(2024, 5, 1))
    undated = Task(id="none", name="Undated")
    _, index = _setup(undated, late, soon)
    order = graph.suggest_order(index, index.tasks())
    assert [t.id for t in order] == ["soon", "late", "none"]


def test_suggest_order_survives_cycles():
    a = Task(id="a", name="A", blocked_by=["b"], blocks=["b"])
    b = Task(id="b", name="B", blocked_by=["a"], blocks=["a"])
    _, index = _setup(a, b)
    assert {t.id for t in graph.suggest_order(index, index.tasks())} == {"a", "b"}


def test_dependency_summary():
    a, b, c = Task(id="a", name="A"), Task(id="b", name="B"), Task(id="c", name="C")
    loner = Task(id="d", name="D")
    _, index = _setup(a, b, c, loner)
    graph.add_dependency(index, "a", "b")
    graph.add_dependency(index, "b", "c")
    summary = graph.dependency_summary(index, index.tasks())
    assert [t.id for t in summary.blocked] == ["a", "b"]
    assert [t.id for t in summary.ready] == ["c"]
    assert [t.id for t in summary.blocking] == ["b", "c"]
