from conftest import make_task

from task_hierarchy import build_forest, sort_by_task_number, task_number_key


def numbers(forest):
    return {node.id: node.task_number for node in forest.nodes}


def test_roots_and_children_get_dotted_numbers():
    tasks = [
        make_task("a", order=0),
        make_task("b", order=1),
        make_task("b1", parent="b", order=0),
        make_task("b2", parent="b", order=1),
        make_task("b2x", parent="b2", order=0),
    ]
    assert numbers(build_forest(tasks)) == {
        "a": "1",
        "b": "2",
        "b1": "2.1",
        "b2": "2.2",
        "b2x": "2.2.1",
    }


def test_numbering_follows_order_not_input_position():
    tasks = [make_task("late", order=5), make_task("early", order=1)]
    assert numbers(build_forest(tasks)) == {"early": "1", "late": "2"}


def test_stale_stored_numbers_are_overwritten():
    tasks = [
        make_task("x", order=1, task_number="7"),
        make_task("y", order=0, task_number="9.4"),
    ]
    assert numbers(build_forest(tasks)) == {"y": "1", "x": "2"}


def test_numbering_is_deterministic():
    tasks = [make_task(str(i), order=i % 3) for i in range(9)]
    first = numbers(build_forest(tasks))
    second = numbers(build_forest(list(reversed(tasks))))
    assert sorted(first.values()) == sorted(second.values())
    assert first == numbers(build_forest(tasks))


def test_task_number_key():
    assert task_number_key("2.10.1") == (2, 10, 1)
    assert task_number_key("3.x") == (3, 0)
    assert task_number_key(None) == ()
    assert task_number_key("10") > task_number_key("9")


def test_sort_by_task_number_puts_unnumbered_last():
    tasks = [
        make_task("none"),
        make_task("ten", task_number="10"),
        make_task("two", task_number="2"),
        make_task("two-one", task_number="2.1"),
    ]
    assert [t.id for t in sort_by_task_number(tasks)] == ["two", "two-one", "ten", "none"]
