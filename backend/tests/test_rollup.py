from app.services.rollup import climb_to_root, projects_for_assignee, top_level_tasks


def _task(task_id, name, parent=None, assignees=()):
    return {"id": task_id, "name": name, "parent": parent, "assignees": [{"id": a} for a in assignees]}


def test_climb_reaches_top_of_three_level_chain():
    tasks = [
        _task("p", "Project"),
        _task("s", "Sub", parent="p"),
        _task("ss", "Sub-sub", parent="s"),
    ]
    by_id = {t["id"]: t for t in tasks}

    assert climb_to_root("ss", by_id)["id"] == "p"


def test_climb_stops_at_topmost_present_ancestor():
    # "root" exists in the workspace but not in this view
    tasks = [
        _task("mid", "Middle", parent="root"),
        _task("leaf", "Leaf", parent="mid"),
    ]
    by_id = {t["id"]: t for t in tasks}

    assert climb_to_root("leaf", by_id)["id"] == "mid"


def test_climb_is_bounded_on_cycles():
    tasks = [_task("a", "A", parent="b"), _task("b", "B", parent="a")]
    by_id = {t["id"]: t for t in tasks}

    assert climb_to_root("a", by_id, max_hops=5)["id"] in {"a", "b"}


def test_climb_unknown_task_returns_none():
    assert climb_to_root("missing", {}) is None


def test_top_level_tasks_without_assignee():
    tasks = [
        _task("p1", "Alpha"),
        _task("c1", "Child", parent="p1"),
        _task("orphan", "Orphan", parent="not-in-view"),
    ]

    assert top_level_tasks(tasks) == [
        {"id": "p1", "name": "Alpha"},
        {"id": "orphan", "name": "Orphan"},
    ]


def test_projects_for_assignee_dedupes_and_sorts():
    tasks = [
        _task("z", "Zeta"),
        _task("a", "alpha"),
        _task("z1", "Zeta task 1", parent="z", assignees=[7]),
        _task("z2", "Zeta task 2", parent="z", assignees=[7]),
        _task("a1", "Alpha task", parent="a", assignees=["7"]),
        _task("other", "Someone else's", assignees=[8]),
    ]

    assert projects_for_assignee(tasks, "7") == [
        {"id": "a", "name": "alpha"},
        {"id": "z", "name": "Zeta"},
    ]
