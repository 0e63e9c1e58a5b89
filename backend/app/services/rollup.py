"""Roll view tasks up to their top-most ancestor present in the same view."""

from typing import Optional

MAX_HOPS = 50


def climb_to_root(task_id: str, by_id: dict[str, dict], max_hops: int = MAX_HOPS) -> Optional[dict]:
    """Follow parent links while the parent is itself in ``by_id``.

    A parent outside the set stops the walk, so the answer is the top-most
    *present* ancestor rather than the literal root of the hierarchy.
    """
    current = by_id.get(task_id)
    hops = 0
    while current is not None and hops < max_hops:
        parent = current.get("parent")
        if not parent or str(parent) not in by_id:
            break
        current = by_id[str(parent)]
        hops += 1
    return current


def _is_assigned(task: dict, assignee_id: str) -> bool:
    return any(str(a.get("id")) == str(assignee_id) for a in task.get("assignees") or [])


def top_level_tasks(tasks: list[dict]) -> list[dict]:
    by_id = {t["id"]: t for t in tasks}
    return [
        {"id": t["id"], "name": t["name"]}
        for t in tasks
        if not t.get("parent") or str(t["parent"]) not in by_id
    ]


def projects_for_assignee(tasks: list[dict], assignee_id: str) -> list[dict]:
    by_id = {t["id"]: t for t in tasks}
    project_ids = []
    for t in tasks:
        if not _is_assigned(t, assignee_id):
            continue
        root = climb_to_root(t["id"], by_id)
        if root is not None and root["id"] not in project_ids:
            project_ids.append(root["id"])

    projects = [{"id": by_id[pid]["id"], "name": by_id[pid]["name"]} for pid in project_ids]
    return sorted(projects, key=lambda p: p["name"].lower())
