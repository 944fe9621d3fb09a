import pytest


def tasks_url(board):
    return f"/api/boards/{board['id']}/tasks"


def titles_by_position(api, board, user, list_id):
    body = api.get(f"{tasks_url(board)}?list_id={list_id}", user).json()
    return [(t["title"], t["position"]) for t in body["data"]]


@pytest.fixture
def todo(board):
    return board["lists"][0]["id"]


@pytest.fixture
def doing(board):
    return board["lists"][1]["id"]


def test_create_task(api, board, owner, todo):
    res = api.post(
        tasks_url(board),
        owner,
        json={
            "title": "Write docs",
            "list_id": todo,
            "description": "All of them",
            "priority": "high",
            "due_date": "2030-01-15T12:00:00Z",
        },
    )
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["title"] == "Write docs"
    assert data["priority"] == "high"
    assert data["position"] == 0
    assert data["created_by"] == owner
    assert data["creator"]["id"] == owner
    assert data["list"] == {"id": todo, "name": "To Do"}
    assert data["assignees"] == []
    assert data["due_date"].startswith("2030-01-15T12:00:00")


def test_create_task_defaults_to_medium_priority(api, board, owner, todo):
    assert api.create_task(owner, board["id"], todo)["priority"] == "medium"


def test_task_positions_increment(api, board, owner, todo):
    positions = [api.create_task(owner, board["id"], todo, f"Task {n}")["position"] for n in range(3)]
    assert positions == [0, 1, 2]


def test_viewer_cannot_create_task(api, board, roles, todo):
    res = api.post(tasks_url(board), roles["viewer"], json={"title": "Nope", "list_id": todo})
    assert res.status_code == 403


def test_stranger_cannot_create_task(api, board, roles, todo):
    res = api.post(tasks_url(board), roles["stranger"], json={"title": "Nope", "list_id": todo})
    assert res.status_code == 403
    assert res.json()["error"]["message"] == "You are not a member of this board"


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"list_id": "x"}, "title"),
        ({"title": "No list"}, "list_id"),
        ({"title": "x" * 201, "list_id": "x"}, "title"),
        ({"title": "Bad", "list_id": "x", "priority": "critical"}, "priority"),
    ],
)
def test_create_task_validation(api, board, owner, payload, field):
    res = api.post(tasks_url(board), owner, json=payload)
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert field in error["details"]


def test_create_task_in_foreign_list(api, board, owner):
    other = api.create_board(owner, "Other")
    res = api.post(tasks_url(board), owner, json={"title": "Stray", "list_id": other["lists"][0]["id"]})
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "List not found"


def test_list_tasks_filters(api, board, owner, roles, todo, doing):
    api.create_task(owner, board["id"], todo, "Fix login bug", priority="urgent")
    api.create_task(owner, board["id"], todo, "Write tests", description="Cover the LOGIN flow")
    assigned = api.create_task(owner, board["id"], doing, "Deploy")
    api.post(f"{tasks_url(board)}/{assigned['id']}/assignees", owner, json={"user_id": roles["editor"]})

    def titles(query=""):
        res = api.get(f"{tasks_url(board)}{query}", roles["viewer"])
        assert res.status_code == 200
        return [t["title"] for t in res.json()["data"]]

    assert titles() == ["Fix login bug", "Write tests", "Deploy"]
    assert titles(f"?list_id={doing}") == ["Deploy"]
    assert titles("?priority=urgent") == ["Fix login bug"]
    assert titles("?search=login") == ["Fix login bug", "Write tests"]
    assert titles(f"?assigned_to={roles['editor']}") == ["Deploy"]


def test_list_tasks_rejects_unknown_priority(api, board, owner):
    res = api.get(f"{tasks_url(board)}?priority=critical", owner)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


def test_list_tasks_paginates(api, board, owner, todo):
    for n in range(3):
        api.create_task(owner, board["id"], todo, f"Task {n}")
    body = api.get(f"{tasks_url(board)}?limit=2&page=2", owner).json()
    assert [t["title"] for t in body["data"]] == ["Task 2"]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}


def test_get_task(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo, "Lookup")
    res = api.get(f"{tasks_url(board)}/{task['id']}", roles["viewer"])
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Lookup"


def test_get_task_through_other_board_is_not_found(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo)
    other = api.create_board(owner, "Other")
    res = api.get(f"/api/boards/{other['id']}/tasks/{task['id']}", owner)
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "Task not found"


def test_update_task(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo, "Draft", description="Old")
    res = api.put(
        f"{tasks_url(board)}/{task['id']}",
        roles["editor"],
        json={"title": "Final", "priority": "low", "description": None},
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["title"] == "Final"
    assert data["priority"] == "low"
    assert data["description"] is None
    assert data["position"] == task["position"]


def test_update_task_ignores_null_title(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo, "Keep me")
    res = api.put(f"{tasks_url(board)}/{task['id']}", owner, json={"title": None})
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Keep me"


def test_viewer_cannot_update_task(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    res = api.put(f"{tasks_url(board)}/{task['id']}", roles["viewer"], json={"title": "Nope"})
    assert res.status_code == 403


def test_delete_task_closes_gap(api, board, owner, todo):
    tasks = [api.create_task(owner, board["id"], todo, name) for name in ("A", "B", "C")]
    res = api.delete(f"{tasks_url(board)}/{tasks[0]['id']}", owner)
    assert res.status_code == 200
    assert res.json()["message"] == "Task deleted successfully"
    assert titles_by_position(api, board, owner, todo) == [("B", 0), ("C", 1)]
    assert api.get(f"{tasks_url(board)}/{tasks[0]['id']}", owner).status_code == 404


def test_move_task_within_list(api, board, owner, todo):
    tasks = [api.create_task(owner, board["id"], todo, name) for name in ("A", "B", "C", "D")]
    res = api.put(f"{tasks_url(board)}/{tasks[3]['id']}/move", owner, json={"list_id": todo, "position": 1})
    assert res.status_code == 200
    assert res.json()["message"] == "Task moved successfully"
    assert res.json()["data"]["position"] == 1
    assert titles_by_position(api, board, owner, todo) == [("A", 0), ("D", 1), ("B", 2), ("C", 3)]

    api.put(f"{tasks_url(board)}/{tasks[0]['id']}/move", owner, json={"list_id": todo, "position": 3})
    assert titles_by_position(api, board, owner, todo) == [("D", 0), ("B", 1), ("C", 2), ("A", 3)]


def test_move_task_across_lists(api, board, owner, todo, doing):
    source = [api.create_task(owner, board["id"], todo, name) for name in ("A", "B", "C")]
    api.create_task(owner, board["id"], doing, "X")
    api.create_task(owner, board["id"], doing, "Y")

    res = api.put(f"{tasks_url(board)}/{source[1]['id']}/move", owner, json={"list_id": doing, "position": 1})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["list_id"] == doing
    assert data["list"]["name"] == "In Progress"
    assert data["position"] == 1

    assert titles_by_position(api, board, owner, todo) == [("A", 0), ("C", 1)]
    assert titles_by_position(api, board, owner, doing) == [("X", 0), ("B", 1), ("Y", 2)]


def test_move_task_past_end_appends(api, board, owner, todo, doing):
    task = api.create_task(owner, board["id"], todo, "A")
    api.create_task(owner, board["id"], doing, "X")
    res = api.put(f"{tasks_url(board)}/{task['id']}/move", owner, json={"list_id": doing, "position": 10})
    assert res.json()["data"]["position"] == 1
    assert titles_by_position(api, board, owner, doing) == [("X", 0), ("A", 1)]


def test_move_task_to_other_board_list(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo)
    other = api.create_board(owner, "Other")
    res = api.put(
        f"{tasks_url(board)}/{task['id']}/move",
        owner,
        json={"list_id": other["lists"][0]["id"], "position": 0},
    )
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Cannot move task to a list on a different board"


def test_move_task_to_missing_list(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo)
    res = api.put(f"{tasks_url(board)}/{task['id']}/move", owner, json={"list_id": "missing", "position": 0})
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "Target list not found"


def test_move_task_requires_position(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo)
    res = api.put(f"{tasks_url(board)}/{task['id']}/move", owner, json={"list_id": todo})
    assert res.status_code == 400
    assert "position" in res.json()["error"]["details"]


def test_move_is_logged(api, board, owner, todo, doing):
    task = api.create_task(owner, board["id"], todo)
    api.put(f"{tasks_url(board)}/{task['id']}/move", owner, json={"list_id": doing, "position": 0})
    logs = api.get(f"/api/boards/{board['id']}/activity?task_id={task['id']}", owner).json()["data"]
    assert logs[0]["changes"] == {
        "action": "moved",
        "from_list": "To Do",
        "to_list": "In Progress",
        "new_position": 0,
    }


# === Assignees ===


def assignees_url(board, task):
    return f"{tasks_url(board)}/{task['id']}/assignees"


def test_assign_member(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    res = api.post(assignees_url(board, task), roles["editor"], json={"user_id": roles["viewer"]})
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["user_id"] == roles["viewer"]
    assert data["user"]["first_name"] == "Viewer"

    fetched = api.get(f"{tasks_url(board)}/{task['id']}", roles["owner"]).json()["data"]
    assert [a["user_id"] for a in fetched["assignees"]] == [roles["viewer"]]


def test_assign_owner(api, board, owner, todo):
    task = api.create_task(owner, board["id"], todo)
    res = api.post(assignees_url(board, task), owner, json={"user_id": owner})
    assert res.status_code == 201


def test_assign_twice_conflicts(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    api.post(assignees_url(board, task), roles["owner"], json={"user_id": roles["editor"]})
    res = api.post(assignees_url(board, task), roles["owner"], json={"user_id": roles["editor"]})
    assert res.status_code == 409
    assert res.json()["error"]["message"] == "User is already assigned to this task"


def test_assign_non_member(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    res = api.post(assignees_url(board, task), roles["owner"], json={"user_id": roles["stranger"]})
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "User is not a member of this board"


def test_viewer_cannot_assign(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    res = api.post(assignees_url(board, task), roles["viewer"], json={"user_id": roles["viewer"]})
    assert res.status_code == 403


def test_unassign(api, board, roles, todo):
    task = api.create_task(roles["owner"], board["id"], todo)
    api.post(assignees_url(board, task), roles["owner"], json={"user_id": roles["editor"]})
    res = api.delete(f"{assignees_url(board, task)}/{roles['editor']}", roles["owner"])
    assert res.status_code == 200
    assert res.json()["message"] == "User unassigned successfully"

    res = api.delete(f"{assignees_url(board, task)}/{roles['editor']}", roles["owner"])
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "Assignment not found"
