import pytest

from conftest import API, bearer
from task_api.core.config import get_settings

TASKS = f"{API}/tasks"


@pytest.fixture
def task_ids(client, auth_headers):
    return [task["id"] for task in client.get(f"{TASKS}/", headers=auth_headers).json()["data"]]


def count_tasks(client, headers):
    return client.get(f"{TASKS}/", headers=headers).json()["pagination"]["total"]


class TestBulkCreate:
    def test_creates_all_tasks(self, client, auth_headers):
        payload = {"tasks": [{"title": "One"}, {"title": "Two", "priority": "high"}]}

        response = client.post(f"{TASKS}/bulk", json=payload, headers=auth_headers)

        assert response.status_code == 201
        assert response.json() == {
            "message": "Bulk task creation successful",
            "tasks_created": 2,
            "total_requested": 2,
        }
        assert count_tasks(client, auth_headers) == 5

    def test_invalid_item_rejects_whole_batch(self, client, auth_headers):
        payload = {"tasks": [{"title": "Fine"}, {"title": ""}, {"priority": "low"}]}

        response = client.post(f"{TASKS}/bulk", json=payload, headers=auth_headers)

        assert response.status_code == 400
        message = response.json()["error"]["message"]
        assert message["message"] == "Some tasks failed validation"
        assert message["valid_tasks_count"] == 1
        assert [item["index"] for item in message["validation_errors"]] == [1, 2]
        assert count_tasks(client, auth_headers) == 3

    def test_empty_list_rejected(self, client, auth_headers):
        response = client.post(f"{TASKS}/bulk", json={"tasks": []}, headers=auth_headers)

        assert response.status_code == 400

    def test_too_many_tasks(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_bulk_size", 2)
        payload = {"tasks": [{"title": f"Task {n}"} for n in range(3)]}

        response = client.post(f"{TASKS}/bulk", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot create more than 2 tasks at once"


class TestBulkUpdate:
    def test_updates_owned_tasks(self, client, auth_headers, task_ids):
        response = client.patch(
            f"{TASKS}/bulk",
            json={"task_ids": task_ids[:2], "updates": {"status": "completed", "priority": "low"}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 2
        completed = client.get(f"{TASKS}/?completed=true", headers=auth_headers).json()["data"]
        assert sorted(t["id"] for t in completed) == sorted(task_ids[:2])
        assert {t["priority"] for t in completed} == {"low"}

    def test_foreign_task_aborts_update(self, client, auth_headers, task_ids, register_user):
        other = bearer(register_user(name="Other", email="other@example.com")["access_token"])
        foreign_id = client.get(f"{TASKS}/", headers=other).json()["data"][0]["id"]

        response = client.patch(
            f"{TASKS}/bulk",
            json={"task_ids": [task_ids[0], foreign_id], "updates": {"status": "completed"}},
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Some tasks not found or unauthorized"
        assert client.get(f"{TASKS}/?completed=true", headers=auth_headers).json()["data"] == []

    def test_empty_updates_rejected(self, client, auth_headers, task_ids):
        response = client.patch(
            f"{TASKS}/bulk", json={"task_ids": task_ids, "updates": {}}, headers=auth_headers
        )

        assert response.status_code == 400

    def test_duplicate_ids_are_collapsed(self, client, auth_headers, task_ids):
        response = client.patch(
            f"{TASKS}/bulk",
            json={"task_ids": [task_ids[0], task_ids[0]], "updates": {"priority": "high"}},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 1

    def test_bulk_update_is_logged(self, client, auth_headers, task_ids):
        client.patch(
            f"{TASKS}/bulk",
            json={"task_ids": [task_ids[0]], "updates": {"status": "in_progress"}},
            headers=auth_headers,
        )

        logs = client.get(f"{TASKS}/{task_ids[0]}/logs", headers=auth_headers).json()

        assert [log["message"] for log in logs][-2:] == [
            "Status changed from pending to in_progress",
            "Updated in bulk",
        ]


class TestBulkDelete:
    def test_deletes_only_owned_tasks(self, client, auth_headers, task_ids, register_user):
        other = bearer(register_user(name="Other", email="other@example.com")["access_token"])
        foreign_id = client.get(f"{TASKS}/", headers=other).json()["data"][0]["id"]

        response = client.request(
            "DELETE",
            f"{TASKS}/bulk",
            json={"task_ids": [task_ids[0], foreign_id]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"message": "1 tasks deleted successfully", "deleted": 1}
        assert count_tasks(client, auth_headers) == 2
        assert count_tasks(client, other) == 3

    def test_rejects_non_positive_ids(self, client, auth_headers):
        response = client.request(
            "DELETE", f"{TASKS}/bulk", json={"task_ids": [0]}, headers=auth_headers
        )

        assert response.status_code == 400
