from datetime import date, datetime, timedelta, timezone

from conftest import API, bearer
from task_api.routers.analytics import escape_like, week_start

ANALYTICS = f"{API}/analytics"
TASKS = f"{API}/tasks"


def test_week_start_is_previous_sunday():
    assert week_start(datetime(2026, 10, 21, 15, 30)) == date(2026, 10, 18)
    assert week_start(datetime(2026, 10, 18, 0, 0)) == date(2026, 10, 18)
    assert week_start(datetime(2026, 10, 17, 23, 59)) == date(2026, 10, 11)


def test_week_start_uses_utc_day():
    # Sunday 01:00 at UTC+5 is still Saturday in UTC
    moment = datetime(2026, 10, 18, 1, 0, tzinfo=timezone(timedelta(hours=5)))

    assert week_start(moment) == date(2026, 10, 11)


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


class TestUserAnalytics:
    def test_own_analytics(self, client, register_user):
        body = register_user()
        headers = bearer(body["access_token"])
        first = client.get(f"{TASKS}/", headers=headers).json()["data"][0]
        client.patch(f"{TASKS}/{first['id']}", json={"is_completed": True}, headers=headers)

        response = client.get(f"{ANALYTICS}/users/{body['id']}", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == body["id"]
        assert data["task_stats"] == {"completed": 1, "pending": 2}
        assert len(data["recent_tasks"]) == 3
        assert len(data["weekly_progress"]) == 1
        assert data["weekly_progress"][0]["count"] == 3
        assert data["weekly_progress"][0]["week_start"] == week_start(datetime.now(timezone.utc)).isoformat()

    def test_recent_tasks_are_capped(self, client, register_user):
        body = register_user()
        headers = bearer(body["access_token"])
        client.post(
            f"{TASKS}/bulk",
            json={"tasks": [{"title": f"Task {n}"} for n in range(12)]},
            headers=headers,
        )

        data = client.get(f"{ANALYTICS}/users/{body['id']}", headers=headers).json()

        assert len(data["recent_tasks"]) == 10
        assert data["task_stats"]["pending"] == 15

    def test_other_user_forbidden(self, client, register_user):
        other = register_user(name="Other", email="other@example.com")
        headers = bearer(register_user()["access_token"])

        response = client.get(f"{ANALYTICS}/users/{other['id']}", headers=headers)

        assert response.status_code == 403

    def test_manager_can_view_anyone(self, client, register_user, manager_headers):
        other = register_user(name="Other", email="other@example.com")

        response = client.get(f"{ANALYTICS}/users/{other['id']}", headers=manager_headers)

        assert response.status_code == 200

    def test_unknown_user(self, client, manager_headers):
        response = client.get(f"{ANALYTICS}/users/999", headers=manager_headers)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User not found"


class TestUsersWithStats:
    def test_requires_manager(self, client, auth_headers):
        response = client.get(f"{ANALYTICS}/users", headers=auth_headers)

        assert response.status_code == 403

    def test_lists_users_with_counts(self, client, register_user, manager_headers):
        body = register_user()
        headers = bearer(body["access_token"])
        first = client.get(f"{TASKS}/", headers=headers).json()["data"][0]
        client.patch(f"{TASKS}/{first['id']}", json={"status": "completed"}, headers=headers)

        response = client.get(f"{ANALYTICS}/users", headers=manager_headers)

        assert response.status_code == 200
        page = response.json()
        assert page["pagination"]["total"] == 2
        users = {user["email"]: user for user in page["data"]}
        assert users["user@example.com"]["task_count"] == 3
        assert len(users["user@example.com"]["pending_task_ids"]) == 2
        assert first["id"] not in users["user@example.com"]["pending_task_ids"]
        assert users["manager@example.com"]["role"] == "manager"


class TestSearch:
    def _seed(self, client, headers):
        for title in ("Annual report", "Report draft", "Report"):
            client.post(f"{TASKS}/", json={"title": title}, headers=headers)

    def test_results_are_ranked(self, client, register_user):
        headers = bearer(register_user(name="Alice Smith")["access_token"])
        self._seed(client, headers)

        response = client.get(f"{ANALYTICS}/search?q=report", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "report"
        assert data["count"] == 3
        assert [r["title"] for r in data["results"]] == ["Report", "Report draft", "Annual report"]
        assert data["results"][0]["user_name"] == "Alice Smith"

    def test_matches_owner_name(self, client, register_user):
        headers = bearer(register_user(name="Zelda Quinn")["access_token"])

        data = client.get(f"{ANALYTICS}/search?q=zelda", headers=headers).json()

        assert data["count"] == 3

    def test_regular_user_sees_only_own_tasks(self, client, register_user, manager_headers):
        headers = bearer(register_user()["access_token"])
        other = bearer(register_user(name="Other", email="other@example.com")["access_token"])
        self._seed(client, headers)
        self._seed(client, other)

        own = client.get(f"{ANALYTICS}/search?q=report", headers=headers).json()
        everyone = client.get(f"{ANALYTICS}/search?q=report&limit=50", headers=manager_headers).json()

        assert own["count"] == 3
        assert everyone["count"] == 6

    def test_query_too_short(self, client, auth_headers):
        response = client.get(f"{ANALYTICS}/search?q=%20a%20", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Search query must be at least 2 characters long"

    def test_wildcards_are_literal(self, client, auth_headers):
        data = client.get(f"{ANALYTICS}/search?q=%25%25", headers=auth_headers).json()

        assert data["count"] == 0
