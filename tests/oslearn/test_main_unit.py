"""Unit tests for the HTTP surface.

The app runs with its real lifespan against a temporary progress file.
GitHub is served by an httpx.MockTransport router.
"""

import base64
import json
import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
from fastapi.testclient import TestClient

from oslearn import main
from oslearn.github import GitHubClient


LEDGER_TEXT = "# Contributors\n\n- [@alice](https://github.com/alice) - Alice - 2024-01-01\n"
PR_URL = "https://github.com/upstream/course/pull/7"


class FakeGitHubRouter:
    """Routes GitHub API requests to canned responses."""

    def __init__(self, login: str = "octocat"):
        self.login = login
        self.ledger = LEDGER_TEXT
        self.search_status = 200
        self.requests = []
        self.forked = threading.Event()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        route = (request.method, request.url.path)

        if route == ("GET", "/user"):
            return httpx.Response(200, json={"login": self.login, "name": "Mona"})
        if route == ("POST", "/repos/upstream/course/forks"):
            self.forked.set()
            return httpx.Response(
                202, json={"name": "course", "owner": {"login": self.login}}
            )
        if route == ("GET", f"/repos/{self.login}/course/contents/CONTRIBUTORS.md"):
            content = base64.b64encode(self.ledger.encode("utf-8")).decode("ascii")
            return httpx.Response(200, json={"content": content, "sha": "sha-1"})
        if route == ("PUT", f"/repos/{self.login}/course/contents/CONTRIBUTORS.md"):
            body = json.loads(request.content)
            self.ledger = base64.b64decode(body["content"]).decode("utf-8")
            return httpx.Response(200, json={"commit": {"sha": "c0ffee"}})
        if route == ("POST", "/repos/upstream/course/pulls"):
            return httpx.Response(201, json={"number": 7, "html_url": PR_URL})
        if route == ("GET", "/search/repositories"):
            if self.search_status != 200:
                return httpx.Response(self.search_status, json={"message": "nope"})
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "name": "widgets",
                            "full_name": "acme/widgets",
                            "html_url": "https://github.com/acme/widgets",
                            "stargazers_count": 12,
                        }
                    ]
                },
            )
        if route == ("GET", "/search/issues"):
            return httpx.Response(503, text="unavailable")
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def github():
    return FakeGitHubRouter()


def _serve(tmp_path, monkeypatch, github, propagation_delay: str = "0"):
    monkeypatch.setenv("OSLEARN_PROGRESS_PATH", str(tmp_path / "progress.json"))
    monkeypatch.setenv("OSLEARN_EVENT_SINKS", '["logging"]')
    monkeypatch.setenv("OSLEARN_UPSTREAM_OWNER", "upstream")
    monkeypatch.setenv("OSLEARN_UPSTREAM_REPO", "course")
    monkeypatch.setenv("OSLEARN_PROPAGATION_DELAY_SECONDS", propagation_delay)

    def create_client(token: str, cfg) -> GitHubClient:
        return GitHubClient(
            token=token,
            base_url="https://github.test",
            transport=httpx.MockTransport(github),
        )

    monkeypatch.setattr(main, "create_github_client", create_client)
    return TestClient(main.app)


@pytest.fixture
def client(tmp_path, monkeypatch, github):
    with _serve(tmp_path, monkeypatch, github) as test_client:
        yield test_client


@pytest.fixture
def slow_client(tmp_path, monkeypatch, github):
    """App whose runs pause after forking, long enough to overlap a request."""
    with _serve(tmp_path, monkeypatch, github, propagation_delay="1") as test_client:
        yield test_client


def _complete_curriculum(client: TestClient) -> None:
    assert client.post(
        "/setup", json={"content_key": "key", "hosting_token": "ghp_token"}
    ).status_code == 200
    for stage in (2, 3, 4):
        assert client.post(f"/stages/{stage}/advance").status_code == 200


class TestHealthAndMetrics:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_metrics(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


class TestProgressEndpoints:
    def test_fresh_progress(self, client):
        body = client.get("/progress").json()

        assert body["current_stage"] == 0
        assert body["completed_stages"] == []
        assert body["setup_complete"] is False
        assert [s["status"] for s in body["stages"]] == [
            "active",
            "unlocked",
            "locked",
            "locked",
            "locked",
        ]

    def test_setup_unlocks_first_module(self, client):
        response = client.post(
            "/setup", json={"content_key": "key", "hosting_token": "ghp_token"}
        )

        assert response.status_code == 200
        assert response.json()["current_stage"] == 1
        assert response.json()["setup_complete"] is True

    def test_setup_with_blank_credentials(self, client):
        response = client.post("/setup", json={"content_key": "", "hosting_token": ""})

        assert response.status_code == 422

    def test_advance_to_locked_stage_is_conflict(self, client):
        response = client.post("/stages/3/advance")

        assert response.status_code == 409
        assert client.get("/progress").json()["current_stage"] == 0

    def test_jump(self, client):
        _complete_curriculum(client)

        assert client.post("/stages/1/jump").json() == {"moved": True, "current_stage": 1}
        assert client.post("/stages/3/jump").json()["moved"] is True

    def test_jump_to_locked_stage(self, client):
        response = client.post("/stages/4/jump")

        assert response.status_code == 200
        assert response.json() == {"moved": False, "current_stage": 0}

    def test_selections(self, client):
        client.post("/selections", json={"interest": "devops"})
        body = client.post("/selections", json={"skill_level": "experienced"}).json()

        assert body == {
            "interest": "devops",
            "skill_level": "experienced",
            "git_experience": "",
        }

    def test_progress_survives_restart(self, client):
        _complete_curriculum(client)

        with TestClient(main.app) as restarted:
            body = restarted.get("/progress").json()

        assert body["current_stage"] == 4
        assert body["completed_stages"] == [1, 2, 3]
        assert body["contribution_unlocked"] is True


class TestDiscoveryEndpoints:
    def test_repositories_from_search(self, client):
        body = client.get("/discover/repositories", params={"interest": "devops"}).json()

        assert body[0]["full_name"] == "acme/widgets"

    def test_repositories_fallback(self, client, github):
        github.search_status = 403

        body = client.get("/discover/repositories", params={"interest": "devops"}).json()

        assert body[0]["full_name"] == "kubernetes/kubernetes"

    def test_issues_fallback(self, client):
        body = client.get("/discover/issues").json()

        assert len(body) == 3


class TestContributionEndpoints:
    def test_locked_before_final_stage(self, client):
        response = client.post("/contribution", json={"display_name": "Mona"})

        assert response.status_code == 409

    def test_successful_contribution(self, client, github):
        _complete_curriculum(client)

        response = client.post("/contribution", json={"display_name": "Mona"})

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "succeeded"
        assert body["pull_request_url"] == PR_URL
        assert "[@octocat](https://github.com/octocat) - Mona - " in github.ledger

        status = client.get("/contribution/status").json()
        assert status["running"] is False
        assert len(status["statuses"]) == 7
        assert status["state"]["step"] == "succeeded"

    def test_repeat_contribution_is_duplicate(self, client):
        _complete_curriculum(client)
        client.post("/contribution", json={"display_name": "Mona"})

        body = client.post("/contribution", json={"display_name": "Mona"}).json()

        assert body["outcome"] == "failed"
        assert body["failure_kind"] == "duplicate_submission"

    def test_explicit_identity(self, client, github):
        _complete_curriculum(client)

        body = client.post(
            "/contribution", json={"display_name": "Alice", "identity": "alice"}
        ).json()

        assert body["failure_kind"] == "duplicate_submission"
        assert ("GET", "/user") not in github.requests

    def test_status_before_any_run(self, client):
        body = client.get("/contribution/status").json()

        assert body == {"running": False, "statuses": [], "state": None, "result": None}

    def test_overlapping_contribution_rejected_by_engine(self, slow_client, github):
        _complete_curriculum(slow_client)
        body = {"display_name": "Mona", "identity": "octocat"}

        with ThreadPoolExecutor(max_workers=1) as pool:
            first = pool.submit(slow_client.post, "/contribution", json=body)
            assert github.forked.wait(timeout=5)

            running = slow_client.get("/contribution/status").json()
            second = slow_client.post("/contribution", json=body)
            first_body = first.result(timeout=10).json()

        assert running["running"] is True
        assert second.status_code == 409
        assert second.json()["detail"] == (
            f"Contribution run {running['state']['run_id']} is still in progress"
        )
        assert first_body["outcome"] == "succeeded"
        assert github.requests.count(("POST", "/repos/upstream/course/forks")) == 1

    def test_statuses_reset_for_each_run(self, client):
        _complete_curriculum(client)
        client.post("/contribution", json={"display_name": "Mona"})

        client.post("/contribution", json={"display_name": "Mona"})

        statuses = client.get("/contribution/status").json()["statuses"]
        assert statuses[0]["step"] == "forking"
        assert statuses[-1]["step"] == "failed"
