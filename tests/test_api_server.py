"""Tests for the HTTP API, driven through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from crosspoint.backends.memory_store import InMemoryDocumentStore
from crosspoint.constants.network_constants import SESSION_COOKIE
from crosspoint.core.errors import FatalStateError
from crosspoint.core.session_registry import build_session_registry
from crosspoint.server.api_server import create_api_app


@pytest.fixture
def registry(settings, scheduler):
    return build_session_registry(settings, store=InMemoryDocumentStore(), scheduler=scheduler)


@pytest.fixture
def client(registry):
    with TestClient(create_api_app(registry)) as test_client:
        yield test_client


def test_page_served(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "<title>Crosspoint</title>" in response.text
    assert SESSION_COOKIE in response.cookies


def test_page_load_creates_one_session(client, registry):
    client.get("/")
    client.get("/state")
    client.get("/categories")
    client.get("/questions")
    assert len(registry) == 1


def test_first_request_starts_a_session(client, registry):
    response = client.get("/state")
    assert response.status_code == 200
    assert SESSION_COOKIE in response.cookies
    state = response.json()
    assert state["screen"] == "feed"
    assert state["identity"]["display_name"].startswith("User-")
    assert state["verified_categories"] == []
    client.get("/state")
    assert len(registry) == 1


def test_browsers_get_separate_identities(registry, client):
    with TestClient(create_api_app(registry)) as other:
        first = client.get("/state").json()["identity"]["user_id"]
        second = other.get("/state").json()["identity"]["user_id"]
    assert first != second


def test_categories_include_general(client):
    assert client.get("/categories").json() == [
        "Physics",
        "Web Development",
        "Financial Modeling",
        "General",
    ]


class TestQuestions:
    def test_post_then_list(self, client):
        response = client.post(
            "/questions", json={"title": "Momentum?", "body": "Why **conserved**?", "category": "Physics"}
        )
        assert response.status_code == 201
        questions = client.get("/questions").json()
        assert [q["id"] for q in questions] == [response.json()["id"]]
        assert "<strong>conserved</strong>" in questions[0]["body_html"]
        assert questions[0]["can_answer"] is False
        assert questions[0]["status"] == "Open"

    def test_body_html_escapes_raw_html(self, client):
        client.post("/questions", json={"title": "XSS", "body": "<script>x</script>", "category": "General"})
        body_html = client.get("/questions").json()[0]["body_html"]
        assert "<script>" not in body_html

    @pytest.mark.parametrize(
        "payload",
        [
            {"title": "Title", "body": "  ", "category": "Physics"},
            {"title": "Title", "body": "Body", "category": "Astrology"},
            {"title": "Title", "body": "Body"},
        ],
    )
    def test_invalid_posts_rejected(self, client, payload):
        assert client.post("/questions", json=payload).status_code == 422
        assert client.get("/questions").json() == []


class TestQuiz:
    def test_full_quiz_verifies_category(self, client, scheduler):
        response = client.post("/quiz/start", json={"category": "Financial Modeling"})
        assert response.status_code == 201
        session = response.json()
        assert client.get("/state").json()["screen"] == "quiz"
        assert client.post("/quiz/select", json={"option": "Net Present Value"}).json() == {"accepted": True}
        assert client.post("/quiz/submit").json() == {"correct": True}
        assert session["total"] == 1
        scheduler.run_pending()
        state = client.get("/state").json()
        assert state["screen"] == "quiz"
        assert client.get("/quiz").json()["session"] is None
        assert state["verified_categories"] == ["Financial Modeling"]
        assert state["last_outcome"]["passed"] is True

    def test_unknown_category_is_not_found(self, client):
        response = client.post("/quiz/start", json={"category": "General"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Quiz data not found for General."

    def test_unknown_option_rejected(self, client):
        client.post("/quiz/start", json={"category": "Physics"})
        assert client.post("/quiz/select", json={"option": "Not listed"}).status_code == 422

    def test_submit_without_quiz_conflicts(self, client):
        assert client.post("/quiz/submit").status_code == 409

    def test_cancel_returns_to_feed(self, client):
        client.post("/quiz/start", json={"category": "Physics"})
        assert client.post("/quiz/cancel").json() == {"cancelled": True}
        assert client.get("/quiz").json()["session"] is None
        assert client.get("/state").json()["view"] == "feed"


def test_view_switching(client):
    assert client.post("/view", json={"view": "post"}).json() == {"view": "post"}
    assert client.post("/view", json={"view": "settings"}).status_code == 422


def test_missing_banner_is_not_found(client):
    assert client.delete("/banners/feed").status_code == 404


def test_identity_failure_shows_error_screen(settings, scheduler):
    registry = build_session_registry(
        settings.model_copy(update={"allow_anonymous": False}),
        store=InMemoryDocumentStore(),
        scheduler=scheduler,
    )
    with TestClient(create_api_app(registry)) as client:
        state = client.get("/state").json()
        assert state["screen"] == "error"
        assert "Anonymous sign-in is disabled" in state["error"]
        assert client.get("/questions").status_code == 503
        assert client.post("/view", json={"view": "post"}).status_code == 503


def test_shutdown_closes_sessions(registry):
    with TestClient(create_api_app(registry)) as client:
        client.get("/state")
        assert len(registry) == 1
    assert len(registry) == 0


class TestSignOut:
    def test_sign_out_ends_session(self, client, registry):
        first = client.get("/state").json()["identity"]["user_id"]
        response = client.post("/sign-out")
        assert response.json() == {"signed_out": True}
        assert len(registry) == 0
        second = client.get("/state").json()["identity"]["user_id"]
        assert second != first
        assert len(registry) == 1

    def test_sign_out_without_session_is_not_found(self, client, registry):
        assert client.post("/sign-out").status_code == 404
        assert len(registry) == 0


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestIdleEviction:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.fixture
    def timed_registry(self, settings, scheduler, store, clock):
        return build_session_registry(
            settings.model_copy(update={"session_idle_timeout_seconds": 60.0}),
            store=store,
            scheduler=scheduler,
            clock=clock,
        )

    def test_idle_session_closed_on_next_lookup(self, timed_registry, store, clock):
        idle = timed_registry.get_or_create("idle-session")
        watchers_per_session = store.watcher_count()
        clock.now += 61
        timed_registry.get_or_create("active-session")
        assert len(timed_registry) == 1
        assert timed_registry.get("idle-session") is None
        with pytest.raises(FatalStateError):
            idle.start_quiz("Physics")
        assert store.watcher_count() == watchers_per_session

    def test_activity_keeps_session_alive(self, timed_registry, clock):
        first = timed_registry.get_or_create("busy-session")
        for _ in range(3):
            clock.now += 45
            assert timed_registry.get_or_create("busy-session") is first
        assert len(timed_registry) == 1

    def test_evicted_session_starts_fresh(self, timed_registry, clock):
        first = timed_registry.get_or_create("returning")
        clock.now += 120
        second = timed_registry.get_or_create("returning")
        assert second is not first
        assert len(timed_registry) == 1
