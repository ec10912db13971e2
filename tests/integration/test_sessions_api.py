"""Integration tests for live survey sessions (registry and HTTP routes)."""

import pytest
from fastapi.testclient import TestClient

from assessment_engine.main import app
from assessment_engine.models.database import get_db
from assessment_engine.services.progress_session import RESTORED_MESSAGE, SAVED_MESSAGE
from assessment_engine.services.progress_store import LocalProgressCache, SqlProgressStore
from assessment_engine.services.session_registry import SessionNotFoundError, SessionRegistry
from assessment_engine.services.survey_catalog import SurveyCatalog

SURVEY = "leadership_assessment"
HEADERS = {"X-User-Id": "learner-1"}


@pytest.fixture
def registry(session_factory, tmp_path) -> SessionRegistry:
    store = SqlProgressStore(session_factory, conflict_guard=True)
    return SessionRegistry(store, LocalProgressCache(str(tmp_path / "cache")))


@pytest.fixture
def client(session_factory, survey_loader, registry):
    """TestClient with a running lifespan, so session timers share one event loop."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.catalog = SurveyCatalog(survey_loader)
        app.state.progress_store = registry.remote
        app.state.sessions = registry
        yield test_client
    app.dependency_overrides.clear()


def post(client, path: str, **kwargs):
    return client.post(f"/api/sessions/{SURVEY}{path}", headers=HEADERS, **kwargs)


class TestSessionRegistry:
    """Tests for SessionRegistry."""

    @pytest.mark.asyncio
    async def test_open_reuses_session(self, registry, leadership_survey):
        first, source = await registry.open("u", SURVEY, leadership_survey)
        again, again_source = await registry.open("u", SURVEY, leadership_survey)
        try:
            assert source is None
            assert again is first
            assert again_source == "active"
            assert registry.get("u", SURVEY) is first
        finally:
            await registry.close_all()

    @pytest.mark.asyncio
    async def test_close(self, registry, leadership_survey):
        session, _ = await registry.open("u", SURVEY, leadership_survey)

        assert await registry.close("u", SURVEY) is True
        assert await registry.close("u", SURVEY) is False
        assert not session.active
        with pytest.raises(SessionNotFoundError):
            registry.get("u", SURVEY)

    @pytest.mark.asyncio
    async def test_close_all(self, registry, leadership_survey):
        sessions = [(await registry.open(user, SURVEY, leadership_survey))[0] for user in ("a", "b")]
        await registry.close_all()
        assert len(registry) == 0
        assert not any(session.active for session in sessions)


class TestSessionRoutes:
    """Tests for the /api/sessions endpoints."""

    def test_open_fresh_session(self, client):
        response = post(client, "")
        assert response.status_code == 200
        body = response.json()
        assert body["source"] is None
        assert body["section_title"] == "Instructions"
        assert body["question"] is None
        assert body["progress_percent"] == 0.0

    def test_user_header_required(self, client):
        assert client.post(f"/api/sessions/{SURVEY}").status_code == 422

    def test_unknown_survey(self, client):
        assert client.post("/api/sessions/missing", headers=HEADERS).status_code == 404

    def test_requests_without_open_session(self, client):
        assert post(client, "/next").status_code == 404
        assert client.get(f"/api/sessions/{SURVEY}", headers=HEADERS).status_code == 404

    def test_answer_and_manual_save(self, client):
        post(client, "")
        body = post(client, "/next").json()
        assert body["question"]["id"] == "sentiment_1"

        body = post(client, "/answer", json={"value": "Energised and clear"}).json()
        assert body["is_current_answered"] is True
        assert body["has_unsaved_changes"] is True

        body = post(client, "/save").json()
        assert body["outcome"] == "saved_remote"
        assert body["has_unsaved_changes"] is False
        assert {"level": "success", "message": SAVED_MESSAGE} in body["notifications"]

        progress = client.get(f"/api/progress/{SURVEY}", headers=HEADERS).json()
        assert progress["record"]["answers"] == {"sentiment_1": "Energised and clear"}

    def test_next_refused_until_answered(self, client):
        post(client, "")
        post(client, "/next")
        response = post(client, "/next")
        assert response.status_code == 422
        assert response.json()["detail"] == "Please answer the current question before continuing."

    def test_invalid_answer_refused(self, client):
        post(client, "")
        assert post(client, "/answer", json={"value": "x"}).status_code == 422  # instructions

    def test_scale_grid_prompts(self, client):
        post(client, "")
        post(client, "/next")
        post(client, "/answer", json={"value": "Energised and clear"})
        body = post(client, "/next").json()
        assert body["question"]["id"] == "sentiment_2"

        for index in range(7):
            body = post(client, "/answer", json={"value": "4", "prompt_index": index}).json()
        assert body["is_current_answered"] is True
        assert body["answers"]["sentiment_2_6"] == "4"

    def test_visibility_loss_saves(self, client):
        post(client, "")
        post(client, "/next")
        post(client, "/answer", json={"value": "Uncertain and reactive"})

        body = post(client, "/visibility", json={"hidden": True}).json()
        assert body["outcome"] == "saved_remote"

        body = post(client, "/visibility", json={"hidden": True}).json()
        assert body["outcome"] is None

    def test_activity_events(self, client):
        post(client, "")
        assert post(client, "/activity", json={"kind": "keyboard"}).status_code == 204
        assert post(client, "/activity", json={"kind": "hover"}).status_code == 422

    def test_exit_then_resume(self, client):
        """Test exit saves and closes, and reopening restores the progress."""
        post(client, "")
        post(client, "/next")
        post(client, "/answer", json={"value": "Confident but stretched"})

        body = post(client, "/exit").json()
        assert body["outcome"] == "saved_remote"
        assert client.get(f"/api/sessions/{SURVEY}", headers=HEADERS).status_code == 404

        body = post(client, "").json()
        assert body["source"] == "remote"
        assert body["question"]["id"] == "sentiment_1"
        assert body["answers"] == {"sentiment_1": "Confident but stretched"}
        assert {"level": "success", "message": RESTORED_MESSAGE} in body["notifications"]

    def test_notifications_returned_once(self, client):
        post(client, "")
        post(client, "/next")
        post(client, "/answer", json={"value": "Energised and clear"})
        assert post(client, "/save").json()["notifications"]
        assert client.get(f"/api/sessions/{SURVEY}", headers=HEADERS).json()["notifications"] == []

    def test_complete_short_survey(self, client, small_survey_data):
        """Test the final next() completes the survey and clears stored progress."""
        assert client.put("/api/surveys/quick_check", json=small_survey_data).status_code == 200

        def call(path: str, **kwargs):
            response = client.post(f"/api/sessions/quick_check{path}", headers=HEADERS, **kwargs)
            assert response.status_code == 200, response.text
            return response.json()

        call("")
        call("/next")
        call("/answer", json={"value": "Calm"})
        call("/next")
        call("/toggle", json={"option": "Growth"})
        call("/next")
        call("/answer", json={"value": "2"})
        call("/next")
        for index in range(3):
            call("/answer", json={"value": "3", "prompt_index": index})
        call("/save")
        call("/next")
        body = call("/answer", json={"value": "All done"})
        assert body["is_last_item"] is True
        assert body["progress_percent"] == 100.0

        body = call("/next")
        assert body["completed"] is True

        progress = client.get("/api/progress/quick_check", headers=HEADERS).json()
        assert progress["record"] is None
        assert client.get("/api/sessions/quick_check", headers=HEADERS).status_code == 404
