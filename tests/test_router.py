import pytest
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.testclient import TestClient

from vocabtutor.config import settings
from vocabtutor.database import MemoryKeyValueBackend
from vocabtutor.pronunciation import CREDENTIAL_MISSING_FEEDBACK, PronunciationChecker
from vocabtutor.router import get_registry, router
from vocabtutor.session import SessionRegistry


@pytest.fixture
def registry(vocabulary, checker):
    return SessionRegistry(vocabulary, MemoryKeyValueBackend(), lambda: checker)


@pytest.fixture
def client(registry):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app)


def test_topics(client):
    assert client.get("/api/topics").json() == [
        {"id": "01_pets", "name": "Pets", "count": 4},
        {"id": "02_numbers", "name": "Numbers", "count": 12},
    ]


def test_state_issues_browser_cookie(client):
    response = client.get("/api/state")
    assert response.status_code == 200
    assert settings.BROWSER_COOKIE_NAME in response.cookies
    body = response.json()
    assert body["mode"] == "learn"
    assert body["topic"]["id"] == "01_pets"
    assert len(body["daily_words"]) == 4


def test_cookie_keeps_same_session(client, registry):
    client.get("/api/state")
    client.post("/api/topic", data={"topic_id": "02_numbers"})
    assert client.get("/api/state").json()["topic"]["id"] == "02_numbers"
    assert len(registry.sessions) == 1


def test_unknown_topic_is_404(client):
    response = client.post("/api/topic", data={"topic_id": "missing"})
    assert response.status_code == 404
    assert "error" in response.json()


def test_toggle_learned_and_dashboard(client):
    client.get("/api/state")
    assert client.post("/api/words/toggle_learned", data={"word": "cat"}).json() == {
        "word": "cat",
        "learned": True,
    }
    client.post("/api/words/toggle_learned", data={"word": "dog"})
    words = client.get("/api/words").json()
    assert [w["learned"] for w in words] == [True, True, False, False]

    dashboard = client.get("/api/dashboard").json()
    assert dashboard["total_learned"] == 2
    assert dashboard["topics"][0]["learned"] == 2
    assert dashboard["topics"][0]["total"] == 4


def test_set_goal(client):
    client.get("/api/state")
    assert client.post("/api/goal", data={"daily_goal": 3}).json()["daily_goal"] == 3
    assert client.post("/api/goal", data={"daily_goal": 0}).status_code == 400


def test_flashcards(client):
    client.get("/api/state")
    client.post("/api/mode", data={"mode": "flashcard"})
    assert client.get("/api/flashcard").json()["card"]["word"] == "cat"
    assert client.post("/api/flashcard/next").json()["card"]["word"] == "dog"
    assert client.post("/api/flashcard/prev").json()["card"]["word"] == "cat"
    assert client.post("/api/flashcard/prev").json()["card_index"] == 3


def test_invalid_mode_rejected(client):
    assert client.post("/api/mode", data={"mode": "party"}).status_code == 422


def test_quiz_flow(client, registry):
    client.get("/api/state")
    assert client.get("/api/quiz").status_code == 400
    client.post("/api/mode", data={"mode": "quiz"})
    controller = next(iter(registry.sessions.values()))

    finished = None
    for _ in range(4):
        quiz = client.get("/api/quiz").json()
        question = controller.quiz.current_question
        index = quiz["options"].index(question.translation)
        record = client.post(
            "/api/quiz/answer", data={"selected_option_index": index}
        ).json()
        assert record["is_correct"] is True
        again = client.post("/api/quiz/answer", data={"selected_option_index": index})
        assert again.status_code == 400
        finished = client.post("/api/quiz/advance").json()

    assert finished["finished"] is True
    assert finished["final_score"] == 4
    assert finished["mode"] == "learn"
    assert client.get("/api/dashboard").json()["topics"][0]["quiz_score"] == 4


def test_advance_before_answer_is_400(client):
    client.get("/api/state")
    client.post("/api/mode", data={"mode": "quiz"})
    assert client.post("/api/quiz/advance").status_code == 400


def test_speak_returns_utterance(client):
    assert client.post("/api/speak", data={"text": "cat"}).json() == [
        {"text": "cat", "locale": "en-US"}
    ]


def test_recording_flow(client):
    client.get("/api/state")
    assert client.post("/api/recording/start").status_code == 400

    client.post("/api/words/select", data={"word": "cat"})
    denied = client.post("/api/recording/start", data={"permission_granted": "false"})
    assert denied.status_code == 403
    assert client.get("/api/state").json()["is_recording"] is False

    assert client.post("/api/recording/start").json()["is_recording"] is True
    result = client.post(
        "/api/recording/stop",
        files={"audio": ("attempt.webm", b"audio-bytes", "audio/webm")},
    ).json()
    assert result == {"score": 85, "feedback": "Tốt lắm"}
    assert client.get("/api/state").json()["last_result"]["score"] == 85


def test_recording_without_credential(vocabulary):
    registry = SessionRegistry(
        vocabulary, MemoryKeyValueBackend(), lambda: PronunciationChecker(api_key="")
    )
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_registry] = lambda: registry
    client = TestClient(app)

    client.post("/api/words/select", data={"word": "dog"})
    client.post("/api/recording/start")
    result = client.post(
        "/api/recording/stop",
        files={"audio": ("attempt.webm", b"audio-bytes", "audio/webm")},
    ).json()
    assert result == {"score": 0, "feedback": CREDENTIAL_MISSING_FEEDBACK}


def test_select_unknown_word_is_404(client):
    assert client.post("/api/words/select", data={"word": "zebra"}).status_code == 404


def test_reset_drops_session(client, registry):
    client.get("/api/state")
    assert registry.sessions
    assert client.post("/api/reset").json() == {"status": "success"}
    assert registry.sessions == {}


def test_home_page_lists_topics(registry):
    from vocabtutor.app import create_app

    app = create_app()
    app.dependency_overrides[get_registry] = lambda: registry
    response = TestClient(app).get("/")
    assert response.status_code == 200
    assert "Pets (4)" in response.text


def test_failed_first_request_still_issues_cookie(client, registry):
    response = client.post("/api/topic", data={"topic_id": "missing"})
    assert response.status_code == 404
    assert settings.BROWSER_COOKIE_NAME in response.cookies

    assert client.post("/api/topic", data={"topic_id": "missing"}).status_code == 404
    assert client.get("/api/quiz").status_code == 400
    assert len(registry.sessions) == 1


def test_error_with_existing_cookie_sets_none(client):
    client.get("/api/state")
    response = client.post("/api/words/select", data={"word": "zebra"})
    assert response.status_code == 404
    assert "set-cookie" not in response.headers


def test_home_page_carries_root_path(registry):
    app = FastAPI(root_path="/tutor")
    app.mount(
        "/static",
        StaticFiles(directory=settings.STATIC_DIR, check_dir=False),
        name="static",
    )
    app.include_router(router)
    app.dependency_overrides[get_registry] = lambda: registry
    response = TestClient(app).get("/")
    assert 'data-root-path="/tutor"' in response.text


def test_script_renders_text_without_html_parsing(registry):
    from vocabtutor.app import create_app

    app = create_app()
    app.dependency_overrides[get_registry] = lambda: registry
    script = TestClient(app).get("/static/app.js")
    assert script.status_code == 200
    assert "innerHTML" not in script.text
    assert "insertAdjacentHTML" not in script.text
    assert "textContent" in script.text


def test_script_prefixes_api_calls_with_root_path(registry):
    from vocabtutor.app import create_app

    app = create_app()
    app.dependency_overrides[get_registry] = lambda: registry
    script = TestClient(app).get("/static/app.js").text
    assert "${rootPath}/api/" in script
    assert 'fetch("/api' not in script
