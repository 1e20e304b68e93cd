import pytest

from app import SESSION_KEY, create_app
from questions import load_questions
from result_store import ENV_DATABASE_URL

from conftest import QUESTIONS_ROOT, TODAY


def post(client, event, **data):
    return client.post(f"/event/{event}", data=data, follow_redirects=True)


def login_and_start(client, subject="MathTrack", difficulty="Basics", name="Ana"):
    post(client, "login", username="admin", password="letlearn")
    post(client, "welcome", name=name)
    post(client, "choose-subject")
    post(client, "select-subject", subject=subject)
    post(client, "continue")
    post(client, "select-difficulty", difficulty=difficulty)
    return post(client, "start")


def snapshot(client):
    with client.session_transaction() as sess:
        return sess.get(SESSION_KEY)


def test_first_visit_shows_login(client):
    html = client.get("/").get_data(as_text=True)
    assert "action='/event/login'" in html
    assert "Logout" not in html


def test_wrong_password_shows_inline_error(client):
    html = post(client, "login", username="admin", password="wrong").get_data(as_text=True)
    assert "Invalid credentials. Hint: admin / letlearn" in html
    assert snapshot(client)["route"] == "login"


def test_login_leads_to_welcome(client):
    html = post(client, "login", username="admin", password="letlearn").get_data(as_text=True)
    assert "Welcome!" in html
    assert snapshot(client)["route"] == "welcome"


def test_greeting_uses_learner_name(client):
    post(client, "login", username="admin", password="letlearn")
    html = post(client, "welcome", name="<Ana>").get_data(as_text=True)
    assert "Hii &lt;Ana&gt;!" in html


def test_full_quiz_is_saved(client, store):
    html = login_and_start(client).get_data(as_text=True)
    qs = load_questions("MathTrack", "Basics", QUESTIONS_ROOT)
    assert f"Question 1 of {len(qs)}" in html
    for q in qs:
        post(client, "answer", choice=str(q.answer_index))
        html = post(client, "next").get_data(as_text=True)
    assert "Great work, Ana!" in html
    assert f"Correct: {len(qs)}" in html
    rows = store.list()
    assert len(rows) == 1
    assert (rows[0].name, rows[0].date, rows[0].subject) == ("Ana", TODAY, "MathTrack")
    assert (rows[0].correct, rows[0].incorrect) == (len(qs), 0)


def test_two_sessions_same_day_accumulate(client, store):
    for _ in range(2):
        login_and_start(client, "CodingTrack", "Basics")
        q = load_questions("CodingTrack", "Basics", QUESTIONS_ROOT)[0]
        post(client, "answer", choice=str(q.answer_index))
        post(client, "end-session")
        post(client, "logout")
    rows = store.list()
    assert len(rows) == 1
    assert (rows[0].correct, rows[0].incorrect) == (2, 0)


def test_next_is_refused_after_wrong_answer(client):
    login_and_start(client)
    q = load_questions("MathTrack", "Basics", QUESTIONS_ROOT)[0]
    post(client, "answer", choice=str((q.answer_index + 1) % len(q.choices)))
    html = post(client, "next").get_data(as_text=True)
    assert "Question 1 of" in html
    snap = snapshot(client)
    assert (snap["correctCount"], snap["incorrectCount"], snap["isAnswerCorrect"]) == (0, 1, False)


def test_reload_resumes_mid_quiz(client):
    with client.session_transaction() as sess:
        sess[SESSION_KEY] = {"route": "quiz", "learnerName": "Ana", "subject": "MathTrack",
                             "difficulty": "Basics", "questionIndex": 2, "correctCount": 2, "incorrectCount": 0}
    html = client.get("/").get_data(as_text=True)
    q = load_questions("MathTrack", "Basics", QUESTIONS_ROOT)[2]
    assert "Question 3 of" in html
    assert q.prompt in html
    assert "Correct: 2 • Incorrect: 0" in html


def test_logout_clears_snapshot(client):
    login_and_start(client)
    resp = client.post("/event/logout")
    assert resp.status_code == 302
    assert snapshot(client) is None
    html = client.get("/").get_data(as_text=True)
    assert "action='/event/login'" in html
    assert snapshot(client)["learnerName"] == ""


def test_unknown_event_is_bad_request(client):
    assert client.post("/event/teleport").status_code == 400


def test_admin_lists_rows_and_exports_pdf(client, store):
    store.upsert("Ben", TODAY, "CodingTrack", 3, 1)
    post(client, "login", username="admin", password="letlearn")
    html = post(client, "show-results").get_data(as_text=True)
    assert "Saved Learning Data" in html
    assert "<td>Ben</td>" in html
    assert "data:image/png;base64," in html
    resp = client.get("/admin/export_pdf")
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_admin_empty_table_message(client):
    post(client, "login", username="admin", password="letlearn")
    html = post(client, "show-results").get_data(as_text=True)
    assert "No results yet." in html


def test_export_requires_login(client):
    resp = client.get("/admin/export_pdf")
    assert resp.status_code == 302


@pytest.fixture
def bare_client(monkeypatch):
    monkeypatch.delenv(ENV_DATABASE_URL, raising=False)
    app = create_app(config={"TESTING": True, "SECRET_KEY": "test-secret", "TODAY": lambda: TODAY})
    return app.test_client()


def test_unconfigured_database_does_not_block_navigation(bare_client):
    login_and_start(bare_client)
    html = post(bare_client, "end-session").get_data(as_text=True)
    assert "Great work, Ana!" in html
    assert "alert(\"Save failed: Database not configured\")" in html
    html = post(bare_client, "show-results").get_data(as_text=True)
    assert "Database not configured. Set <code>LETSLEARN_DATABASE_URL</code>." in html
    assert "Failed to load: Database not configured" in html


def test_results_table_from_mid_quiz_then_back_to_learning(client):
    login_and_start(client)
    q = load_questions("MathTrack", "Basics", QUESTIONS_ROOT)[0]
    post(client, "answer", choice=str(q.answer_index))
    html = post(client, "show-results").get_data(as_text=True)
    assert "Saved Learning Data" in html
    assert snapshot(client)["route"] == "admin"
    assert snapshot(client)["correctCount"] == 1
    html = post(client, "continue-learning").get_data(as_text=True)
    assert "Choose a subject" in html
    assert snapshot(client)["route"] == "subject-select"
    post(client, "select-subject", subject="MathTrack")
    post(client, "continue")
    html = post(client, "start").get_data(as_text=True)
    assert "Question 1 of" in html
    assert "Correct: 0 • Incorrect: 0" in html


def test_refresh_reads_rows_once(app, client, monkeypatch):
    store = app.extensions["result_store"]
    calls = []
    real_list = store.list

    def counting_list():
        calls.append(1)
        return real_list()

    monkeypatch.setattr(store, "list", counting_list)
    post(client, "login", username="admin", password="letlearn")
    post(client, "show-results")
    assert len(calls) == 1
    post(client, "refresh")
    assert len(calls) == 2


def test_importing_the_module_builds_no_app():
    import app as app_module
    assert not hasattr(app_module, "app")
