# app.py
"""
Learning Together - single-page quiz app
Features:
 - Flask + Flask-SQLAlchemy
 - Fixed admin login, learner name, subject + difficulty pick, multiple-choice quiz
 - Questions from static JSON documents (static/questions/)
 - Scores upserted into the quiz_results table, one row per (name, subject, date)
 - Admin view: all saved sessions, matplotlib chart embedded as base64, PDF export with fpdf2
 - Navigation state kept in the signed session cookie so a reload resumes mid-quiz
 - All HTML/CSS inline via render_template_string
"""

import base64
import io
import json
import os
import secrets

from flask import (Blueprint, Flask, abort, current_app, flash, get_flashed_messages, redirect,
                   render_template_string, request, send_file, session, url_for)
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from markupsafe import escape
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from errors import StoreError, StoreUnavailable
from questions import DIFFICULTIES, SUBJECT_LABELS, SUBJECTS
from quiz_state import (ADMIN, DIFFICULTY_SELECT, LOGIN, QUIZ, RESULTS, SUBJECT_SELECT, TRANSITION,
                        WELCOME, QuizController, SessionState, ny_date_string)
from result_store import ResultStore, db, resolve_database_url

# ---------------- CONFIG ----------------
SESSION_KEY = "letslearn_session"
ENV_SECRET_KEY = "LETSLEARN_SECRET_KEY"

bp = Blueprint("quiz", __name__)


def create_app(database_url=None, config=None):
    """Build the app. Connection settings are resolved here once and never change afterwards."""
    config = dict(config or {})
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.pop("SECRET_KEY", None) or os.environ.get(ENV_SECRET_KEY) or secrets.token_hex(32)
    app.config["QUESTIONS_ROOT"] = app.static_folder
    app.config["TODAY"] = ny_date_string
    app.config.update(config)
    app.config["DATABASE_URL"] = resolve_database_url(database_url or app.config.get("DATABASE_URL"))

    store = ResultStore(app.config["DATABASE_URL"])
    if store.is_configured():
        app.config["SQLALCHEMY_DATABASE_URI"] = app.config["DATABASE_URL"]
        app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
        db.init_app(app)
        with app.app_context():
            db.create_all()
    else:
        app.logger.warning("result database not configured; saving and the results table are disabled")
    app.extensions["result_store"] = store
    app.register_blueprint(bp)
    return app


# ---------------- Utilities ----------------
def make_plot_base64(fig):
    buf = io.BytesIO()
    fig.savefig(buf, format="png", bbox_inches='tight')
    plt.close(fig)
    buf.seek(0)
    return base64.b64encode(buf.getvalue()).decode('ascii')


def subject_chart_html(rows):
    if not rows:
        return ""
    totals = {}
    for r in rows:
        c, i = totals.get(r.subject, (0, 0))
        totals[r.subject] = (c + r.correct, i + r.incorrect)
    labels = [SUBJECT_LABELS.get(s, s) for s in totals]
    xs = range(len(labels))
    fig, ax = plt.subplots(figsize=(5, 2.5))
    ax.bar([x - 0.2 for x in xs], [t[0] for t in totals.values()], width=0.4, color='#10b981', label='Correct')
    ax.bar([x + 0.2 for x in xs], [t[1] for t in totals.values()], width=0.4, color='#ef4444', label='Incorrect')
    ax.set_xticks(list(xs)); ax.set_xticklabels(labels)
    ax.set_title("Answers by Subject"); ax.legend()
    return f"<div class='card'><img src='data:image/png;base64,{make_plot_base64(fig)}' style='max-width:100%'/></div>"


def _latin1(value):
    # core PDF fonts only cover latin-1
    return str(value).encode("latin-1", "replace").decode("latin-1")


def results_report_pdf_bytes(rows):
    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(0, 10, "Saved Learning Data - Learning Together", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(6)
    pdf.set_font("Helvetica", size=10)
    headers = ["Name", "Date", "Subject", "Correct", "Incorrect"]
    widths = [60, 30, 40, 25, 25]
    for h, w in zip(headers, widths):
        pdf.cell(w, 8, h, 1, align='C')
    pdf.ln()
    for r in rows:
        pdf.cell(widths[0], 8, _latin1(r.name), 1)
        pdf.cell(widths[1], 8, r.date, 1)
        pdf.cell(widths[2], 8, _latin1(SUBJECT_LABELS.get(r.subject, r.subject)), 1)
        pdf.cell(widths[3], 8, str(r.correct), 1, align='C')
        pdf.cell(widths[4], 8, str(r.incorrect), 1, align='C', new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    return bytes(pdf.output())


def _form_button(event, label, css="btn", fields=None, disabled=False, confirm=None):
    hidden = "".join(f"<input type='hidden' name='{k}' value='{escape(v)}'>" for k, v in (fields or {}).items())
    guard = f' onsubmit="return confirm({escape(json.dumps(confirm))})"' if confirm else ""
    dis = " disabled" if disabled else ""
    return (f"<form method='post' action='/event/{event}' style='display:inline'{guard}>{hidden}"
            f"<button class='{css}' type='submit'{dis}>{label}</button></form>")


# ---------------- Base HTML ----------------
BASE_HTML = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Learning together</title>
  <meta name="viewport" content="width=device-width,initial-scale=1">
  <style>
    :root { --brand:#0f172a; --accent:#10b981; --muted:#94a3b8; --bg:#1e293b; }
    body { font-family:Georgia,Cambria,"Times New Roman",serif; margin:0; background:var(--bg); color:#f1f5f9; }
    header { background:linear-gradient(90deg,#bae6fd,#a7f3d0,#99f6e4); color:#0f172a; padding:14px 18px; display:flex; align-items:center; justify-content:space-between; }
    .container { max-width:1000px; margin:22px auto; padding:0 16px; }
    .card { background:var(--brand); border:1px solid #334155; border-radius:14px; padding:20px; box-shadow:0 8px 30px rgba(2,6,23,0.3); margin-bottom:16px; }
    .row { display:flex; gap:16px; flex-wrap:wrap; }
    .col { flex:1; min-width:240px; }
    .btn { display:inline-block; padding:10px 16px; border-radius:10px; background:linear-gradient(90deg,#0ea5e9,#6366f1); color:white; border:none; cursor:pointer; font-size:16px; margin:4px 0; }
    .btn.alt { background:transparent; color:inherit; border:1px solid #475569; }
    .btn:disabled { opacity:0.6; cursor:default; }
    input { width:100%; padding:10px; margin:6px 0 12px; border-radius:8px; border:1px solid #334155; background:#1e293b; color:white; box-sizing:border-box; font-size:18px; }
    .muted { color:var(--muted); font-size:15px; }
    .error { color:#f87171; font-size:14px; }
    .tag { padding:4px 8px; border-radius:8px; background:#ffffffb3; color:#0f172a; font-weight:600; }
    .tile { width:100%; text-align:left; padding:20px; border-radius:16px; border:1px solid #475569; background:#1e293b; color:white; font-size:18px; font-weight:600; cursor:pointer; }
    .tile.selected { border-color:#34d399; background:#064e3b; color:#a7f3d0; }
    .choice { width:100%; text-align:left; padding:14px; border-radius:12px; border:1px solid #475569; background:transparent; color:white; font-size:17px; cursor:pointer; margin:4px 0; }
    .choice.right { border-color:#4ade80; background:#14532d; color:#bbf7d0; }
    .choice.wrong { border-color:#f87171; background:#7f1d1d; color:#fecaca; }
    .progress { height:10px; background:#334155; border-radius:8px; overflow:hidden; margin-bottom:12px; }
    .progress > div { height:100%; background:linear-gradient(90deg,#10b981,#14b8a6); }
    table { width:100%; border-collapse:collapse; font-size:14px; }
    th { text-align:left; padding:8px; color:#7dd3fc; text-transform:uppercase; border-bottom:1px solid #334155; }
    td { padding:8px; border-bottom:1px solid #334155; }
    footer { text-align:center; color:var(--muted); font-size:12px; margin:28px 0; }
  </style>
</head>
<body>
{% if logged_in %}
<header>
  <div style="font-weight:800;font-size:22px">Learning together 🤝 <span class="tag">Coding &amp; Math</span></div>
  <nav>
    <form method="post" action="/event/show-results" style="display:inline"><button class="btn" type="submit">Results</button></form>
    <form method="post" action="/event/logout" style="display:inline"><button class="btn alt" type="submit">Logout</button></form>
  </nav>
</header>
{% endif %}
<div class="container">
  {{ content|safe }}
</div>
<footer>Tip: set LETSLEARN_DATABASE_URL to enable saving.</footer>
{% if alert %}<script>alert({{ alert|tojson }});</script>{% endif %}
</body>
</html>
"""


# ---------------- Screens ----------------
def screen_login(s):
    error = f"<div class='error'>{escape(s.login_error)}</div>" if s.login_error else ""
    return f"""
    <div style='max-width:640px;margin:40px auto;text-align:center'>
      <h1 style='font-size:56px'>Learning together 🤝</h1>
      <div class='card'>
        <p class='muted' style='font-style:italic;font-size:20px'>“Tell me and I forget. Teach me and I may remember. Involve me and I learn” — Confucius</p>
        <form method='post' action='/event/login' style='text-align:left'>
          Username: <input name='username' placeholder='admin'>
          Password: <input type='password' name='password' placeholder='letlearn'>
          {error}
          <button class='btn' type='submit' style='width:100%'>Login</button>
        </form>
      </div>
    </div>
    """


def screen_welcome(s):
    return f"""
    <div class='card' style='max-width:720px;margin:40px auto'>
      <h2 style='color:#6ee7b7'>Welcome!</h2>
      <p class='muted'>Enter your name to begin a learning session.</p>
      <form method='post' action='/event/welcome'>
        Your name: <input name='name' value='{escape(s.learner_name)}' placeholder='e.g., Jordan'
          oninput="this.form.querySelector('button').disabled = !this.value.trim()">
        <button class='btn' type='submit' style='width:100%'{'' if s.learner_name.strip() else ' disabled'}>Continue</button>
      </form>
    </div>
    """


def screen_transition(s):
    return f"""
    <div class='card' style='max-width:720px;margin:40px auto;text-align:center'>
      <h2 style='color:#6ee7b7'>Hii {escape(s.learner_name or 'there')}! 🎉</h2>
      <p class='muted'>Happy to have you learn with us</p>
      {_form_button('choose-subject', 'Choose a subject')}
    </div>
    """


def _tiles(event, field, options, current):
    tiles = ""
    for value, label in options:
        css = "tile selected" if value == current else "tile"
        tiles += f"<div class='col'>{_form_button(event, escape(label), css=css, fields={field: value})}</div>"
    return f"<div class='row'>{tiles}</div>"


def screen_subject(s):
    tiles = _tiles("select-subject", "subject", [(k, SUBJECT_LABELS[k]) for k in SUBJECTS], s.subject)
    return f"""
    <h2 style='color:#6ee7b7'>Choose a subject</h2>
    <p class='muted'>Your selection will be highlighted. Then continue.</p>
    {tiles}
    <div style='text-align:right;margin-top:16px'>{_form_button('continue', 'Continue', disabled=not s.subject)}</div>
    """


def screen_difficulty(s):
    tiles = _tiles("select-difficulty", "difficulty", [(d, d) for d in DIFFICULTIES], s.difficulty)
    return f"""
    <h2 style='color:#6ee7b7'>Pick a difficulty</h2>
    <p class='muted'>This will determine the set of questions.</p>
    {tiles}
    <div style='display:flex;justify-content:space-between;margin-top:16px'>
      {_form_button('back', 'Back', css='btn alt')}
      {_form_button('start', 'Start Learning', disabled=not s.difficulty)}
    </div>
    """


def screen_quiz(s, today):
    q = s.current_question
    confirm = (f"Show results and save?\n\nWe'll save your current progress for today ({today}) "
               f"under {s.learner_name or 'no name'} and then navigate to the results page.")
    choices = ""
    if q is not None:
        for idx, text in enumerate(q.choices):
            css = "choice"
            mark = ""
            if idx == s.selected_choice and s.is_answer_correct is True:
                css, mark = "choice right", " ✔"
            elif idx == s.selected_choice and s.is_answer_correct is False:
                css, mark = "choice wrong", " ✘"
            choices += f"<div>{_form_button('answer', escape(text) + mark, css=css, fields={'choice': idx})}</div>"
    notes = ""
    if s.question_error:
        notes += f"<div class='error'>Failed to load questions: {escape(s.question_error)}</div>"
    elif q is None:
        notes += "<div class='muted'>No questions available for this set.</div>"
    next_label = "Finish" if s.is_last_question else "Next"
    return f"""
    <div class='progress'><div style='width:{s.progress_percent}%'></div></div>
    <div style='display:flex;justify-content:space-between;align-items:center'>
      <div>
        <h2 style='color:#6ee7b7;margin-bottom:4px'>{escape(SUBJECT_LABELS.get(s.subject, s.subject))} • {escape(s.difficulty)}</h2>
        <div class='muted'>Question {s.question_index + 1} of {len(s.questions)}</div>
      </div>
      {_form_button('end-session', 'End session', css='btn alt', confirm=confirm)}
    </div>
    <div class='card' style='margin-top:12px'>
      <h3 style='color:#f9a8d4'>{escape(q.prompt) if q is not None else ''}</h3>
      <p class='muted'>Select an answer.</p>
      {choices}
      {notes}
      <div style='display:flex;justify-content:space-between;align-items:center;margin-top:16px'>
        <div>Correct: {s.correct_count} • Incorrect: {s.incorrect_count}</div>
        {_form_button('next', next_label, disabled=s.is_answer_correct is not True)}
      </div>
    </div>
    """


def screen_results(s, today):
    return f"""
    <div class='card' style='max-width:800px;margin:40px auto'>
      <h2 style='color:#6ee7b7'>Great work, {escape(s.learner_name or 'friend')}! 🎉</h2>
      <p class='muted'>Here's your learning summary for {today}.</p>
      <div class='row'>
        <div class='col card'>Subject: {escape(SUBJECT_LABELS.get(s.subject, s.subject or ''))}</div>
        <div class='col card'>Difficulty: {escape(s.difficulty or '')}</div>
      </div>
      <div class='row'>
        <div class='col card' style='color:#86efac'>Correct: {s.correct_count}</div>
        <div class='col card' style='color:#fca5a5'>Incorrect: {s.incorrect_count}</div>
      </div>
      <div style='display:flex;justify-content:space-between'>
        <div>{_form_button('continue-learning', 'Continue learning')} {_form_button('try-another-set', 'Try another set', css='btn alt')}</div>
        {_form_button('show-results', 'Results')}
      </div>
    </div>
    """


def screen_admin(s, configured):
    rows_html = ""
    for r in s.results:
        rows_html += (f"<tr><td>{escape(r.name)}</td><td style='white-space:nowrap'>{escape(r.date)}</td>"
                      f"<td>{escape(SUBJECT_LABELS.get(r.subject, r.subject))}</td>"
                      f"<td style='color:#4ade80;font-weight:600'>{r.correct}</td>"
                      f"<td style='color:#f87171;font-weight:600'>{r.incorrect}</td></tr>")
    if not s.results:
        rows_html = "<tr><td colspan='5' class='muted'>No results yet. Complete a learning session to see data here.</td></tr>"
    error = f"<div class='error'>Failed to load: {escape(s.results_error)}</div>" if s.results_error else ""
    notice = "" if configured else "<div class='error'>Database not configured. Set <code>LETSLEARN_DATABASE_URL</code>.</div>"
    return f"""
    <div style='display:flex;justify-content:space-between;align-items:center'>
      <div><h2>Saved Learning Data</h2><p class='muted'>Most recent sessions first</p></div>
      <div>{_form_button('continue-learning', 'Continue learning')} {_form_button('refresh', 'Refresh')} <a class='btn alt' href='/admin/export_pdf'>Export PDF</a></div>
    </div>
    {error}
    {subject_chart_html(s.results)}
    <div class='card'>
      <h3>All Sessions</h3>
      <p class='muted'>Columns: Name • Date • Subject • Correct • Incorrect</p>
      <table><tr><th>Name</th><th>Date</th><th>Subject</th><th>Correct</th><th>Incorrect</th></tr>{rows_html}</table>
    </div>
    {notice}
    """


def render(ctl):
    s = ctl.state
    today = ctl.today()
    screens = {
        LOGIN: lambda: screen_login(s),
        WELCOME: lambda: screen_welcome(s),
        TRANSITION: lambda: screen_transition(s),
        SUBJECT_SELECT: lambda: screen_subject(s),
        DIFFICULTY_SELECT: lambda: screen_difficulty(s),
        QUIZ: lambda: screen_quiz(s, today),
        RESULTS: lambda: screen_results(s, today),
        ADMIN: lambda: screen_admin(s, ctl.store.is_configured()),
    }
    return render_template_string(BASE_HTML, content=screens[s.route](), logged_in=s.route != LOGIN, alert=s.save_error)


# ---------------- Events ----------------
EVENTS = {
    "login": lambda c, f: c.login(f.get("username", ""), f.get("password", "")),
    "welcome": lambda c, f: c.continue_from_welcome(f.get("name", "")),
    "choose-subject": lambda c, f: c.choose_subject_screen(),
    "select-subject": lambda c, f: c.select_subject(f.get("subject")),
    "continue": lambda c, f: c.continue_to_difficulty(),
    "select-difficulty": lambda c, f: c.select_difficulty(f.get("difficulty")),
    "back": lambda c, f: c.back_to_subjects(),
    "start": lambda c, f: c.start_quiz(),
    "answer": lambda c, f: c.choose_answer(f.get("choice", type=int)),
    "next": lambda c, f: c.advance(),
    "end-session": lambda c, f: c.end_session(),
    "continue-learning": lambda c, f: c.continue_learning(),
    "try-another-set": lambda c, f: c.try_another_set(),
    "show-results": lambda c, f: c.show_results_table(),
    "refresh": lambda c, f: c.refresh_results(),
    "logout": lambda c, f: c.logout(),
}


def load_controller(rendering=False):
    """Restore the session. Only a request that renders reads the admin rows."""
    state = SessionState.from_snapshot(session.get(SESSION_KEY))
    ctl = QuizController(state, current_app.extensions["result_store"],
                         current_app.config["QUESTIONS_ROOT"], today=current_app.config["TODAY"],
                         eager_results=rendering)
    ctl.resume()
    return ctl


# ---------------- Routes ----------------
@bp.route("/")
def home():
    ctl = load_controller(rendering=True)
    session[SESSION_KEY] = ctl.state.to_snapshot()
    for category, message in get_flashed_messages(with_categories=True):
        if category == "login":
            ctl.state.login_error = message
        elif category == "save":
            ctl.state.save_error = message
    return render(ctl)


@bp.route("/event/<name>", methods=["POST"])
def event(name):
    handler = EVENTS.get(name)
    if handler is None:
        abort(400)
    ctl = load_controller()
    handler(ctl, request.form)
    if name == "logout":
        session.pop(SESSION_KEY, None)
        current_app.logger.info("session logged out")
        return redirect(url_for("quiz.home"))
    session[SESSION_KEY] = ctl.state.to_snapshot()
    if ctl.state.login_error:
        flash(ctl.state.login_error, "login")
    if ctl.state.save_error:
        flash(ctl.state.save_error, "save")
    return redirect(url_for("quiz.home"))


@bp.route("/admin/export_pdf")
def admin_export_pdf():
    ctl = load_controller()
    if ctl.state.route == LOGIN:
        return redirect(url_for("quiz.home"))
    try:
        rows = ctl.store.list()
    except (StoreUnavailable, StoreError) as exc:
        current_app.logger.warning("pdf export failed: %s", exc)
        return render_template_string(BASE_HTML, logged_in=True, alert=None,
                                      content=f"<div class='card'>Failed to load: {escape(exc)} <a class='btn alt' href='/'>Back</a></div>")
    pdfb = results_report_pdf_bytes(rows)
    return send_file(io.BytesIO(pdfb), mimetype="application/pdf", as_attachment=True, download_name="quiz_results.pdf")


# ---------------- Run ----------------
# `flask --app app run` picks up create_app; importing this module builds nothing
if __name__ == "__main__":
    app = create_app()
    print("Starting Learning Together on http://127.0.0.1:5000")
    app.run(host="0.0.0.0", port=5000, debug=True)
