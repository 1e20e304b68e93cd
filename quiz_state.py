# quiz_state.py
"""
View-State Machine for Learning Together.

One SessionState per browser session, owned by a QuizController. Every
mutation goes through a named transition; a transition that is not allowed
from the current route (or whose guard fails) leaves the state untouched and
returns False.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from errors import InvalidCredentials, QuestionLoadFailure, StoreError, StoreUnavailable
from questions import DIFFICULTIES, SUBJECTS, load_questions

log = logging.getLogger(__name__)

# ---------------- CONFIG ----------------
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "letlearn"
TIMEZONE = "America/New_York"
SNAPSHOT_VERSION = 1

LOGIN = "login"
WELCOME = "welcome"
TRANSITION = "transition"
SUBJECT_SELECT = "subject-select"
DIFFICULTY_SELECT = "difficulty-select"
QUIZ = "quiz"
RESULTS = "results"
ADMIN = "admin"
ROUTES = (LOGIN, WELCOME, TRANSITION, SUBJECT_SELECT, DIFFICULTY_SELECT, QUIZ, RESULTS, ADMIN)


def ny_date_string():
    return datetime.now(ZoneInfo(TIMEZONE)).strftime("%Y-%m-%d")


def check_credentials(username, password):
    if username == ADMIN_USERNAME and password == ADMIN_PASSWORD:
        return
    raise InvalidCredentials(f"Invalid credentials. Hint: {ADMIN_USERNAME} / {ADMIN_PASSWORD}")


def _is_index(value):
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _count(value):
    return value if _is_index(value) else 0


def _one_of(value, options):
    return value if value in options else None


# ---------------- STATE ----------------
@dataclass
class SessionState:
    route: str = LOGIN
    learner_name: str = ""
    subject: str = None
    difficulty: str = None
    question_index: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    selected_choice: int = None
    is_answer_correct: bool = None
    # transient: re-derived or shown once, never persisted
    questions: list = field(default_factory=list)
    question_error: str = None
    login_error: str = None
    results: list = field(default_factory=list)
    results_error: str = None
    save_error: str = None

    def reset(self):
        self.__dict__.update(SessionState().__dict__)

    def reset_progress(self):
        self.question_index = 0
        self.correct_count = 0
        self.incorrect_count = 0
        self.clear_selection()

    def clear_selection(self):
        self.selected_choice = None
        self.is_answer_correct = None

    @property
    def current_question(self):
        if 0 <= self.question_index < len(self.questions):
            return self.questions[self.question_index]
        return None

    @property
    def is_last_question(self):
        return self.question_index + 1 >= len(self.questions)

    @property
    def progress_percent(self):
        return max(1, round(self.question_index / max(len(self.questions), 1) * 100))

    def to_snapshot(self):
        return {
            "v": SNAPSHOT_VERSION,
            "route": self.route,
            "learnerName": self.learner_name,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "questionIndex": self.question_index,
            "correctCount": self.correct_count,
            "incorrectCount": self.incorrect_count,
            "selectedChoice": self.selected_choice,
            "isAnswerCorrect": self.is_answer_correct,
        }

    @classmethod
    def from_snapshot(cls, data):
        """Rebuild a state from a snapshot, defaulting anything missing or malformed."""
        if not isinstance(data, dict) or data.get("v", SNAPSHOT_VERSION) != SNAPSHOT_VERSION:
            return cls()
        name = data.get("learnerName")
        selected = data.get("selectedChoice")
        correct = data.get("isAnswerCorrect")
        return cls(
            route=_one_of(data.get("route"), ROUTES) or LOGIN,
            learner_name=name if isinstance(name, str) else "",
            subject=_one_of(data.get("subject"), SUBJECTS),
            difficulty=_one_of(data.get("difficulty"), DIFFICULTIES),
            question_index=_count(data.get("questionIndex")),
            correct_count=_count(data.get("correctCount")),
            incorrect_count=_count(data.get("incorrectCount")),
            selected_choice=selected if _is_index(selected) else None,
            is_answer_correct=correct if isinstance(correct, bool) and _is_index(selected) else None,
        )


# ---------------- CONTROLLER ----------------
class QuizController:
    def __init__(self, state, store, questions_root, today=ny_date_string, eager_results=True):
        self.state = state
        self.store = store
        self.questions_root = questions_root
        self.today = today
        # when False, transitions skip reading admin rows; the next render reads them once
        self.eager_results = eager_results

    # -- side effects --
    def _load_questions(self):
        s = self.state
        s.questions = []
        s.question_error = None
        if not (s.subject and s.difficulty):
            return
        try:
            s.questions = load_questions(s.subject, s.difficulty, self.questions_root)
        except QuestionLoadFailure as exc:
            s.question_error = str(exc)

    def _fetch_results(self):
        if self.eager_results:
            self._read_results()

    def _read_results(self):
        s = self.state
        s.results_error = None
        try:
            s.results = self.store.list()
        except (StoreUnavailable, StoreError) as exc:
            log.warning("could not list results: %s", exc)
            s.results_error = str(exc)

    def _save_and_finish(self):
        s = self.state
        if not s.subject or not s.learner_name:
            s.save_error = "Save failed: no learner name or subject for this session"
            s.route = RESULTS
            return True
        date = self.today()
        try:
            self.store.upsert(s.learner_name, date, s.subject, s.correct_count, s.incorrect_count)
        except (StoreUnavailable, StoreError) as exc:
            log.warning("save failed for %s: %s", s.learner_name, exc)
            s.save_error = f"Save failed: {exc}"
            s.route = RESULTS
            return True
        s.save_error = None
        s.route = RESULTS
        self._fetch_results()
        return True

    def resume(self):
        """Re-derive what a snapshot does not carry: the question sequence and admin rows."""
        s = self.state
        self._load_questions()
        if s.route == QUIZ and s.questions and s.question_index >= len(s.questions):
            s.reset_progress()
        if s.route == ADMIN:
            self._fetch_results()

    # -- transitions --
    def login(self, username, password):
        s = self.state
        if s.route != LOGIN:
            return False
        try:
            check_credentials(username, password)
        except InvalidCredentials as exc:
            log.info("rejected login for %r", username)
            s.login_error = str(exc)
            return False
        s.login_error = None
        s.route = WELCOME
        return True

    def continue_from_welcome(self, name):
        s = self.state
        name = (name or "").strip()
        if s.route != WELCOME or not name:
            return False
        s.learner_name = name
        s.route = TRANSITION
        return True

    def choose_subject_screen(self):
        if self.state.route != TRANSITION:
            return False
        self.state.route = SUBJECT_SELECT
        return True

    def select_subject(self, subject):
        s = self.state
        if s.route != SUBJECT_SELECT or subject not in SUBJECTS:
            return False
        if subject != s.subject:
            s.subject = subject
            s.reset_progress()
            s.questions = []
        return True

    def continue_to_difficulty(self):
        s = self.state
        if s.route != SUBJECT_SELECT or not s.subject:
            return False
        s.route = DIFFICULTY_SELECT
        return True

    def select_difficulty(self, difficulty):
        s = self.state
        if s.route != DIFFICULTY_SELECT or difficulty not in DIFFICULTIES:
            return False
        if difficulty != s.difficulty:
            s.difficulty = difficulty
            s.reset_progress()
            s.questions = []
        return True

    def back_to_subjects(self):
        if self.state.route != DIFFICULTY_SELECT:
            return False
        self.state.route = SUBJECT_SELECT
        return True

    def start_quiz(self):
        s = self.state
        if s.route != DIFFICULTY_SELECT or not (s.subject and s.difficulty):
            return False
        s.reset_progress()
        self._load_questions()
        s.route = QUIZ
        return True

    def choose_answer(self, idx):
        """Score the first choice on a question; later choices only move the selection."""
        s = self.state
        question = s.current_question
        if s.route != QUIZ or question is None or s.is_answer_correct is True:
            return False
        if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < len(question.choices):
            return False
        first_choice = s.selected_choice is None
        right = question.is_correct(idx)
        s.selected_choice = idx
        s.is_answer_correct = right
        if first_choice:
            if right:
                s.correct_count += 1
            else:
                s.incorrect_count += 1
        return True

    def advance(self):
        s = self.state
        if s.route != QUIZ or s.is_answer_correct is not True:
            return False
        if s.is_last_question:
            return self._save_and_finish()
        s.question_index += 1
        s.clear_selection()
        return True

    def end_session(self):
        if self.state.route != QUIZ:
            return False
        return self._save_and_finish()

    def continue_learning(self):
        s = self.state
        if s.route not in (RESULTS, ADMIN):
            return False
        # a session that skipped the welcome screen still needs a name
        s.route = SUBJECT_SELECT if s.learner_name else WELCOME
        return True

    def try_another_set(self):
        if self.state.route != RESULTS:
            return False
        self.state.route = DIFFICULTY_SELECT
        return True

    def show_results_table(self):
        s = self.state
        if s.route == LOGIN:
            return False
        s.route = ADMIN
        self._fetch_results()
        return True

    def refresh_results(self):
        if self.state.route != ADMIN:
            return False
        self._fetch_results()
        return True

    def logout(self):
        self.state.reset()
        return True
