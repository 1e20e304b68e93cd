# result_store.py
"""
Result Store access: the quiz_results table behind Flask-SQLAlchemy.
One logical row per (name, subject, date); repeated sessions on the same day
accumulate into it.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from errors import StoreError, StoreUnavailable

log = logging.getLogger(__name__)

ENV_DATABASE_URL = "LETSLEARN_DATABASE_URL"

db = SQLAlchemy()


# ---------------- MODEL ----------------
class QuizResult(db.Model):
    __tablename__ = "quiz_results"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD, America/New_York
    subject = db.Column(db.String(50), nullable=False)
    correct = db.Column(db.Integer, nullable=False, default=0)
    incorrect = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


@dataclass(frozen=True)
class ResultRow:
    id: int
    name: str
    date: str
    subject: str
    correct: int
    incorrect: int
    created_at: datetime = None

    @classmethod
    def from_model(cls, m):
        try:
            return cls(
                id=int(m.id),
                name=str(m.name),
                date=str(m.date),
                subject=str(m.subject),
                correct=int(m.correct or 0),
                incorrect=int(m.incorrect or 0),
                created_at=m.created_at,
            )
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Unexpected row in quiz_results: {exc}") from exc


def resolve_database_url(override=None):
    """In-process override first, then the environment, then nothing."""
    if override:
        return override
    return os.environ.get(ENV_DATABASE_URL, "")


class ResultStore:
    def __init__(self, database_url=""):
        self._database_url = database_url or ""

    def is_configured(self):
        return bool(self._database_url)

    def _require(self):
        if not self.is_configured():
            raise StoreUnavailable()

    def list(self):
        """All rows, most recently created first."""
        self._require()
        try:
            models = QuizResult.query.order_by(QuizResult.created_at.desc(), QuizResult.id.desc()).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            log.error("listing quiz_results failed: %s", exc)
            raise StoreError(str(exc)) from exc
        return [ResultRow.from_model(m) for m in models]

    def upsert(self, name, date, subject, correct, incorrect):
        """Add the counts to the (name, subject, date) row, inserting it if missing.

        The lookup and the write are separate statements, so two sessions
        racing on the same key can still produce two rows.
        """
        self._require()
        try:
            existing = (
                db.session.query(QuizResult.id, QuizResult.correct, QuizResult.incorrect)
                .filter_by(name=name, subject=subject, date=date)
                .first()
            )
            if existing is not None:
                QuizResult.query.filter_by(id=existing.id).update({
                    "correct": (existing.correct or 0) + correct,
                    "incorrect": (existing.incorrect or 0) + incorrect,
                })
            else:
                db.session.add(QuizResult(name=name, date=date, subject=subject,
                                          correct=correct, incorrect=incorrect))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            log.error("upsert into quiz_results failed for %s/%s/%s: %s", name, subject, date, exc)
            raise StoreError(str(exc)) from exc
        log.info("saved %s/%s/%s (+%d correct, +%d incorrect)", name, subject, date, correct, incorrect)
