# questions.py
"""
Question Source: one static JSON document per (subject, difficulty) pair.
Each document is an array of {"prompt", "choices", "answerIndex"} objects.
"""

import json
import logging
import os
from dataclasses import dataclass

from errors import QuestionLoadFailure

log = logging.getLogger(__name__)

SUBJECTS = ("CodingTrack", "MathTrack")
DIFFICULTIES = ("Basics", "Moderate")

SUBJECT_LABELS = {"CodingTrack": "Code (Python)", "MathTrack": "Mathematics"}

# paths are relative to the Flask static folder
QUESTION_FILES = {
    "CodingTrack": {
        "Basics": "questions/coding-basics.json",
        "Moderate": "questions/coding-moderate.json",
    },
    "MathTrack": {
        "Basics": "questions/math-basics.json",
        "Moderate": "questions/math-moderate.json",
    },
}


@dataclass(frozen=True)
class Question:
    prompt: str
    choices: tuple
    answer_index: int

    @classmethod
    def from_dict(cls, raw):
        if not isinstance(raw, dict):
            raise ValueError("question record must be an object")
        prompt = raw.get("prompt")
        choices = raw.get("choices")
        answer = raw.get("answerIndex")
        if not isinstance(prompt, str):
            raise ValueError("prompt must be text")
        if not isinstance(choices, list) or len(choices) < 2 or not all(isinstance(c, str) for c in choices):
            raise ValueError("choices must be a list of at least two strings")
        # bool is an int subclass; reject it explicitly
        if isinstance(answer, bool) or not isinstance(answer, int) or not 0 <= answer < len(choices):
            raise ValueError("answerIndex must index into choices")
        return cls(prompt=prompt, choices=tuple(choices), answer_index=answer)

    def is_correct(self, idx):
        return idx == self.answer_index


def question_file(subject, difficulty):
    try:
        return QUESTION_FILES[subject][difficulty]
    except KeyError:
        raise QuestionLoadFailure(f"No question set for {subject} / {difficulty}") from None


def load_questions(subject, difficulty, root):
    """Load the question sequence for one pair from ``root``.

    A top-level value that is not an array gives an empty sequence; anything
    unreadable or malformed raises QuestionLoadFailure.
    """
    rel = question_file(subject, difficulty)
    path = os.path.join(root, rel)
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        log.warning("failed to load %s: %s", rel, exc)
        raise QuestionLoadFailure(f"Failed to fetch /{rel}") from exc
    if not isinstance(data, list):
        return []
    try:
        return [Question.from_dict(item) for item in data]
    except ValueError as exc:
        log.warning("bad question record in %s: %s", rel, exc)
        raise QuestionLoadFailure(f"Malformed question in /{rel}: {exc}") from exc
