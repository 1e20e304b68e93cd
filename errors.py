# errors.py
"""
Error taxonomy for the Learning Together app.
None of these is fatal: each is caught by the transition that triggered it
and turned into a message on the current screen.
"""


class QuizAppError(Exception):
    """Base class for every error the app surfaces to the learner."""


class InvalidCredentials(QuizAppError):
    """Login attempt did not match the fixed credential pair."""


class QuestionLoadFailure(QuizAppError):
    """A question document could not be read or parsed."""


class StoreUnavailable(QuizAppError):
    """No result database was configured at startup."""

    def __init__(self, message="Database not configured"):
        super().__init__(message)


class StoreError(QuizAppError):
    """A lookup, update, insert or list against quiz_results failed."""
