"""
summit.errors — Bookkeeping Error Taxonomy
===========================================

Every service raises one of these; the API maps them to HTTP status codes
in a single exception handler (see :mod:`summit.api.main`).
"""

from __future__ import annotations


class SummitError(Exception):
    """Base class.  ``message`` is safe to show to the member."""

    status_code = 400
    default_message = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthRequired(SummitError):
    """No authenticated member on the call."""

    status_code = 401
    default_message = "You must be signed in."


class AlreadyCompleted(SummitError):
    """The (member, challenge) completion already exists."""

    status_code = 409
    default_message = "Challenge already completed."


class StorageError(SummitError):
    """The backing store failed; the transaction was rolled back."""

    status_code = 503
    default_message = "Storage is unavailable, please try again."


class NotFound(SummitError):
    status_code = 404
    default_message = "Not found."
