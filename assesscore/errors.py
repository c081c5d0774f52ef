# assesscore/errors.py
"""
Доменные ошибки. Компоненты бросают их, HTTP-слой превращает в
``{"success": false, "message": ...}`` со статусом ``status_code``.
"""
from __future__ import annotations


class AssessmentError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AssessmentError):
    status_code = 400
    default_message = "Invalid input"


class Forbidden(AssessmentError):
    status_code = 403
    default_message = "Unauthorized"


class NotFound(AssessmentError):
    status_code = 404
    default_message = "Not found"


class Conflict(AssessmentError):
    status_code = 409
    default_message = "Conflicting request"


class AlreadyCompleted(AssessmentError):
    status_code = 409
    default_message = "You have already completed this test"


class Expired(AssessmentError):
    status_code = 410
    default_message = "This invitation has expired"


class Unavailable(AssessmentError):
    status_code = 503
    default_message = "Storage unavailable"
