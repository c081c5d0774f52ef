from assesscore.models.user import User
from assesscore.models.testbank import Test, Question
from assesscore.models.invitation import Invitation
from assesscore.models.session import CandidateSession
from assesscore.models.result import Result, Answer
from assesscore.models.proctoring import ProctoringEvent

__all__ = [
    "User",
    "Test",
    "Question",
    "Invitation",
    "CandidateSession",
    "Result",
    "Answer",
    "ProctoringEvent",
]
