# assesscore/utils/session_tracker.py
"""
Состояние прохождения теста по паре (candidate, test):

    нет строки -> in_progress -> completed

Из completed выхода нет. Сохранение прогресса состояние не меняет.
Наличие Result важнее строки сессии: завершённым считается тот, у кого есть Result.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from assesscore.errors import Forbidden, InvalidInput, NotFound
from assesscore.models import CandidateSession, Question, Result, Test
from assesscore.utils.auth import Principal
from assesscore.utils.storage import transaction, upsert, utcnow

logger = logging.getLogger(__name__)

sessions = CandidateSession.__table__


def get_result(db: Session, candidate_id: str, test_id: str) -> Optional[Result]:
    return (
        db.query(Result)
        .filter(Result.candidate_id == candidate_id, Result.test_id == test_id)
        .first()
    )


def get_session(db: Session, candidate_id: str, test_id: str) -> Optional[CandidateSession]:
    # populate_existing: строку могли обновить upsert'ом мимо identity map
    return (
        db.query(CandidateSession)
        .filter(CandidateSession.candidate_id == candidate_id, CandidateSession.test_id == test_id)
        .populate_existing()
        .first()
    )


def get_status(db: Session, candidate_id: str, test_id: str) -> Dict[str, Any]:
    result = get_result(db, candidate_id, test_id)
    if result:
        return {"status": "completed", "result": result.summary()}

    session = get_session(db, candidate_id, test_id)
    if session and session.status == "in_progress":
        return {
            "status": "in_progress",
            "saved_answers": session.saved_answers or {},
            "time_remaining": session.time_remaining,
            "started_at": session.started_at,
        }
    if session and session.status == "completed":
        return {"status": "completed", "result": None}
    return {"status": "not_started"}


def save_progress(
    db: Session,
    candidate_id: str,
    test_id: str,
    answers: Optional[Dict[str, Any]],
    time_remaining: Optional[int],
) -> Dict[str, Any]:
    """
    Автосохранение. Один атомарный upsert по (candidate_id, test_id).
    Завершённую сессию upsert не трогает, даже если сдача прошла после проверки Result.
    """
    if time_remaining is None or time_remaining < 0:
        raise InvalidInput("time_remaining must be a non-negative number of seconds")

    if not db.get(Test, test_id):
        raise NotFound("Test not found")
    if get_result(db, candidate_id, test_id):
        raise Forbidden("You have already completed this test")

    snapshot = answers or {}
    with transaction(db, conflict_message="Progress could not be saved"):
        upsert(
            db,
            CandidateSession,
            key={"candidate_id": candidate_id, "test_id": test_id},
            insert_values={
                "status": "in_progress",
                "started_at": utcnow(),
                "saved_answers": snapshot,
                "time_remaining": time_remaining,
            },
            update_values={
                "saved_answers": snapshot,
                "time_remaining": time_remaining,
            },
            where=sessions.c.status == "in_progress",
        )

    session = get_session(db, candidate_id, test_id)
    if session.status != "in_progress":
        raise Forbidden("You have already completed this test")
    return {
        "status": session.status,
        "saved_answers": session.saved_answers or {},
        "time_remaining": session.time_remaining,
        "started_at": session.started_at,
    }


def get_test_for_taking(db: Session, principal: Principal, test_id: str) -> Dict[str, Any]:
    """
    Выдаёт тест для прохождения (без ключей ответов).
    Сначала проверяется, не сдан ли тест: повторно вопросы не отдаём.
    """
    if get_result(db, principal.id, test_id):
        raise Forbidden("You have already completed this test")

    test = db.get(Test, test_id)
    if not test:
        raise NotFound("Test not found")
    if principal.role != test.audience_role:
        raise Forbidden("This test is not available for your role")

    questions = (
        db.query(Question)
        .filter(Question.test_id == test_id)
        .order_by(Question.position, Question.id)
        .all()
    )
    if not questions:
        raise InvalidInput("No questions found for this test")

    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "time_limit": test.time_limit,
        "proctoring": test.proctoring_settings(),
        "questions": [
            {
                "id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "options": q.options or [],
            }
            for q in questions
        ],
    }
