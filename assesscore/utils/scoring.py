from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from assesscore.errors import Forbidden, InvalidInput, NotFound
from assesscore.models import Answer, CandidateSession, Question, Result, Test, User
from assesscore.utils.auth import Principal, require_manage
from assesscore.utils.invitations import reconcile_on_completion
from assesscore.utils.notifications import Notifier
from assesscore.utils.session_tracker import get_result
from assesscore.utils.storage import transaction, upsert, utcnow

logger = logging.getLogger(__name__)

# нижние границы включительно, по убыванию
REMARK_TIERS = (
    (90, "Excellent"),
    (75, "Very Good"),
    (60, "Good"),
    (50, "Fair"),
)
LOWEST_REMARK = "Needs Improvement"


@dataclass
class GradedAnswer:
    question_id: str
    answer: Any
    is_correct: bool


@dataclass
class GradeOutcome:
    correct: int
    total: int  # только автопроверяемые вопросы
    score: int
    remarks: str
    answers: List[GradedAnswer] = field(default_factory=list)


def remarks_for(score: int) -> str:
    for threshold, remark in REMARK_TIERS:
        if score >= threshold:
            return remark
    return LOWEST_REMARK


def percent(correct: int, total: int) -> int:
    """Процент с округлением половины вверх; 0 при total == 0."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def grade(questions: Sequence[Question], answers: Dict[str, Any]) -> GradeOutcome:
    """
    answers: {question_id: значение}
    Автопроверка -- точное равенство с ключом, без нормализации и частичных баллов.
    Для вопросов со свободным ответом is_correct всегда False.
    """
    correct = 0
    total = 0
    graded: List[GradedAnswer] = []

    for q in questions:
        value = answers.get(str(q.id))
        is_correct = False
        if q.auto_graded:
            total += 1
            is_correct = value is not None and value == q.correct_answer
            if is_correct:
                correct += 1
        graded.append(GradedAnswer(question_id=q.id, answer=value, is_correct=is_correct))

    score = percent(correct, total)
    return GradeOutcome(correct=correct, total=total, score=score, remarks=remarks_for(score), answers=graded)


def submit(
    db: Session,
    notifier: Optional[Notifier],
    candidate: Principal,
    test_id: str,
    answers: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Сдача теста одной транзакцией: ответы, Result, закрытие сессии.
    Повторную сдачу останавливает проверка Result, а гонку двух запросов --
    уникальный индекс results(candidate_id, test_id): второй получит Conflict.
    Письмо и закрытие приглашения -- только после commit и без влияния на ответ.
    """
    if not isinstance(answers, dict):
        raise InvalidInput("Answers are required")

    with transaction(db, conflict_message="This test has already been submitted"):
        if get_result(db, candidate.id, test_id):
            raise Forbidden("You have already completed this test")

        test = db.get(Test, test_id)
        if not test:
            raise NotFound("Test not found")

        questions = (
            db.query(Question)
            .filter(Question.test_id == test_id)
            .order_by(Question.position, Question.id)
            .all()
        )
        if not questions:
            raise InvalidInput("No questions found for this test")

        outcome = grade(questions, answers)
        now = utcnow()

        for item in outcome.answers:
            db.add(Answer(
                candidate_id=candidate.id,
                question_id=item.question_id,
                answer=item.answer,
                is_correct=item.is_correct,
                created_at=now,
            ))

        db.add(Result(
            candidate_id=candidate.id,
            test_id=test_id,
            total_questions=outcome.total,
            correct_answers=outcome.correct,
            score=outcome.score,
            remarks=outcome.remarks,
            taken_at=now,
        ))
        # Result должен упасть на уникальности раньше, чем тронем сессию
        db.flush()

        upsert(
            db,
            CandidateSession,
            key={"candidate_id": candidate.id, "test_id": test_id},
            insert_values={
                "status": "completed",
                "started_at": now,
                "ended_at": now,
                "score": outcome.score,
            },
            update_values={
                "status": "completed",
                "ended_at": now,
                "score": outcome.score,
                "saved_answers": None,
                "time_remaining": None,
            },
        )
        test_title = test.title

    logger.info(
        "Test %s submitted by %s: %s/%s, score %s",
        test_id, candidate.id, outcome.correct, outcome.total, outcome.score,
    )

    submission = {
        "score": outcome.score,
        "total_questions": outcome.total,
        "correct_answers": outcome.correct,
        "remarks": outcome.remarks,
    }
    _after_commit(db, notifier, candidate, test_id, test_title, submission, now)
    return submission


def _after_commit(db, notifier, candidate, test_id, test_title, submission, completed_at) -> None:
    # сдача уже зафиксирована: ошибки здесь только логируются
    if notifier is not None:
        try:
            notifier.send_completion(
                candidate_email=candidate.email,
                candidate_name=candidate.name,
                test_title=test_title,
                details={
                    "completion_time": completed_at.strftime("%Y-%m-%d %H:%M UTC"),
                    "total_questions": submission["total_questions"],
                    "correct_answers": submission["correct_answers"],
                },
            )
        except Exception:
            logger.exception("Completion notification failed for %s / test %s", candidate.id, test_id)

    try:
        reconcile_on_completion(db, candidate.email, test_id)
    except Exception:
        logger.exception("Invitation reconciliation failed for %s / test %s", candidate.email, test_id)


# --------------------- Результаты ---------------------

def results_for_candidate(db: Session, candidate_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(Result, Test)
        .join(Test, Result.test_id == Test.id)
        .filter(Result.candidate_id == candidate_id)
        .order_by(Result.taken_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "test_id": t.id,
            "title": t.title,
            "description": t.description,
            "time_limit": t.time_limit,
            **r.summary(),
        }
        for r, t in rows
    ]


def results_for_test(db: Session, test_id: str, principal: Principal) -> List[Dict[str, Any]]:
    test = db.get(Test, test_id)
    if not test:
        raise NotFound("Test not found")
    require_manage(principal, test.created_by)

    rows = (
        db.query(Result, User)
        .join(User, Result.candidate_id == User.id)
        .filter(Result.test_id == test_id)
        .order_by(Result.taken_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "candidate_id": u.id,
            "candidate_name": u.name,
            "candidate_email": u.email,
            **r.summary(),
        }
        for r, u in rows
    ]


def all_results(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(Result, Test.title, User)
        .join(Test, Result.test_id == Test.id)
        .join(User, Result.candidate_id == User.id)
        .order_by(Result.taken_at.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "score": r.score,
            "remarks": r.remarks,
            "taken_at": r.taken_at,
            "test_title": title,
            "candidate_name": u.name,
            "candidate_email": u.email,
        }
        for r, title, u in rows
    ]
