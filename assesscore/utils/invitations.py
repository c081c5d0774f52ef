# assesscore/utils/invitations.py
"""
Приглашения кандидатов: выпуск одноразовых токенов, открытие по токену,
проверка доступа к тесту и закрытие после сдачи.

Статусы меняются только вперёд:
    pending -> accepted -> completed
    pending | accepted -> expired
Все переходы -- условные UPDATE (compare-and-set), поэтому гонка двух
запросов не может откатить completed/expired назад.
"""
from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, List
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from assesscore.config import Settings
from assesscore.errors import (
    AlreadyCompleted,
    AssessmentError,
    Expired,
    Forbidden,
    InvalidInput,
    NotFound,
    Unavailable,
)
from assesscore.models import Invitation, Question, Test, User
from assesscore.utils.auth import Principal, require_manage
from assesscore.utils.notifications import NotificationError, Notifier
from assesscore.utils.storage import transaction, utcnow

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("pending", "accepted")


def _norm_email(email: str) -> str:
    return (email or "").strip().lower()


def _get_test(db: Session, test_id: str) -> Test:
    test = db.get(Test, test_id)
    if not test:
        raise NotFound("Test not found")
    return test


def _question_count(db: Session, test_id: str) -> int:
    return db.query(func.count(Question.id)).filter(Question.test_id == test_id).scalar() or 0


def _test_meta(db: Session, test: Test) -> Dict[str, Any]:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "time_limit": test.time_limit,
        "question_count": _question_count(db, test.id),
    }


def _gen_token(db: Session) -> str:
    # 256 бит энтропии; уникальность дополнительно держит unique-индекс
    while True:
        token = secrets.token_hex(32)
        if not db.query(Invitation.id).filter(Invitation.token == token).first():
            return token


def _is_past_expiry(inv: Invitation) -> bool:
    return inv.status == "expired" or utcnow() > inv.expires_at


def _expire(db: Session, inv: Invitation) -> None:
    """Помечает приглашение истёкшим (один раз) и бросает Expired."""
    with transaction(db):
        changed = (
            db.query(Invitation)
            .filter(Invitation.id == inv.id, Invitation.status.in_(OPEN_STATUSES))
            .update({Invitation.status: "expired"}, synchronize_session=False)
        )
    if changed:
        logger.info("Invitation %s expired", inv.id)
    raise Expired()


# --------------------- Выпуск ---------------------

def issue(
    db: Session,
    settings: Settings,
    notifier: Notifier,
    *,
    test_id: str,
    candidate_email: str,
    candidate_name: str | None,
    issuer: Principal,
) -> Dict[str, Any]:
    """
    Создаёт приглашение и отправляет письмо со ссылкой.
    Ошибка доставки не откатывает приглашение: возвращается delivered=False.
    """
    test = _get_test(db, test_id)
    require_manage(issuer, test.created_by)

    email = _norm_email(candidate_email)
    if not email:
        raise InvalidInput("Candidate email is required")

    now = utcnow()
    with transaction(db):
        inv = Invitation(
            id=str(uuid4()),
            test_id=test.id,
            candidate_email=email,
            candidate_name=(candidate_name or "").strip() or None,
            invited_by=issuer.id,
            token=_gen_token(db),
            status="pending",
            invited_at=now,
            expires_at=now + timedelta(days=settings.invitation_ttl_days),
        )
        db.add(inv)
    logger.info("Invitation %s issued for test %s to %s", inv.id, test.id, email)

    out = {"invitation_id": inv.id, "token": inv.token, "delivered": True, "error": None}
    try:
        notifier.send_invitation(
            candidate_email=inv.candidate_email,
            candidate_name=inv.candidate_name,
            token=inv.token,
            test=_test_meta(db, test),
            invited_by_name=issuer.name,
            expires_at=inv.expires_at,
        )
    except NotificationError as e:
        logger.warning("Invitation %s created but email not delivered: %s", inv.id, e)
        out["delivered"] = False
        out["error"] = str(e)
    except Exception as e:
        # шаблон или транспорт упали неожиданно: приглашение всё равно остаётся
        logger.exception("Invitation %s created but sending failed", inv.id)
        out["delivered"] = False
        out["error"] = f"Failed to send email: {e}"
    return out


def issue_many(
    db: Session,
    settings: Settings,
    notifier: Notifier,
    *,
    test_id: str,
    candidates: List[Dict[str, Any]],
    issuer: Principal,
) -> List[Dict[str, Any]]:
    """По приглашению на кандидата; сбой одного не мешает остальным."""
    test = _get_test(db, test_id)
    require_manage(issuer, test.created_by)

    results: List[Dict[str, Any]] = []
    for candidate in candidates:
        email = candidate.get("email")
        try:
            issued = issue(
                db, settings, notifier,
                test_id=test_id,
                candidate_email=email,
                candidate_name=candidate.get("name"),
                issuer=issuer,
            )
        except AssessmentError as e:
            results.append({"email": email, "success": False, "invitation_id": None, "error": e.message})
            continue
        results.append({
            "email": email,
            "success": issued["delivered"],
            "invitation_id": issued["invitation_id"],
            "error": issued["error"],
        })
    return results


# --------------------- Открытие и доступ ---------------------

def resolve(db: Session, token: str) -> Dict[str, Any]:
    """Открытие ссылки из письма: pending -> accepted."""
    inv = db.query(Invitation).filter(Invitation.token == token).first()
    if not inv:
        raise NotFound("Invalid invitation link")

    if _is_past_expiry(inv):
        _expire(db, inv)
    if inv.status == "completed":
        raise AlreadyCompleted()

    if inv.status == "pending":
        with transaction(db):
            (
                db.query(Invitation)
                .filter(Invitation.id == inv.id, Invitation.status == "pending")
                .update({Invitation.status: "accepted", Invitation.accepted_at: utcnow()},
                        synchronize_session=False)
            )
        db.refresh(inv)

    test = inv.test
    meta = _test_meta(db, test)
    return {
        "id": inv.id,
        "test_id": test.id,
        "test_title": meta["title"],
        "test_description": meta["description"],
        "time_limit": meta["time_limit"],
        "question_count": meta["question_count"],
        "candidate_name": inv.candidate_name,
        "candidate_email": inv.candidate_email,
        "expires_at": inv.expires_at,
        "status": inv.status,
    }


def verify_access(db: Session, token: str | None, test_id: str, principal: Principal) -> str:
    if not token:
        return "Direct access allowed"

    inv = (
        db.query(Invitation)
        .filter(Invitation.token == token, Invitation.test_id == test_id)
        .first()
    )
    if not inv:
        raise Forbidden("Invalid invitation for this test")
    if _is_past_expiry(inv):
        raise Expired()
    if inv.status == "completed":
        raise AlreadyCompleted()
    if inv.candidate_email != _norm_email(principal.email):
        logger.warning("Invitation %s opened by another account (%s)", inv.id, principal.id)
        raise Forbidden("This invitation is not for your account")
    return "Access verified"


def reconcile_on_completion(db: Session, candidate_email: str, test_id: str) -> int:
    """Закрывает открытые приглашения пары (email, test). Нет строк -- не ошибка."""
    with transaction(db):
        changed = (
            db.query(Invitation)
            .filter(
                Invitation.candidate_email == _norm_email(candidate_email),
                Invitation.test_id == test_id,
                Invitation.status.in_(OPEN_STATUSES),
            )
            .update({Invitation.status: "completed", Invitation.completed_at: utcnow()},
                    synchronize_session=False)
        )
    return changed


# --------------------- Управление (создатель теста / админ) ---------------------

def list_for_test(db: Session, test_id: str, principal: Principal) -> List[Dict[str, Any]]:
    test = _get_test(db, test_id)
    require_manage(principal, test.created_by)

    rows = (
        db.query(Invitation, User.name)
        .join(User, Invitation.invited_by == User.id)
        .filter(Invitation.test_id == test_id)
        .order_by(Invitation.invited_at.desc())
        .all()
    )
    return [
        {
            "id": inv.id,
            "test_id": inv.test_id,
            "candidate_email": inv.candidate_email,
            "candidate_name": inv.candidate_name,
            "status": inv.status,
            "invited_by": inv.invited_by,
            "invited_by_name": inviter_name,
            "invited_at": inv.invited_at,
            "accepted_at": inv.accepted_at,
            "completed_at": inv.completed_at,
            "expires_at": inv.expires_at,
            "reminder_count": inv.reminder_count,
        }
        for inv, inviter_name in rows
    ]


def _get_managed_invitation(db: Session, invitation_id: str, principal: Principal) -> Invitation:
    inv = db.get(Invitation, invitation_id)
    if not inv:
        raise NotFound("Invitation not found")
    require_manage(principal, inv.test.created_by)
    return inv


def send_reminder(db: Session, notifier: Notifier, invitation_id: str, principal: Principal) -> None:
    inv = _get_managed_invitation(db, invitation_id, principal)
    if _is_past_expiry(inv):
        _expire(db, inv)
    if inv.status == "completed":
        raise AlreadyCompleted("Candidate has already completed this test")

    try:
        notifier.send_reminder(
            candidate_email=inv.candidate_email,
            candidate_name=inv.candidate_name,
            token=inv.token,
            test=_test_meta(db, inv.test),
            invited_by_name=inv.inviter.name if inv.inviter else None,
            expires_at=inv.expires_at,
        )
    except NotificationError as e:
        logger.warning("Reminder for invitation %s not delivered: %s", inv.id, e)
        raise Unavailable("Failed to send reminder") from e
    except Exception as e:
        logger.exception("Reminder for invitation %s failed", inv.id)
        raise Unavailable("Failed to send reminder") from e

    with transaction(db):
        (
            db.query(Invitation)
            .filter(Invitation.id == inv.id)
            .update({
                Invitation.reminder_count: Invitation.reminder_count + 1,
                Invitation.last_reminded_at: utcnow(),
            }, synchronize_session=False)
        )


def cancel(db: Session, invitation_id: str, principal: Principal) -> None:
    inv = _get_managed_invitation(db, invitation_id, principal)
    with transaction(db):
        db.delete(inv)
    logger.info("Invitation %s cancelled by %s", invitation_id, principal.id)
