# assesscore/utils/proctoring.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from assesscore.errors import NotFound
from assesscore.models import CandidateSession, ProctoringEvent, Test, User
from assesscore.models.proctoring import COUNTED_EVENTS
from assesscore.utils.auth import Principal, require_manage
from assesscore.utils.session_tracker import get_session
from assesscore.utils.storage import transaction, upsert, utcnow

logger = logging.getLogger(__name__)

sessions = CandidateSession.__table__


def _get_test(db: Session, test_id: str) -> Test:
    test = db.get(Test, test_id)
    if not test:
        raise NotFound("Test not found")
    return test


def log_event(
    db: Session,
    candidate_id: str,
    test_id: str,
    event_type: str,
    event_data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Пишет событие и обновляет счётчики сессии одной транзакцией.
    tab_switch: +1 к переключениям вкладок и к нарушениям;
    copy/paste/fullscreen_exit: +1 только к нарушениям;
    прочие события только журналируются.
    Флаг ставится, когда переключений больше max_tab_switches, и не снимается.
    """
    test = _get_test(db, test_id)
    max_tab_switches = test.max_tab_switches
    key = {"candidate_id": candidate_id, "test_id": test_id}
    now = utcnow()

    with transaction(db):
        db.add(ProctoringEvent(
            candidate_id=candidate_id,
            test_id=test_id,
            event_type=event_type,
            event_data=event_data,
            created_at=now,
        ))

        if event_type == "tab_switch":
            upsert(
                db, CandidateSession, key,
                insert_values={"status": "in_progress", "started_at": now,
                               "tab_switch_count": 1, "violation_count": 1},
                update_values={"tab_switch_count": sessions.c.tab_switch_count + 1,
                               "violation_count": sessions.c.violation_count + 1},
            )
        elif event_type in COUNTED_EVENTS:
            upsert(
                db, CandidateSession, key,
                insert_values={"status": "in_progress", "started_at": now, "violation_count": 1},
                update_values={"violation_count": sessions.c.violation_count + 1},
            )

        flagged_now = (
            db.query(CandidateSession)
            .filter(
                CandidateSession.candidate_id == candidate_id,
                CandidateSession.test_id == test_id,
                CandidateSession.tab_switch_count > max_tab_switches,
                CandidateSession.flagged.is_(False),
            )
            .update({CandidateSession.flagged: True}, synchronize_session=False)
        )

    if flagged_now:
        logger.warning("Candidate %s flagged on test %s: too many tab switches", candidate_id, test_id)

    session = get_session(db, candidate_id, test_id)
    if not session:
        return {"tab_switch_count": 0, "violation_count": 0, "flagged": False}
    return {
        "tab_switch_count": session.tab_switch_count,
        "violation_count": session.violation_count,
        "flagged": bool(session.flagged),
    }


def get_settings(db: Session, test_id: str) -> Dict[str, Any]:
    return _get_test(db, test_id).proctoring_settings()


def _event_dict(e: ProctoringEvent) -> Dict[str, Any]:
    return {
        "id": e.id,
        "candidate_id": e.candidate_id,
        "test_id": e.test_id,
        "event_type": e.event_type,
        "event_data": e.event_data,
        "created_at": e.created_at,
    }


def events_for_test(db: Session, test_id: str, principal: Principal) -> List[Dict[str, Any]]:
    test = _get_test(db, test_id)
    require_manage(principal, test.created_by)

    rows = (
        db.query(ProctoringEvent, User.name, User.email)
        .join(User, ProctoringEvent.candidate_id == User.id)
        .filter(ProctoringEvent.test_id == test_id)
        .order_by(ProctoringEvent.created_at.desc(), ProctoringEvent.id.desc())
        .all()
    )
    return [
        {**_event_dict(e), "candidate_name": name, "candidate_email": email}
        for e, name, email in rows
    ]


def _count_of(kind: str):
    return func.coalesce(func.sum(case((ProctoringEvent.event_type == kind, 1), else_=0)), 0)


def events_for_candidate(
    db: Session, test_id: str, candidate_id: str, principal: Principal
) -> Dict[str, Any]:
    test = _get_test(db, test_id)
    require_manage(principal, test.created_by)

    scope = (ProctoringEvent.test_id == test_id, ProctoringEvent.candidate_id == candidate_id)
    events = (
        db.query(ProctoringEvent)
        .filter(*scope)
        .order_by(ProctoringEvent.created_at.desc(), ProctoringEvent.id.desc())
        .all()
    )

    tab, copy, paste, fullscreen, total = (
        db.query(
            _count_of("tab_switch"),
            _count_of("copy_attempt"),
            _count_of("paste_attempt"),
            _count_of("fullscreen_exit"),
            func.count(ProctoringEvent.id),
        )
        .filter(*scope)
        .one()
    )
    return {
        "events": [_event_dict(e) for e in events],
        "summary": {
            "tab_switches": int(tab),
            "copy_attempts": int(copy),
            "paste_attempts": int(paste),
            "fullscreen_exits": int(fullscreen),
            "total_events": int(total),
        },
    }
