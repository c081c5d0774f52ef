from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assesscore.database import get_db
from assesscore.schemas.proctoring import LogEventRequest, LogEventResponse
from assesscore.utils import proctoring
from assesscore.utils.auth import Principal, get_current_user

router = APIRouter(prefix="/api/proctoring", tags=["Proctoring"])


@router.post("/log", response_model=LogEventResponse)
def log_event(payload: LogEventRequest, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    # кандидат -- всегда текущий пользователь, id из тела запроса не принимаем
    counters = proctoring.log_event(db, user.id, payload.test_id, payload.event_type, payload.event_data)
    return {"success": True, "message": "Event logged", **counters}


@router.get("/settings/{test_id}")
def test_settings(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", "settings": proctoring.get_settings(db, test_id)}


@router.get("/test/{test_id}/events")
def test_events(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", "events": proctoring.events_for_test(db, test_id, user)}


@router.get("/test/{test_id}/candidate/{candidate_id}")
def candidate_events(
    test_id: str,
    candidate_id: str,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    data = proctoring.events_for_candidate(db, test_id, candidate_id, user)
    return {"success": True, "message": "OK", **data}
