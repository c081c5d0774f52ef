from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from assesscore.database import get_db
from assesscore.schemas.session import SaveProgressRequest, SubmitAnswersRequest, SubmitResponse
from assesscore.utils import scoring, session_tracker
from assesscore.utils.auth import Principal, get_current_user
from assesscore.utils.notifications import Notifier, get_notifier

router = APIRouter(prefix="/api/tests", tags=["Session"])


@router.get("/{test_id}/take")
def take_test(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    test = session_tracker.get_test_for_taking(db, user, test_id)
    return {"success": True, "message": "OK", "test": test}


@router.get("/{test_id}/status")
def test_status(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", **session_tracker.get_status(db, user.id, test_id)}


@router.post("/{test_id}/save-progress")
def save_progress(
    test_id: str,
    payload: SaveProgressRequest,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_user),
):
    saved = session_tracker.save_progress(db, user.id, test_id, payload.answers, payload.time_remaining)
    return {"success": True, "message": "Progress saved", **saved}


@router.post("/{test_id}/submit", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
def submit_test(
    test_id: str,
    payload: SubmitAnswersRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: Principal = Depends(get_current_user),
):
    submission = scoring.submit(db, notifier, user, test_id, payload.answers)
    return {"success": True, "message": "Test submitted successfully", "submission": submission}


@router.get("/{test_id}/results")
def test_results(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", "results": scoring.results_for_test(db, test_id, user)}
