from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assesscore.config import Settings, get_settings
from assesscore.database import get_db
from assesscore.schemas.invitation import (
    AcceptInvitationResponse,
    SendInvitationRequest,
    SendInvitationResponse,
    VerifyAccessRequest,
)
from assesscore.utils import invitations
from assesscore.utils.auth import Principal, get_current_user
from assesscore.utils.notifications import Notifier, get_notifier

router = APIRouter(prefix="/api/invitations", tags=["Invitations"])


@router.post("/send-invitation", response_model=SendInvitationResponse)
def send_invitation(
    payload: SendInvitationRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    notifier: Notifier = Depends(get_notifier),
    user: Principal = Depends(get_current_user),
):
    """
    Одно приглашение на кандидата. Ответ содержит результат по каждому адресу:
    приглашение, которое не удалось доставить, остаётся в базе.
    """
    results = invitations.issue_many(
        db, settings, notifier,
        test_id=payload.test_id,
        candidates=[c.model_dump() for c in payload.candidates],
        issuer=user,
    )
    return {"success": True, "message": "Invitations processed", "results": results}


@router.get("/test/{test_id}/invitations")
def test_invitations(test_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", "invitations": invitations.list_for_test(db, test_id, user)}


@router.post("/send-reminder/{invitation_id}")
def send_reminder(
    invitation_id: str,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: Principal = Depends(get_current_user),
):
    invitations.send_reminder(db, notifier, invitation_id, user)
    return {"success": True, "message": "Reminder sent successfully"}


@router.delete("/invitation/{invitation_id}")
def cancel_invitation(invitation_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    invitations.cancel(db, invitation_id, user)
    return {"success": True, "message": "Invitation cancelled"}


@router.post("/verify-access")
def verify_access(payload: VerifyAccessRequest, db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    message = invitations.verify_access(db, payload.invitation_token, payload.test_id, user)
    return {"success": True, "message": message}


@router.get("/accept/{token}", response_model=AcceptInvitationResponse)
def accept_invitation(token: str, db: Session = Depends(get_db)):
    """Публичный маршрут: страница приглашения открывается до входа."""
    return {"success": True, "message": "Invitation accepted", "invitation": invitations.resolve(db, token)}
