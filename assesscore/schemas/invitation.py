from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class CandidateIn(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class SendInvitationRequest(BaseModel):
    test_id: str = Field(alias="testId")
    candidates: List[CandidateIn] = Field(min_length=1)

    class Config:
        populate_by_name = True


class InvitationResult(BaseModel):
    email: str
    success: bool
    invitation_id: Optional[str] = None
    error: Optional[str] = None


class VerifyAccessRequest(BaseModel):
    invitation_token: Optional[str] = Field(default=None, alias="invitationToken")
    test_id: str = Field(alias="testId")

    class Config:
        populate_by_name = True


class InvitationView(BaseModel):
    id: str
    test_id: str
    test_title: str
    test_description: Optional[str] = None
    time_limit: int
    question_count: int
    candidate_name: Optional[str] = None
    candidate_email: str
    expires_at: datetime
    status: str


class SendInvitationResponse(BaseModel):
    success: bool
    message: str
    results: List[InvitationResult]


class AcceptInvitationResponse(BaseModel):
    success: bool
    message: str
    invitation: InvitationView
