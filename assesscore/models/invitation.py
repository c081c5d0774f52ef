from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from assesscore.database import Base
from assesscore.utils.storage import utcnow

INVITATION_STATUSES = ("pending", "accepted", "completed", "expired")


class Invitation(Base):
    __tablename__ = "test_invitations"

    id = Column(String, primary_key=True, index=True)
    test_id = Column(String, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test = relationship("Test")

    candidate_email = Column(String, nullable=False, index=True)
    candidate_name = Column(String, nullable=True)

    invited_by = Column(String, ForeignKey("users.id"), nullable=False)
    inviter = relationship("User")

    # единственная внешняя ссылка на приглашение; наружу как id не отдаётся
    token = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, nullable=False, default="pending")

    invited_at = Column(DateTime, default=utcnow, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    reminder_count = Column(Integer, nullable=False, default=0)
    last_reminded_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in INVITATION_STATUSES) + ")",
            name="ck_invitation_status",
        ),
    )
