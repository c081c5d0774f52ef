from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import relationship

from assesscore.database import Base


class CandidateSession(Base):
    """
    Прохождение теста кандидатом. Отсутствие строки = not_started.
    Одна строка на пару (candidate, test): гарантирует БД, а не код.
    """
    __tablename__ = "candidate_tests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    test_id = Column(String, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test = relationship("Test")

    status = Column(String, nullable=False, default="in_progress")  # in_progress | completed

    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    saved_answers = Column(JSON(none_as_null=True), nullable=True)
    time_remaining = Column(Integer, nullable=True)  # секунды
    score = Column(Integer, nullable=True)

    tab_switch_count = Column(Integer, nullable=False, default=0)
    violation_count = Column(Integer, nullable=False, default=0)
    flagged = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("candidate_id", "test_id", name="uq_candidate_test"),
    )
