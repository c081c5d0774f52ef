from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import relationship

from assesscore.database import Base
from assesscore.utils.storage import utcnow


class Result(Base):
    """Итог прохождения. Существование строки = тест уже сдан."""
    __tablename__ = "results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    candidate = relationship("User")
    test_id = Column(String, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test = relationship("Test")

    total_questions = Column(Integer, nullable=False)  # только автопроверяемые
    correct_answers = Column(Integer, nullable=False)
    score = Column(Integer, nullable=False)
    remarks = Column(String, nullable=False)
    taken_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("candidate_id", "test_id", name="uq_result_candidate_test"),
    )

    def summary(self) -> dict:
        return {
            "score": self.score,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "remarks": self.remarks,
            "taken_at": self.taken_at,
        }


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(String, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    answer = Column(JSON(none_as_null=True), nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("candidate_id", "question_id", name="uq_answer_candidate_question"),
    )
