from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from assesscore.database import Base
from assesscore.utils.storage import OptionList, utcnow

AUTO_GRADED_TYPES = frozenset({"multiple_choice", "true_false"})
FREE_FORM_TYPES = frozenset({"short_answer", "essay"})
QUESTION_TYPES = AUTO_GRADED_TYPES | FREE_FORM_TYPES


class Test(Base):
    __tablename__ = "tests"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    time_limit = Column(Integer, nullable=False, default=30)  # минуты

    created_by = Column(String, ForeignKey("users.id"), nullable=False)
    creator = relationship("User")

    # кто может проходить тест (роль Principal)
    audience_role = Column(String, nullable=False, default="candidate")

    # настройки прокторинга
    enable_proctoring = Column(Boolean, nullable=False, default=True)
    max_tab_switches = Column(Integer, nullable=False, default=3)
    allow_copy_paste = Column(Boolean, nullable=False, default=False)
    require_fullscreen = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    questions = relationship(
        "Question", back_populates="test", cascade="all, delete-orphan", order_by="Question.position"
    )

    def proctoring_settings(self) -> dict:
        return {
            "enable_proctoring": self.enable_proctoring,
            "max_tab_switches": self.max_tab_switches,
            "allow_copy_paste": self.allow_copy_paste,
            "require_fullscreen": self.require_fullscreen,
        }


class Question(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True, index=True)
    test_id = Column(String, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    test = relationship("Test", back_populates="questions")

    position = Column(Integer, nullable=False, default=0)
    question_text = Column(Text, nullable=False)
    question_type = Column(String, nullable=False)  # multiple_choice | true_false | short_answer | essay
    options = Column(OptionList, nullable=True)
    correct_answer = Column(String, nullable=True)

    @property
    def auto_graded(self) -> bool:
        return self.question_type in AUTO_GRADED_TYPES
