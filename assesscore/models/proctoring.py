from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from assesscore.database import Base
from assesscore.utils.storage import utcnow

COUNTED_EVENTS = frozenset({"copy_attempt", "paste_attempt", "fullscreen_exit"})


class ProctoringEvent(Base):
    """Журнал событий прокторинга: только вставка."""
    __tablename__ = "proctoring_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    candidate = relationship("User")
    test_id = Column(String, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    event_data = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
