from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class LogEventRequest(BaseModel):
    test_id: str = Field(min_length=1)
    event_type: str = Field(min_length=1, max_length=64)
    event_data: Optional[Dict[str, Any]] = None


class ProctoringCounters(BaseModel):
    tab_switch_count: int
    violation_count: int
    flagged: bool


class LogEventResponse(ProctoringCounters):
    success: bool
    message: str
