"""
Grade events handed to the notification subsystem. Delivery happens elsewhere;
this module only builds payloads and passes them to subscribers.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

GRADE_OVERRIDE_APPROVED = "grade_override_approved"
GRADES_PUBLISHED = "grades_published"


class GradeEvent(BaseModel):
    type: str
    school_id: int
    subject_id: int
    student_id: Optional[int] = None
    grade: Optional[str] = None
    assessment_id: Optional[int] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EventPublisher:
    def __init__(self) -> None:
        self._subscribers: List[Callable[[GradeEvent], None]] = []

    def subscribe(self, callback: Callable[[GradeEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, event: GradeEvent) -> None:
        logger.info(
            "Grade event %s school=%s subject=%s student=%s",
            event.type,
            event.school_id,
            event.subject_id,
            event.student_id,
        )
        for callback in self._subscribers:
            callback(event)


event_publisher = EventPublisher()


def get_event_publisher() -> EventPublisher:
    return event_publisher
