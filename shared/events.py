from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Judging
    SCORES_SUBMITTED = "scores.submitted"
    FEEDBACK_SUBMITTED = "feedback.submitted"
    
    # Organizer actions
    LOTTERY_COMMITTED = "lottery.committed"
    ROSTER_CHANGED = "roster.changed"
    COMPETITION_RESET = "competition.reset"
    
    # Registrations
    REGISTRATION_CREATED = "registration.created"
    REGISTRATION_UPDATED = "registration.updated"


@dataclass
class Event:
    type: EventType
    subject_id: str
    timestamp: str = None
    data: dict = None
    
    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}
    
    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "subject_id": self.subject_id,
            "timestamp": self.timestamp,
            "data": self.data
        }
    
    def to_json(self) -> str:
        return json.dumps(self.to_dict())
    
    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            type=EventType(data["type"]) if data["type"] in [e.value for e in EventType] else data["type"],
            subject_id=data["subject_id"],
            timestamp=data.get("timestamp"),
            data=data.get("data", {})
        )
    
    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls.from_dict(json.loads(json_str))


def scores_submitted_event(judge_id: str, school_id: str, categories_count: int) -> Event:
    return Event(
        type=EventType.SCORES_SUBMITTED,
        subject_id=school_id,
        data={
            "judge_id": judge_id,
            "categories_count": categories_count
        }
    )


def feedback_submitted_event(judge_id: str, school_id: str) -> Event:
    return Event(
        type=EventType.FEEDBACK_SUBMITTED,
        subject_id=school_id,
        data={"judge_id": judge_id}
    )


def lottery_committed_event(tier: str, schools_count: int) -> Event:
    return Event(
        type=EventType.LOTTERY_COMMITTED,
        subject_id=tier,
        data={"schools_count": schools_count}
    )


def roster_changed_event(collection: str, doc_id: str, action: str) -> Event:
    return Event(
        type=EventType.ROSTER_CHANGED,
        subject_id=doc_id,
        data={
            "collection": collection,
            "action": action
        }
    )


def competition_reset_event(removed: int) -> Event:
    return Event(
        type=EventType.COMPETITION_RESET,
        subject_id="competition",
        data={"removed": removed}
    )


def registration_event(registration_id: str, created: bool) -> Event:
    # Never carries bank or contact details
    return Event(
        type=EventType.REGISTRATION_CREATED if created else EventType.REGISTRATION_UPDATED,
        subject_id=registration_id
    )
