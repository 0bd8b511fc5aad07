"""
Immutable snapshots of competition data.

Rows read from the database are parsed into these records before any
aggregation or lottery logic sees them, so the core works on explicit,
validated shapes instead of ORM objects.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .errors import ValidationError
from .models import TIERS

MIN_SCORE = 0
MAX_SCORE = 10


def parse_tier(value) -> str:
    if value not in TIERS:
        raise ValidationError('tier', 'invalidTier', f"Tier must be one of: {', '.join(TIERS)}")
    return value


def parse_score(value) -> int:
    # bool is an int subclass; a checkbox value is not a score
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError('score', 'scoreNotInteger', 'Score must be a whole number')
    if value < MIN_SCORE or value > MAX_SCORE:
        raise ValidationError(
            'score', 'scoreOutOfRange',
            f"Score must be between {MIN_SCORE} and {MAX_SCORE}"
        )
    return value


def clamp_score(value) -> int:
    """Stored scores are read back inside 0..10 whatever was written."""
    return min(max(int(value or 0), MIN_SCORE), MAX_SCORE)


@dataclass(frozen=True)
class SchoolRecord:
    id: str
    name: str
    tier: str
    serial_number: Optional[int] = None
    
    @classmethod
    def from_row(cls, row) -> "SchoolRecord":
        return cls(
            id=row.id,
            name=row.name,
            tier=parse_tier(row.tier),
            serial_number=row.serial_number
        )
    
    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'tier': self.tier,
            'serial_number': self.serial_number,
        }


@dataclass(frozen=True)
class JudgeRecord:
    id: str
    name: str
    mobile: str = ''
    
    @classmethod
    def from_row(cls, row) -> "JudgeRecord":
        return cls(id=row.id, name=row.name, mobile=row.mobile or '')


@dataclass(frozen=True)
class CategoryRecord:
    id: str
    name: str
    
    @classmethod
    def from_row(cls, row) -> "CategoryRecord":
        return cls(id=row.id, name=row.name)


@dataclass(frozen=True)
class ScoreRecord:
    judge_id: str
    school_id: str
    category_id: str
    score: int
    
    @classmethod
    def from_row(cls, row) -> "ScoreRecord":
        return cls(
            judge_id=row.judge_id,
            school_id=row.school_id,
            category_id=row.category_id,
            score=clamp_score(row.score)
        )


@dataclass(frozen=True)
class FeedbackRecord:
    judge_id: str
    school_id: str
    feedback: str
    
    @classmethod
    def from_row(cls, row) -> "FeedbackRecord":
        return cls(judge_id=row.judge_id, school_id=row.school_id, feedback=row.feedback or '')


@dataclass(frozen=True)
class CompetitionSnapshot:
    """Everything the dashboard needs, read in one pass."""
    schools: Tuple[SchoolRecord, ...] = field(default_factory=tuple)
    judges: Tuple[JudgeRecord, ...] = field(default_factory=tuple)
    categories: Tuple[CategoryRecord, ...] = field(default_factory=tuple)
    scores: Tuple[ScoreRecord, ...] = field(default_factory=tuple)
    feedbacks: Tuple[FeedbackRecord, ...] = field(default_factory=tuple)
    
    @property
    def judge_count(self) -> int:
        return len(self.judges)
