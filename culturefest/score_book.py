import logging
from collections import OrderedDict
from typing import Dict

from shared.events import scores_submitted_event, feedback_submitted_event
from shared.pubsub import EventPublisher

from .document_store import DocumentStore
from .errors import NotFoundError, ValidationError
from .id_generator import score_document_id, feedback_document_id
from .models import Judge
from .records import parse_score, parse_tier

logger = logging.getLogger(__name__)

NO_FEEDBACK = 'No feedback yet.'


class ScoreBook:
    """
    Judge-facing operations:
    - PIN check before scoring
    - Score submission (one upsert per category, committed as a batch)
    - Written feedback for schools reviewed without numbers
    """
    
    def __init__(self, store: DocumentStore = None, events: EventPublisher = None):
        self.store = store or DocumentStore()
        self.events = events or EventPublisher()
    
    def _require(self, collection: str, doc_id: str, entity: str):
        record = self.store.get(collection, doc_id) if doc_id else None
        if record is None:
            raise NotFoundError(entity, doc_id or '')
        return record
    
    def authenticate_judge(self, judge_id: str, pin: str = None) -> bool:
        """Judges without a PIN are let straight in."""
        judge = self.store.session.get(Judge, judge_id) if judge_id else None
        if judge is None:
            raise NotFoundError('judge', judge_id or '')
        return judge.check_pin(pin)
    
    def submit_scores(self, judge_id: str, school_id: str, scores: Dict[str, int]) -> int:
        """
        Record a judge's scores for one school.
        
        Re-submitting overwrites the previous value for each
        (judge, school, category) key.
        
        Returns:
            Number of category scores written
        """
        self._require('judges', judge_id, 'judge')
        self._require('schools', school_id, 'school')
        
        if not isinstance(scores, dict) or not scores:
            raise ValidationError('scores', 'required', 'At least one category score is required')
        
        writes = []
        for category_id, value in scores.items():
            self._require('categories', category_id, 'category')
            try:
                score = parse_score(value)
            except ValidationError as e:
                raise ValidationError(f'scores.{category_id}', e.code, e.message) from e
            writes.append((
                'scores',
                score_document_id(judge_id, school_id, category_id),
                {
                    'judge_id': judge_id,
                    'school_id': school_id,
                    'category_id': category_id,
                    'score': score,
                }
            ))
        
        written = self.store.batch_write(writes)
        logger.info(f"Judge {judge_id} submitted {written} scores for school {school_id}")
        self.events.publish(scores_submitted_event(judge_id, school_id, written))
        return written
    
    def judge_scoresheet(self, judge_id: str) -> Dict[str, Dict[str, int]]:
        """Every school x category for one judge, 0 where nothing was submitted yet."""
        self._require('judges', judge_id, 'judge')
        
        submitted = {
            (s.school_id, s.category_id): s.score
            for s in self.store.read_all('scores', judge_id=judge_id)
        }
        categories = self.store.read_all('categories')
        
        sheet = {}
        for school in self.store.read_all('schools'):
            sheet[school.id] = {
                c.id: submitted.get((school.id, c.id), 0) for c in categories
            }
        return sheet
    
    def submit_feedback(self, judge_id: str, school_id: str, text: str) -> str:
        self._require('judges', judge_id, 'judge')
        self._require('schools', school_id, 'school')
        
        text = (text or '').strip()
        if not text:
            raise ValidationError('feedback', 'required', 'Feedback cannot be empty')
        
        doc_id = feedback_document_id(judge_id, school_id)
        self.store.upsert('feedbacks', doc_id, {
            'judge_id': judge_id,
            'school_id': school_id,
            'feedback': text,
        })
        self.events.publish(feedback_submitted_event(judge_id, school_id))
        return doc_id
    
    def feedback_for_tier(self, tier: str = 'Sub-Junior') -> "OrderedDict[str, dict]":
        """school_id -> {'school', 'feedback': [{judge_id, judge_name, feedback}]} for every judge."""
        tier = parse_tier(tier)
        snapshot = self.store.snapshot()
        
        given = {(f.school_id, f.judge_id): f.feedback for f in snapshot.feedbacks}
        
        result = OrderedDict()
        schools = sorted((s for s in snapshot.schools if s.tier == tier), key=lambda s: s.name.casefold())
        for school in schools:
            result[school.id] = {
                'school': school,
                'feedback': [
                    {
                        'judge_id': judge.id,
                        'judge_name': judge.name,
                        'feedback': given.get((school.id, judge.id), NO_FEEDBACK),
                    }
                    for judge in snapshot.judges
                ],
            }
        return result
