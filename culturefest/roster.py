import logging
from typing import Iterable, List, Optional, Tuple

from shared.events import roster_changed_event, competition_reset_event
from shared.pubsub import EventPublisher

from .document_store import DocumentStore
from .errors import NotFoundError, ValidationError
from .id_generator import generate_document_id, generate_judge_pin, is_valid_pin
from .models import TIERS, School, Judge, CompetitionCategory
from .records import parse_tier

logger = logging.getLogger(__name__)


def _required(value, field: str, message: str) -> str:
    value = (value or '').strip() if isinstance(value, str) else ''
    if not value:
        raise ValidationError(field, 'required', message)
    return value


class CompetitionRoster:
    """
    Organizer CRUD for schools, judges and competition categories,
    plus the end-of-event reset.
    """
    
    def __init__(self, store: DocumentStore = None, events: EventPublisher = None):
        self.store = store or DocumentStore()
        self.events = events or EventPublisher()
    
    def _changed(self, collection: str, doc_id: str, action: str):
        self.events.publish(roster_changed_event(collection, doc_id, action))
    
    # ==================== Schools ====================
    
    def get_school(self, school_id: str) -> Optional[School]:
        return self.store.session.get(School, school_id) if school_id else None
    
    def list_schools(self, tier: str = None) -> List[School]:
        query = School.query
        if tier:
            query = query.filter_by(tier=parse_tier(tier))
        schools = query.all()
        # Tier order, then performance order, then name
        return sorted(schools, key=lambda s: (
            TIERS.index(s.tier) if s.tier in TIERS else len(TIERS),
            s.serial_number is None,
            s.serial_number or 0,
            s.name.casefold()
        ))
    
    def create_school(self, name: str, tier: str) -> School:
        name = _required(name, 'name', 'School name is required')
        tier = parse_tier(tier)
        
        school_id = generate_document_id()
        school = self.store.upsert('schools', school_id, {'name': name, 'tier': tier})
        self._changed('schools', school_id, 'created')
        return school
    
    def update_school(self, school_id: str, name: str, tier: str) -> School:
        if self.get_school(school_id) is None:
            raise NotFoundError('school', school_id)
        name = _required(name, 'name', 'School name is required')
        tier = parse_tier(tier)
        
        school = self.store.upsert('schools', school_id, {'name': name, 'tier': tier})
        self._changed('schools', school_id, 'updated')
        return school
    
    def delete_school(self, school_id: str) -> Tuple[bool, str]:
        """Delete a school together with its scores and feedback."""
        if self.get_school(school_id) is None:
            return False, "School not found"
        
        self.store.batch_delete([
            ('scores', {'school_id': school_id}),
            ('feedbacks', {'school_id': school_id}),
            ('schools', {'id': school_id}),
        ])
        self._changed('schools', school_id, 'deleted')
        return True, "School deleted"
    
    def import_schools(self, rows: Iterable[dict]) -> int:
        """
        Add schools from spreadsheet rows ({'name', 'tier'}).
        
        Every row is checked first; a single bad row rejects the whole import.
        """
        rows = list(rows)
        invalid = [
            row for row in rows
            if not (row.get('name') or '').strip() or row.get('tier') not in TIERS
        ]
        if invalid:
            raise ValidationError(
                'file', 'invalidRows',
                f"Found {len(invalid)} invalid rows. Please ensure 'School Name' is filled and "
                f"'Category' is one of: {', '.join(TIERS)}."
            )
        if not rows:
            raise ValidationError('file', 'empty', 'The uploaded sheet has no schools')
        
        writes = [
            ('schools', generate_document_id(), {'name': row['name'].strip(), 'tier': row['tier']})
            for row in rows
        ]
        count = self.store.batch_write(writes)
        logger.info(f"Imported {count} schools")
        self._changed('schools', 'import', 'created')
        return count
    
    # ==================== Judges ====================
    
    def get_judge(self, judge_id: str) -> Optional[Judge]:
        return self.store.session.get(Judge, judge_id) if judge_id else None
    
    def list_judges(self) -> List[Judge]:
        return Judge.query.order_by(Judge.created_at, Judge.name).all()
    
    def create_judge(self, name: str, mobile: str = '', pin: str = None) -> Tuple[Judge, str]:
        """
        Add a judge. A PIN is generated when none is given.
        
        Returns:
            (judge, pin) - the plain PIN is only available here, to share with the judge
        """
        name = _required(name, 'name', 'Judge name is required')
        pin = pin or generate_judge_pin()
        if not is_valid_pin(pin):
            raise ValidationError('pin', 'invalidPin', 'PIN must be exactly 4 digits')
        
        judge = Judge(id=generate_document_id(), name=name, mobile=(mobile or '').strip())
        judge.set_pin(pin)
        with self.store.transaction('judge create') as session:
            session.add(judge)
        
        self._changed('judges', judge.id, 'created')
        return judge, pin
    
    def update_judge(self, judge_id: str, name: str, mobile: str = '', pin: str = None) -> Judge:
        """Update details; the PIN only changes when a new one is given."""
        judge = self.get_judge(judge_id)
        if judge is None:
            raise NotFoundError('judge', judge_id)
        name = _required(name, 'name', 'Judge name is required')
        if pin and not is_valid_pin(pin):
            raise ValidationError('pin', 'invalidPin', 'PIN must be exactly 4 digits')
        
        with self.store.transaction(f'judge update {judge_id}'):
            judge.name = name
            judge.mobile = (mobile or '').strip()
            if pin:
                judge.set_pin(pin)
        
        self._changed('judges', judge_id, 'updated')
        return judge
    
    def delete_judge(self, judge_id: str) -> Tuple[bool, str]:
        if self.get_judge(judge_id) is None:
            return False, "Judge not found"
        
        self.store.delete('judges', judge_id)
        self._changed('judges', judge_id, 'deleted')
        return True, "Judge deleted"
    
    # ==================== Categories ====================
    
    def list_categories(self) -> List[CompetitionCategory]:
        return CompetitionCategory.query.order_by(CompetitionCategory.created_at, CompetitionCategory.name).all()
    
    def create_category(self, name: str) -> CompetitionCategory:
        name = _required(name, 'name', 'Category name is required')
        category_id = generate_document_id()
        category = self.store.upsert('categories', category_id, {'name': name})
        self._changed('categories', category_id, 'created')
        return category
    
    def update_category(self, category_id: str, name: str) -> CompetitionCategory:
        if not category_id or not self.store.exists('categories', category_id):
            raise NotFoundError('category', category_id)
        name = _required(name, 'name', 'Category name is required')
        category = self.store.upsert('categories', category_id, {'name': name})
        self._changed('categories', category_id, 'updated')
        return category
    
    def delete_category(self, category_id: str) -> Tuple[bool, str]:
        if not category_id or not self.store.exists('categories', category_id):
            return False, "Category not found"
        
        self.store.batch_delete([
            ('scores', {'category_id': category_id}),
            ('categories', {'id': category_id}),
        ])
        self._changed('categories', category_id, 'deleted')
        return True, "Category deleted"
    
    # ==================== Reset ====================
    
    def reset_competition(self) -> int:
        """Start a new competition: remove all schools, scores and feedback in one batch."""
        removed = self.store.batch_delete([
            ('scores', {}),
            ('feedbacks', {}),
            ('schools', {}),
        ])
        logger.info(f"Competition reset, {removed} documents removed")
        self.events.publish(competition_reset_event(removed))
        return removed
