"""
Document-style persistence facade over the SQLAlchemy models.

Collections are addressed by name and documents by string id, mirroring the
read-all / upsert / batch-write contract the rest of the app relies on.
Every write runs in a single transaction: it either commits completely or
rolls back and raises PersistenceError.
"""
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceError
from .models import db, School, Judge, CompetitionCategory, Score, Feedback
from .records import (
    SchoolRecord, JudgeRecord, CategoryRecord, ScoreRecord, FeedbackRecord,
    CompetitionSnapshot, parse_score, parse_tier
)

logger = logging.getLogger(__name__)

COLLECTIONS = {
    'schools': (School, SchoolRecord),
    'judges': (Judge, JudgeRecord),
    'categories': (CompetitionCategory, CategoryRecord),
    'scores': (Score, ScoreRecord),
    'feedbacks': (Feedback, FeedbackRecord),
}

Write = Tuple[str, str, Dict]
Deletion = Tuple[str, Dict]


class DocumentStore:
    """
    Persistence collaborator for the competition core:
    - read_all / get: parse rows into immutable records
    - upsert: merge or replace a single document
    - batch_write / batch_delete: all-or-nothing multi-document changes
    """
    
    def __init__(self, session=None):
        self._session = session
    
    @property
    def session(self):
        return self._session or db.session
    
    def _resolve(self, collection: str):
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        return COLLECTIONS[collection]
    
    @contextmanager
    def transaction(self, operation: str):
        """Commit on success; roll back and raise PersistenceError on database failure."""
        try:
            yield self.session
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"{operation} failed, rolled back: {e}")
            raise PersistenceError(operation, str(e)) from e
    
    # ==================== Reads ====================
    
    def read_all(self, collection: str, **filters) -> List:
        model, record_cls = self._resolve(collection)
        try:
            query = self.session.query(model).filter_by(**filters)
            rows = query.all()
        except SQLAlchemyError as e:
            logger.error(f"read_all({collection}) failed: {e}")
            raise PersistenceError(f"read {collection}", str(e)) from e
        return [record_cls.from_row(row) for row in rows]
    
    def _load(self, collection: str, model, doc_id: str):
        try:
            return self.session.get(model, doc_id)
        except SQLAlchemyError as e:
            logger.error(f"get({collection}/{doc_id}) failed: {e}")
            raise PersistenceError(f"read {collection}/{doc_id}", str(e)) from e
    
    def get(self, collection: str, doc_id: str):
        model, record_cls = self._resolve(collection)
        row = self._load(collection, model, doc_id)
        return record_cls.from_row(row) if row else None
    
    def exists(self, collection: str, doc_id: str) -> bool:
        model, _ = self._resolve(collection)
        return self._load(collection, model, doc_id) is not None
    
    def snapshot(self) -> CompetitionSnapshot:
        """Read every collection the dashboard needs."""
        return CompetitionSnapshot(
            schools=tuple(self.read_all('schools')),
            judges=tuple(self.read_all('judges')),
            categories=tuple(self.read_all('categories')),
            scores=tuple(self.read_all('scores')),
            feedbacks=tuple(self.read_all('feedbacks')),
        )
    
    # ==================== Writes ====================
    
    def _check_fields(self, collection: str, model, fields: Dict):
        columns = set(model.__table__.columns.keys())
        unknown = set(fields) - columns
        if unknown:
            raise ValueError(f"Unknown fields for {collection}: {', '.join(sorted(unknown))}")
        if 'score' in fields and collection == 'scores':
            parse_score(fields['score'])
        if 'tier' in fields and collection == 'schools':
            parse_tier(fields['tier'])
    
    def _apply(self, collection: str, doc_id: str, fields: Dict, merge: bool = True):
        model, _ = self._resolve(collection)
        self._check_fields(collection, model, fields)
        
        row = self.session.get(model, doc_id)
        if row is not None and not merge:
            self.session.delete(row)
            self.session.flush()
            row = None
        
        if row is None:
            values = {k: v for k, v in fields.items() if k != 'id'}
            row = model(id=doc_id, **values)
            self.session.add(row)
        else:
            for key, value in fields.items():
                if key != 'id':
                    setattr(row, key, value)
        return row
    
    def upsert(self, collection: str, doc_id: str, fields: Dict, merge: bool = True):
        """Write one document. merge=False replaces it instead of updating fields."""
        with self.transaction(f"upsert {collection}/{doc_id}"):
            row = self._apply(collection, doc_id, fields, merge=merge)
        return row
    
    def batch_write(self, writes: Sequence[Write]) -> int:
        """Merge-write several documents atomically. Returns the number written."""
        if not writes:
            return 0
        
        # Validate everything before touching the session
        for collection, _, fields in writes:
            model, _ = self._resolve(collection)
            self._check_fields(collection, model, fields)
        
        with self.transaction(f"batch write ({len(writes)} documents)"):
            for collection, doc_id, fields in writes:
                self._apply(collection, doc_id, fields, merge=True)
        
        logger.debug(f"Batch wrote {len(writes)} documents")
        return len(writes)
    
    def delete(self, collection: str, doc_id: str) -> bool:
        model, _ = self._resolve(collection)
        with self.transaction(f"delete {collection}/{doc_id}"):
            row = self.session.get(model, doc_id)
            if row is None:
                return False
            self.session.delete(row)
        return True
    
    def batch_delete(self, deletions: Iterable[Deletion]) -> int:
        """
        Delete documents matching each (collection, filters) pair atomically.
        Empty filters delete the whole collection.
        """
        deletions = list(deletions)
        for collection, _ in deletions:
            self._resolve(collection)
        
        removed = 0
        with self.transaction(f"batch delete ({len(deletions)} selections)"):
            for collection, filters in deletions:
                model, _ = self._resolve(collection)
                query = self.session.query(model).filter_by(**filters)
                removed += query.delete(synchronize_session=False)
        return removed
