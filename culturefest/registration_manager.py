"""
Validation and storage of school registrations.

A registration is created once by a school and later edited by presenting its
id, which is the only credential the school holds. Two edits of the same
registration race with last-write-wins semantics.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from shared.events import registration_event
from shared.pubsub import EventPublisher

from .document_store import DocumentStore
from .errors import NotFoundError, ValidationError, UploadError
from .id_generator import generate_document_id
from .media_store import MediaStore
from .models import Registration, Participant

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r'^\+?\d{10,15}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

REQUIRED_FIELDS = [
    ('account_holder_name', 'Account holder name is required.'),
    ('bank_name', 'Bank name is required.'),
    ('account_number', 'Account number is required.'),
    ('confirm_account_number', 'Please confirm your account number.'),
    ('ifsc_code', 'IFSC code is required.'),
    ('contact_name', 'Contact name is required.'),
    ('designation', 'Designation is required.'),
    ('mobile_number', 'Mobile number is required.'),
]


@dataclass
class ParticipantEntry:
    name: str
    id_card_url: str = ''
    id_card_public_id: str = ''


@dataclass
class RegistrationSubmission:
    """A validated, normalized registration form."""
    school_name: str
    participants: List[ParticipantEntry]
    account_holder_name: str
    bank_name: str
    account_number: str
    ifsc_code: str
    contact_name: str
    designation: str
    mobile_number: str
    upi_id: str = ''
    email: str = ''


def _clean(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def normalize_mobile(value: str) -> str:
    return re.sub(r'[\s\-()]', '', _clean(value))


class RegistrationManager:
    """Create, update, look up and remove school registrations."""
    
    def __init__(
        self,
        store: DocumentStore = None,
        media: Optional[MediaStore] = None,
        events: EventPublisher = None
    ):
        self.store = store or DocumentStore()
        self.media = media
        self.events = events or EventPublisher()
    
    def validate(self, payload: dict) -> RegistrationSubmission:
        """
        Check and normalize a submitted form.
        
        Raises:
            ValidationError naming the first offending field.
        """
        payload = payload or {}
        
        school_name = _clean(payload.get('school_name'))
        if not school_name:
            raise ValidationError('school_name', 'required', 'School name is required.')
        
        raw_participants = payload.get('participants') or []
        if not isinstance(raw_participants, list) or not raw_participants:
            raise ValidationError('participants', 'noParticipants', 'At least one participant is required.')
        
        participants = []
        for index, entry in enumerate(raw_participants):
            entry = entry if isinstance(entry, dict) else {'name': entry}
            name = _clean(entry.get('name'))
            if not name:
                raise ValidationError(
                    f'participants.{index}.name', 'required', 'Participant name is required.'
                )
            participants.append(ParticipantEntry(
                name=name,
                id_card_url=_clean(entry.get('id_card_url')),
                id_card_public_id=_clean(entry.get('id_card_public_id'))
            ))
        
        for field_name, message in REQUIRED_FIELDS:
            if not _clean(payload.get(field_name)):
                raise ValidationError(field_name, 'required', message)
        
        account_number = _clean(payload.get('account_number'))
        if account_number != _clean(payload.get('confirm_account_number')):
            raise ValidationError(
                'confirm_account_number', 'accountNumberMismatch', 'Account numbers do not match.'
            )
        
        mobile = normalize_mobile(payload.get('mobile_number'))
        if not MOBILE_PATTERN.match(mobile):
            raise ValidationError(
                'mobile_number', 'invalidMobile', 'Mobile number must be at least 10 digits long.'
            )
        
        email = _clean(payload.get('email'))
        if email and not EMAIL_PATTERN.match(email):
            raise ValidationError('email', 'invalidEmail', 'Please enter a valid email address.')
        
        return RegistrationSubmission(
            school_name=school_name,
            participants=participants,
            account_holder_name=_clean(payload.get('account_holder_name')),
            bank_name=_clean(payload.get('bank_name')),
            account_number=account_number,
            ifsc_code=_clean(payload.get('ifsc_code')).upper(),
            contact_name=_clean(payload.get('contact_name')),
            designation=_clean(payload.get('designation')),
            mobile_number=mobile,
            upi_id=_clean(payload.get('upi_id')),
            email=email
        )
    
    def _apply(self, registration: Registration, submission: RegistrationSubmission):
        registration.school_name = submission.school_name
        registration.account_holder_name = submission.account_holder_name
        registration.bank_name = submission.bank_name
        registration.account_number = submission.account_number
        registration.ifsc_code = submission.ifsc_code
        registration.upi_id = submission.upi_id
        registration.contact_name = submission.contact_name
        registration.designation = submission.designation
        registration.mobile_number = submission.mobile_number
        registration.email = submission.email
        registration.participants = [
            Participant(
                position=position,
                name=p.name,
                id_card_url=p.id_card_url or None,
                id_card_public_id=p.id_card_public_id or None
            )
            for position, p in enumerate(submission.participants)
        ]
    
    def create(self, payload: dict) -> Registration:
        """Validate and store a new registration; its id must be shown to the submitter."""
        submission = self.validate(payload)
        
        registration = Registration(id=generate_document_id(), created_at=datetime.utcnow())
        self._apply(registration, submission)
        
        with self.store.transaction('registration create') as session:
            session.add(registration)
        
        logger.info(f"Registration {registration.id} created ({len(submission.participants)} participants)")
        self.events.publish(registration_event(registration.id, created=True))
        return registration
    
    def get(self, registration_id: str) -> Registration:
        registration = None
        if registration_id:
            registration = self.store.session.get(Registration, registration_id)
        if registration is None:
            raise NotFoundError('registration', registration_id or '')
        return registration
    
    def update(self, registration_id: str, payload: dict) -> Registration:
        """
        Overwrite every editable field of an existing registration.
        
        Raises:
            ValidationError for a bad form, NotFoundError for an unknown id.
            Nothing is written in either case.
        """
        registration = self.get(registration_id)
        submission = self.validate(payload)
        
        with self.store.transaction(f'registration update {registration_id}'):
            self._apply(registration, submission)
            registration.updated_at = datetime.utcnow()
        
        logger.info(f"Registration {registration.id} updated")
        self.events.publish(registration_event(registration.id, created=False))
        return registration
    
    def list_registrations(self) -> List[Registration]:
        return (
            self.store.session.query(Registration)
            .order_by(Registration.created_at.desc())
            .all()
        )
    
    def delete(self, registration_id: str) -> bool:
        """Remove a registration and, when a media store is configured, its ID card uploads."""
        registration = self.get(registration_id)
        public_ids = [p.id_card_public_id for p in registration.participants if p.id_card_public_id]
        
        with self.store.transaction(f'registration delete {registration_id}') as session:
            session.delete(registration)
        
        if self.media is not None:
            for public_id in public_ids:
                try:
                    self.media.delete(public_id)
                except UploadError as e:
                    # The record is gone; an orphaned file is only logged
                    logger.warning(f"Could not delete ID card {public_id}: {e}")
        
        logger.info(f"Registration {registration_id} deleted")
        return True
