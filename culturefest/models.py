from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from cryptography.fernet import Fernet, InvalidToken
from werkzeug.security import generate_password_hash, check_password_hash
import os
import base64
import hashlib

from .id_generator import generate_document_id

db = SQLAlchemy()

TIERS = ('Senior', 'Junior', 'Sub-Junior')
INTERSCHOOL_SETTINGS_ID = 'interschoolCulturalSettings'
HOME_CONTENT_ID = 'homePageContent'


def get_encryption_key():
    """Derive the Fernet key from SECRET_KEY."""
    secret = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-prod')
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


def encrypt_value(value: str) -> str:
    """Encrypt a sensitive value (bank account numbers) for storage."""
    f = Fernet(get_encryption_key())
    return f.encrypt(value.encode()).decode()


def decrypt_value(encrypted: str) -> str:
    f = Fernet(get_encryption_key())
    try:
        return f.decrypt(encrypted.encode()).decode()
    except InvalidToken:
        # Written under a different SECRET_KEY
        return ''


class Organizer(UserMixin, db.Model):
    __tablename__ = 'organizers'
    
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    
    def get_id(self):
        """Return the organizer ID for Flask-Login session management."""
        return str(self.id)
    
    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)
    
    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)
    
    @staticmethod
    def create_organizer(username: str, password: str) -> 'Organizer':
        organizer = Organizer(username=username)
        organizer.set_password(password)
        return organizer
    
    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class School(db.Model):
    __tablename__ = 'schools'
    
    id = db.Column(db.String(50), primary_key=True, default=generate_document_id)
    name = db.Column(db.String(200), nullable=False)
    tier = db.Column(db.String(20), nullable=False, index=True)  # Senior, Junior, Sub-Junior
    serial_number = db.Column(db.Integer, nullable=True)  # Performance order within tier
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'tier': self.tier,
            'serial_number': self.serial_number,
        }


class Judge(db.Model):
    __tablename__ = 'judges'
    
    id = db.Column(db.String(50), primary_key=True, default=generate_document_id)
    name = db.Column(db.String(100), nullable=False)
    mobile = db.Column(db.String(20), nullable=False, default='')
    pin_hash = db.Column(db.String(256), nullable=True)  # No PIN = open access
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    
    @property
    def has_pin(self) -> bool:
        return bool(self.pin_hash)
    
    def set_pin(self, pin: str):
        self.pin_hash = generate_password_hash(pin) if pin else None
    
    def check_pin(self, pin: str) -> bool:
        if not self.pin_hash:
            return True
        return check_password_hash(self.pin_hash, pin or '')
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'mobile': self.mobile,
            'has_pin': self.has_pin,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class CompetitionCategory(db.Model):
    __tablename__ = 'categories'
    
    id = db.Column(db.String(50), primary_key=True, default=generate_document_id)
    name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
        }


class Score(db.Model):
    __tablename__ = 'scores'
    
    # "{judge_id}_{school_id}_{category_id}"
    id = db.Column(db.String(160), primary_key=True)
    judge_id = db.Column(db.String(50), nullable=False, index=True)
    school_id = db.Column(db.String(50), nullable=False, index=True)
    category_id = db.Column(db.String(50), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        db.UniqueConstraint('judge_id', 'school_id', 'category_id', name='unique_score_per_key'),
    )
    
    def to_dict(self):
        return {
            'judge_id': self.judge_id,
            'school_id': self.school_id,
            'category_id': self.category_id,
            'score': self.score,
        }


class Feedback(db.Model):
    __tablename__ = 'feedbacks'
    
    # "{judge_id}_{school_id}"
    id = db.Column(db.String(110), primary_key=True)
    judge_id = db.Column(db.String(50), nullable=False, index=True)
    school_id = db.Column(db.String(50), nullable=False, index=True)
    feedback = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    __table_args__ = (
        db.UniqueConstraint('judge_id', 'school_id', name='unique_feedback_per_key'),
    )
    
    def to_dict(self):
        return {
            'judge_id': self.judge_id,
            'school_id': self.school_id,
            'feedback': self.feedback,
        }


class Registration(db.Model):
    __tablename__ = 'registrations'
    
    id = db.Column(db.String(50), primary_key=True, default=generate_document_id)
    school_name = db.Column(db.String(200), nullable=False)
    
    # Bank details
    account_holder_name = db.Column(db.String(200), nullable=False)
    bank_name = db.Column(db.String(200), nullable=False)
    account_number_encrypted = db.Column(db.String(500), nullable=False)
    ifsc_code = db.Column(db.String(20), nullable=False)
    upi_id = db.Column(db.String(100), nullable=False, default='')
    
    # Contact person
    contact_name = db.Column(db.String(200), nullable=False)
    designation = db.Column(db.String(100), nullable=False)
    mobile_number = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(200), nullable=False, default='')
    
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True)
    
    participants = db.relationship(
        'Participant',
        back_populates='registration',
        cascade='all, delete-orphan',
        order_by='Participant.position'
    )
    
    @property
    def account_number(self) -> str:
        return decrypt_value(self.account_number_encrypted) if self.account_number_encrypted else ''
    
    @account_number.setter
    def account_number(self, value: str):
        self.account_number_encrypted = encrypt_value(value)
    
    def to_dict(self):
        return {
            'id': self.id,
            'school_name': self.school_name,
            'participants': [p.to_dict() for p in self.participants],
            'bank_details': {
                'account_holder_name': self.account_holder_name,
                'bank_name': self.bank_name,
                'account_number': self.account_number,
                'ifsc_code': self.ifsc_code,
                'upi_id': self.upi_id,
            },
            'contact_person': {
                'contact_name': self.contact_name,
                'designation': self.designation,
                'mobile_number': self.mobile_number,
                'email': self.email,
            },
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Participant(db.Model):
    __tablename__ = 'participants'
    
    id = db.Column(db.Integer, primary_key=True)
    registration_id = db.Column(db.String(50), db.ForeignKey('registrations.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(200), nullable=False)
    id_card_url = db.Column(db.String(500), nullable=True)
    id_card_public_id = db.Column(db.String(300), nullable=True)
    
    registration = db.relationship('Registration', back_populates='participants')
    
    def to_dict(self):
        return {
            'name': self.name,
            'id_card_url': self.id_card_url or '',
            'id_card_public_id': self.id_card_public_id or '',
        }


class InterschoolSettings(db.Model):
    __tablename__ = 'interschool_settings'
    
    id = db.Column(db.String(50), primary_key=True, default=INTERSCHOOL_SETTINGS_ID)
    circular_url = db.Column(db.String(500), nullable=True)
    circular_public_id = db.Column(db.String(300), nullable=True)
    circular_name = db.Column(db.String(200), nullable=True)
    remarks = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    def to_dict(self):
        return {
            'circular_url': self.circular_url,
            'circular_public_id': self.circular_public_id,
            'circular_name': self.circular_name,
            'remarks': self.remarks or '',
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class HomePageContent(db.Model):
    __tablename__ = 'home_page_content'
    
    id = db.Column(db.String(50), primary_key=True, default=HOME_CONTENT_ID)
    image_url = db.Column(db.String(500), nullable=True)
    image_public_id = db.Column(db.String(300), nullable=True)
    note = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    def to_dict(self):
        return {
            'image_url': self.image_url,
            'note': self.note or '',
        }
