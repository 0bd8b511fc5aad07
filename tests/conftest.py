"""
Pytest configuration and fixtures for competition service tests.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'

from culturefest.app import create_app
from culturefest.models import db, School, Judge, CompetitionCategory, Organizer
from culturefest.document_store import DocumentStore
from culturefest.id_generator import score_document_id


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')
    
    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create database session for testing."""
    with app.app_context():
        # Clear all tables before each test
        db.session.remove()
        
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        
        yield db.session
        
        db.session.rollback()


@pytest.fixture
def store(app, db_session):
    return DocumentStore()


@pytest.fixture
def s3_client(app, mocker):
    """Replace the boto3 client behind app.media for one test."""
    client = mocker.MagicMock()
    mocker.patch.object(app.media, 'client', client)
    return client


@pytest.fixture
def sample_roster(app, db_session):
    """
    Three judges (one with PIN 1234), two categories and schools in every tier.
    Returns a dict of ids.
    """
    judge_with_pin = Judge(id='judge-1', name='Asha Rao', mobile='9876543210')
    judge_with_pin.set_pin('1234')
    db.session.add_all([
        judge_with_pin,
        Judge(id='judge-2', name='Vikram Shah'),
        Judge(id='judge-3', name='Meera Iyer'),
        CompetitionCategory(id='cat-music', name='Music'),
        CompetitionCategory(id='cat-dance', name='Dance'),
        School(id='senior-a', name='Greenwood High', tier='Senior'),
        School(id='senior-b', name='Oakridge Academy', tier='Senior'),
        School(id='junior-a', name='Little Flower School', tier='Junior', serial_number=1),
        School(id='junior-b', name='Bright Minds', tier='Junior', serial_number=2),
        School(id='junior-c', name='Cedar Public School', tier='Junior', serial_number=3),
        School(id='sub-a', name='Rainbow Kids', tier='Sub-Junior'),
    ])
    db.session.commit()
    
    return {
        'judges': ['judge-1', 'judge-2', 'judge-3'],
        'categories': ['cat-music', 'cat-dance'],
        'senior': ['senior-a', 'senior-b'],
        'junior': ['junior-a', 'junior-b', 'junior-c'],
        'sub_junior': ['sub-a'],
    }


@pytest.fixture
def add_score(app, db_session):
    """Write one score row directly."""
    def _add(judge_id, school_id, category_id, score):
        store = DocumentStore()
        store.upsert('scores', score_document_id(judge_id, school_id, category_id), {
            'judge_id': judge_id,
            'school_id': school_id,
            'category_id': category_id,
            'score': score,
        })
    return _add


@pytest.fixture
def registration_payload():
    """A complete, valid registration form."""
    return {
        'school_name': 'St. Mary Convent',
        'participants': [
            {'name': 'Alice'},
            {'name': 'Rohan', 'id_card_url': 'https://media.example.test/ids/r.png', 'id_card_public_id': 'ids/r.png'},
        ],
        'account_holder_name': 'St. Mary Convent Trust',
        'bank_name': 'State Bank',
        'account_number': '123456789012',
        'confirm_account_number': '123456789012',
        'ifsc_code': 'sbin0001234',
        'upi_id': '',
        'contact_name': 'Sr. Teresa',
        'designation': 'Principal',
        'mobile_number': '98765 43210',
        'email': 'office@stmary.example',
    }


@pytest.fixture
def organizer(app, db_session):
    organizer = Organizer.create_organizer('admin', 'festival-pass')
    db.session.add(organizer)
    db.session.commit()
    return organizer


@pytest.fixture
def organizer_client(client, organizer):
    """Test client logged in as an organizer."""
    response = client.post('/api/v1/organizer/login', json={
        'username': 'admin',
        'password': 'festival-pass'
    })
    assert response.status_code == 200
    return client
