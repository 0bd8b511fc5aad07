"""
Integration tests for API routes.
Tests the public, judging and organizer blueprints and the app-level routes.
"""
import json
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from culturefest.models import db, School, Score, Registration


def login_judge(client, judge_id, pin=None):
    return client.post(f'/api/v1/judges/{judge_id}/login', json={'pin': pin})


class TestHealthEndpoint:
    """Tests for /api/v1/health endpoint."""
    
    def test_health_check(self, client, db_session):
        """Health check should return 200 with redis disabled."""
        response = client.get('/api/v1/health')
        assert response.status_code == 200
        
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['database'] is True
        assert data['events'] is None
    
    def test_events_stream_needs_redis(self, client):
        response = client.get('/api/v1/events')
        assert response.status_code == 503


class TestRegistrationRoutes:
    """Tests for the school registration form endpoints."""
    
    def test_create_registration(self, client, db_session, registration_payload):
        """POST /api/v1/registrations should return the new id."""
        response = client.post('/api/v1/registrations', json=registration_payload)
        
        assert response.status_code == 201
        data = json.loads(response.data)
        assert len(data['id']) == 20
        assert data['registration']['school_name'] == 'St. Mary Convent'
    
    def test_validation_error_shape(self, client, db_session, registration_payload):
        registration_payload['confirm_account_number'] = '000'
        
        response = client.post('/api/v1/registrations', json=registration_payload)
        
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data == {
            'error': 'Account numbers do not match.',
            'field': 'confirm_account_number',
            'code': 'accountNumberMismatch'
        }
    
    def test_get_and_update(self, client, db_session, registration_payload):
        created = json.loads(client.post('/api/v1/registrations', json=registration_payload).data)
        
        response = client.get(f"/api/v1/registrations/{created['id']}")
        assert response.status_code == 200
        assert json.loads(response.data)['bank_details']['account_number'] == '123456789012'
        
        registration_payload['designation'] = 'Vice Principal'
        response = client.put(f"/api/v1/registrations/{created['id']}", json=registration_payload)
        assert response.status_code == 200
        assert json.loads(response.data)['registration']['contact_person']['designation'] == 'Vice Principal'
    
    def test_unknown_id_asks_to_search_again(self, client, db_session, registration_payload):
        response = client.put('/api/v1/registrations/not-a-real-id', json=registration_payload)
        
        assert response.status_code == 404
        assert json.loads(response.data)['search_again'] is True
        assert Registration.query.count() == 0


class TestIdCardUpload:
    
    def test_upload(self, client, db_session, s3_client):
        response = client.post('/api/v1/uploads/id-card', data={
            'file': (BytesIO(b'\x89PNG small'), 'card.png', 'image/png')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['url'].startswith('https://media.example.test/')
        s3_client.put_object.assert_called_once()
    
    def test_too_large(self, client, db_session, s3_client):
        response = client.post('/api/v1/uploads/id-card', data={
            'file': (BytesIO(b'x' * (50 * 1024 + 1)), 'card.png', 'image/png')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 413
        s3_client.put_object.assert_not_called()
    
    def test_not_an_image(self, client, db_session, s3_client):
        response = client.post('/api/v1/uploads/id-card', data={
            'file': (BytesIO(b'%PDF'), 'card.pdf', 'application/pdf')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 400


class TestSiteContent:
    
    def test_home_defaults(self, client, db_session):
        response = client.get('/api/v1/home')
        assert response.status_code == 200
        assert json.loads(response.data)['note'] == ''
    
    def test_public_settings_hide_remarks(self, client, db_session):
        data = json.loads(client.get('/api/v1/settings/interschool').data)
        assert 'remarks' not in data


class TestJudgingRoutes:
    """Tests for the judges blueprint."""
    
    def test_list_judges(self, client, sample_roster):
        data = json.loads(client.get('/api/v1/judges').data)
        
        names = {j['name'] for j in data['judges']}
        assert names == {'Asha Rao', 'Vikram Shah', 'Meera Iyer'}
        assert all('mobile' not in j for j in data['judges'])
    
    def test_wrong_pin(self, client, sample_roster):
        assert login_judge(client, 'judge-1', '9999').status_code == 401
    
    def test_scores_require_login(self, client, sample_roster):
        response = client.post('/api/v1/judges/judge-1/scores/senior-a', json={'scores': {'cat-music': 5}})
        assert response.status_code == 401
        assert Score.query.count() == 0
    
    def test_submit_scores(self, client, sample_roster):
        assert login_judge(client, 'judge-1', '1234').status_code == 200
        
        response = client.post('/api/v1/judges/judge-1/scores/senior-a', json={
            'scores': {'cat-music': 8, 'cat-dance': 7}
        })
        
        assert response.status_code == 200
        assert json.loads(response.data)['written'] == 2
        
        sheet = json.loads(client.get('/api/v1/judges/judge-1/scoresheet').data)
        assert sheet['scores']['senior-a'] == {'cat-music': 8, 'cat-dance': 7}
        assert len(sheet['schools']) == 6
    
    def test_session_is_per_judge(self, client, sample_roster):
        login_judge(client, 'judge-2')
        
        response = client.get('/api/v1/judges/judge-1/scoresheet')
        assert response.status_code == 401
    
    def test_score_out_of_range(self, client, sample_roster):
        login_judge(client, 'judge-2')
        
        response = client.post('/api/v1/judges/judge-2/scores/senior-a', json={'scores': {'cat-music': 12}})
        
        assert response.status_code == 400
        assert json.loads(response.data)['field'] == 'scores.cat-music'
    
    def test_feedback(self, client, sample_roster):
        login_judge(client, 'judge-3')
        
        response = client.post('/api/v1/judges/judge-3/feedback/sub-a', json={'feedback': 'Sweet performance'})
        
        assert response.status_code == 200
        assert json.loads(response.data)['id'] == 'judge-3_sub-a'


class TestOrganizerAuth:
    
    def test_requires_login(self, client, db_session):
        response = client.get('/api/v1/organizer/schools')
        assert response.status_code == 401
    
    def test_bad_password(self, client, organizer):
        response = client.post('/api/v1/organizer/login', json={'username': 'admin', 'password': 'nope'})
        assert response.status_code == 401
    
    def test_logout(self, organizer_client):
        assert organizer_client.post('/api/v1/organizer/logout').status_code == 200
        assert organizer_client.get('/api/v1/organizer/schools').status_code == 401


class TestOrganizerRoster:
    """Tests for organizer CRUD endpoints."""
    
    def test_create_and_list_school(self, organizer_client):
        response = organizer_client.post('/api/v1/organizer/schools', json={'name': 'Aster', 'tier': 'Junior'})
        assert response.status_code == 201
        
        data = json.loads(organizer_client.get('/api/v1/organizer/schools?tier=Junior').data)
        assert data['count'] == 1
    
    def test_invalid_tier(self, organizer_client):
        response = organizer_client.post('/api/v1/organizer/schools', json={'name': 'Aster', 'tier': 'Primary'})
        assert response.status_code == 400
        assert json.loads(response.data)['code'] == 'invalidTier'
    
    def test_update_unknown_school(self, organizer_client):
        response = organizer_client.put('/api/v1/organizer/schools/ghost', json={'name': 'A', 'tier': 'Senior'})
        assert response.status_code == 404
    
    def test_create_judge_returns_pin_once(self, organizer_client):
        response = organizer_client.post('/api/v1/organizer/judges', json={'name': 'Asha Rao'})
        
        assert response.status_code == 201
        data = json.loads(response.data)
        assert len(data['pin']) == 4
        
        listed = json.loads(organizer_client.get('/api/v1/organizer/judges').data)['judges']
        assert 'pin' not in listed[0]
        assert listed[0]['has_pin'] is True
    
    def test_import_schools(self, organizer_client):
        wb = Workbook()
        ws = wb.active
        ws.append(['School Name', 'Category'])
        ws.append(['Aster', 'Junior'])
        ws.append(['Banyan', 'Sub-Junior'])
        stream = BytesIO()
        wb.save(stream)
        stream.seek(0)
        
        response = organizer_client.post('/api/v1/organizer/schools/import', data={
            'file': (stream, 'schools.xlsx')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 201
        assert json.loads(response.data)['imported'] == 2
    
    def test_import_rejects_bad_rows(self, organizer_client):
        wb = Workbook()
        ws = wb.active
        ws.append(['School Name', 'Category'])
        ws.append(['Aster', 'Primary'])
        stream = BytesIO()
        wb.save(stream)
        stream.seek(0)
        
        response = organizer_client.post('/api/v1/organizer/schools/import', data={
            'file': (stream, 'schools.xlsx')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 400
        assert json.loads(response.data)['code'] == 'invalidRows'
        assert School.query.count() == 0


class TestOrganizerResults:
    """Tests for leaderboard, breakdown and reports."""
    
    def test_leaderboard(self, organizer_client, sample_roster, add_score):
        add_score('judge-1', 'junior-c', 'cat-music', 9)
        
        data = json.loads(organizer_client.get('/api/v1/organizer/leaderboard').data)
        
        assert data['judge_count'] == 3
        junior = data['tiers']['Junior']
        assert junior[0]['school']['id'] == 'junior-c'
        assert junior[0]['total'] == 3.0
        assert [e['school']['name'] for e in junior[1:]] == ['Bright Minds', 'Little Flower School']
    
    def test_breakdown(self, organizer_client, sample_roster, add_score):
        add_score('judge-2', 'senior-a', 'cat-dance', 6)
        
        data = json.loads(organizer_client.get('/api/v1/organizer/schools/senior-a/breakdown').data)
        
        rows = {r['judge_id']: r for r in data['judges']}
        assert rows['judge-2']['total'] == 6
        assert rows['judge-1']['total'] == 0
    
    def test_score_report_pdf(self, organizer_client, sample_roster, add_score):
        add_score('judge-1', 'senior-a', 'cat-music', 9)
        
        response = organizer_client.get('/api/v1/organizer/reports/scores.pdf')
        
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')


class TestOrganizerLottery:
    """Tests for the lottery preview/commit flow."""
    
    def test_run_then_commit(self, organizer_client, sample_roster):
        response = organizer_client.post('/api/v1/organizer/lottery/Senior/run')
        assert response.status_code == 200
        preview = json.loads(response.data)
        assert [s['serial_number'] for s in preview['order']] == [1, 2]
        
        # Nothing saved until commit
        assert School.query.filter_by(id='senior-a').one().serial_number is None
        
        response = organizer_client.post('/api/v1/organizer/lottery/Senior/commit')
        assert response.status_code == 200
        assert json.loads(response.data)['saved'] == 2
        
        db.session.expire_all()
        saved = {s.id: s.serial_number for s in School.query.filter_by(tier='Senior')}
        assert saved == {s['id']: s['serial_number'] for s in preview['order']}
        assert School.query.filter_by(id='junior-a').one().serial_number == 1
    
    def test_commit_without_preview(self, organizer_client, sample_roster):
        response = organizer_client.post('/api/v1/organizer/lottery/Junior/commit')
        assert response.status_code == 400
        assert json.loads(response.data)['code'] == 'noPreview'
    
    def test_run_empty_tier(self, organizer_client, db_session):
        response = organizer_client.post('/api/v1/organizer/lottery/Senior/run')
        assert response.status_code == 400
    
    def test_order_workbook(self, organizer_client, sample_roster):
        response = organizer_client.get('/api/v1/organizer/lottery/order.xlsx?tier=Junior')
        
        assert response.status_code == 200
        wb = load_workbook(BytesIO(response.data))
        rows = list(wb['Junior'].iter_rows(values_only=True))
        assert rows[1] == (1, 'Little Flower School')


class TestOrganizerRegistrations:
    
    def test_list_and_export(self, organizer_client, registration_payload):
        organizer_client.post('/api/v1/registrations', json=registration_payload)
        
        data = json.loads(organizer_client.get('/api/v1/organizer/registrations').data)
        assert data['count'] == 1
        
        xlsx = organizer_client.get('/api/v1/organizer/registrations/export.xlsx')
        assert xlsx.status_code == 200
        
        pdf = organizer_client.get('/api/v1/organizer/registrations/export.pdf')
        assert pdf.data.startswith(b'%PDF')
    
    def test_delete(self, organizer_client, registration_payload, s3_client):
        created = json.loads(organizer_client.post('/api/v1/registrations', json=registration_payload).data)
        
        response = organizer_client.delete(f"/api/v1/organizer/registrations/{created['id']}")
        
        assert response.status_code == 200
        assert Registration.query.count() == 0
        s3_client.delete_object.assert_called_once()


class TestOrganizerSettings:
    
    def test_update_remarks(self, organizer_client):
        response = organizer_client.post('/api/v1/organizer/settings/interschool', data={
            'remarks': 'Decisions of the judges are final'
        })
        assert response.status_code == 200
        assert json.loads(response.data)['remarks'] == 'Decisions of the judges are final'
    
    def test_update_home_image(self, organizer_client, s3_client):
        response = organizer_client.post('/api/v1/organizer/home', data={
            'note': 'Welcome',
            'image': (BytesIO(b'jpeg-bytes'), 'banner.jpg', 'image/jpeg')
        }, content_type='multipart/form-data')
        
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['note'] == 'Welcome'
        assert data['image_url'].startswith('https://media.example.test/')
    
    def test_reset_requires_confirmation(self, organizer_client, sample_roster):
        assert organizer_client.post('/api/v1/organizer/reset', json={}).status_code == 400
        
        response = organizer_client.post('/api/v1/organizer/reset', json={'confirm': True})
        assert response.status_code == 200
        assert School.query.count() == 0
