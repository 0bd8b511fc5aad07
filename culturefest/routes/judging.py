from flask import Blueprint, request, jsonify, current_app, session

bp = Blueprint('judging', __name__, url_prefix='/api/v1/judges')

JUDGE_SESSION_KEY = 'judge_id'


def _signed_in(judge_id: str) -> bool:
    return session.get(JUDGE_SESSION_KEY) == judge_id


def _forbidden():
    return jsonify({'error': 'Please log in as this judge first'}), 401


@bp.route('', methods=['GET'])
def list_judges():
    """Names for the judge picker; no contact details or PINs."""
    judges = current_app.roster.list_judges()
    return jsonify({
        'judges': [{'id': j.id, 'name': j.name, 'has_pin': j.has_pin} for j in judges]
    })


@bp.route('/<judge_id>/login', methods=['POST'])
def login(judge_id: str):
    data = request.get_json(silent=True) or {}
    if not current_app.score_book.authenticate_judge(judge_id, data.get('pin')):
        return jsonify({'error': 'Incorrect PIN'}), 401
    
    session[JUDGE_SESSION_KEY] = judge_id
    return jsonify({'judge_id': judge_id, 'success': True})


@bp.route('/logout', methods=['POST'])
def logout():
    session.pop(JUDGE_SESSION_KEY, None)
    return jsonify({'success': True})


@bp.route('/<judge_id>/scoresheet', methods=['GET'])
def scoresheet(judge_id: str):
    """Schools, categories and this judge's current scores and feedback."""
    if not _signed_in(judge_id):
        return _forbidden()
    
    sheet = current_app.score_book.judge_scoresheet(judge_id)
    snapshot = current_app.store.snapshot()
    feedback = {f.school_id: f.feedback for f in snapshot.feedbacks if f.judge_id == judge_id}
    
    return jsonify({
        'judge_id': judge_id,
        'categories': [{'id': c.id, 'name': c.name} for c in snapshot.categories],
        'schools': [
            s.to_dict()
            for schools in current_app.lottery.performance_order(snapshot.schools).values()
            for s in schools
        ],
        'scores': sheet,
        'feedback': feedback
    })


@bp.route('/<judge_id>/scores/<school_id>', methods=['POST'])
def submit_scores(judge_id: str, school_id: str):
    if not _signed_in(judge_id):
        return _forbidden()
    
    data = request.get_json(silent=True) or {}
    written = current_app.score_book.submit_scores(judge_id, school_id, data.get('scores'))
    return jsonify({'success': True, 'written': written})


@bp.route('/<judge_id>/feedback/<school_id>', methods=['POST'])
def submit_feedback(judge_id: str, school_id: str):
    if not _signed_in(judge_id):
        return _forbidden()
    
    data = request.get_json(silent=True) or {}
    doc_id = current_app.score_book.submit_feedback(judge_id, school_id, data.get('feedback'))
    return jsonify({'success': True, 'id': doc_id})
