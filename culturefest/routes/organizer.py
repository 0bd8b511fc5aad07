"""
Organizer dashboard API: roster management, results, lottery,
registrations and site settings. Everything except login needs an
authenticated organizer.
"""
import logging
from datetime import datetime
from io import BytesIO

from flask import Blueprint, request, jsonify, current_app, session, send_file
from flask_login import login_required, login_user, logout_user, current_user

from culturefest import exports
from culturefest.errors import ValidationError, NotFoundError
from culturefest.models import Organizer
from culturefest.records import parse_tier

logger = logging.getLogger(__name__)

bp = Blueprint('organizer', __name__, url_prefix='/api/v1/organizer')

LOTTERY_SESSION_KEY = 'lottery_preview'


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _download(data: bytes, mimetype: str, filename: str):
    return send_file(BytesIO(data), mimetype=mimetype, as_attachment=True, download_name=filename)


def _stamp() -> str:
    return datetime.utcnow().strftime('%Y-%m-%d')


# ==================== Session ====================

@bp.route('/login', methods=['POST'])
def login():
    data = _json()
    organizer = Organizer.query.filter_by(username=(data.get('username') or '').strip()).first()
    if organizer is None or not organizer.check_password(data.get('password') or ''):
        logger.warning("Failed organizer login attempt")
        return jsonify({'error': 'Invalid username or password'}), 401
    
    login_user(organizer)
    return jsonify({'success': True, 'organizer': organizer.to_dict()})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    session.pop(LOTTERY_SESSION_KEY, None)
    return jsonify({'success': True})


@bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())


# ==================== Schools ====================

@bp.route('/schools', methods=['GET'])
@login_required
def list_schools():
    schools = current_app.roster.list_schools(tier=request.args.get('tier'))
    return jsonify({'schools': [s.to_dict() for s in schools], 'count': len(schools)})


@bp.route('/schools', methods=['POST'])
@login_required
def create_school():
    data = _json()
    school = current_app.roster.create_school(data.get('name'), data.get('tier'))
    return jsonify(school.to_dict()), 201


@bp.route('/schools/<school_id>', methods=['PUT'])
@login_required
def update_school(school_id: str):
    data = _json()
    school = current_app.roster.update_school(school_id, data.get('name'), data.get('tier'))
    return jsonify(school.to_dict())


@bp.route('/schools/<school_id>', methods=['DELETE'])
@login_required
def delete_school(school_id: str):
    success, message = current_app.roster.delete_school(school_id)
    if not success:
        return jsonify({'error': message}), 404
    return jsonify({'success': True, 'message': message})


@bp.route('/schools/import', methods=['POST'])
@login_required
def import_schools():
    """Bulk add schools from an .xlsx with 'School Name' and 'Category' columns."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError('file', 'required', 'Please choose an Excel file to import')
    
    rows = exports.read_school_rows(upload.read())
    count = current_app.roster.import_schools(rows)
    return jsonify({'success': True, 'imported': count}), 201


@bp.route('/schools/<school_id>/breakdown', methods=['GET'])
@login_required
def school_breakdown(school_id: str):
    snapshot = current_app.store.snapshot()
    school = next((s for s in snapshot.schools if s.id == school_id), None)
    if school is None:
        raise NotFoundError('school', school_id)
    
    rows = current_app.aggregator.judge_breakdown(
        school, snapshot.judges, snapshot.categories, snapshot.scores
    )
    return jsonify({'school': school.to_dict(), 'judges': rows})


# ==================== Judges ====================

@bp.route('/judges', methods=['GET'])
@login_required
def list_judges():
    judges = current_app.roster.list_judges()
    return jsonify({'judges': [j.to_dict() for j in judges]})


@bp.route('/judges', methods=['POST'])
@login_required
def create_judge():
    """The PIN is only ever returned here, right after creation."""
    data = _json()
    judge, pin = current_app.roster.create_judge(
        data.get('name'), mobile=data.get('mobile') or '', pin=data.get('pin')
    )
    return jsonify({**judge.to_dict(), 'pin': pin}), 201


@bp.route('/judges/<judge_id>', methods=['PUT'])
@login_required
def update_judge(judge_id: str):
    data = _json()
    judge = current_app.roster.update_judge(
        judge_id, data.get('name'), mobile=data.get('mobile') or '', pin=data.get('pin')
    )
    return jsonify(judge.to_dict())


@bp.route('/judges/<judge_id>', methods=['DELETE'])
@login_required
def delete_judge(judge_id: str):
    success, message = current_app.roster.delete_judge(judge_id)
    if not success:
        return jsonify({'error': message}), 404
    return jsonify({'success': True, 'message': message})


# ==================== Categories ====================

@bp.route('/categories', methods=['GET'])
@login_required
def list_categories():
    categories = current_app.roster.list_categories()
    return jsonify({'categories': [c.to_dict() for c in categories]})


@bp.route('/categories', methods=['POST'])
@login_required
def create_category():
    category = current_app.roster.create_category(_json().get('name'))
    return jsonify(category.to_dict()), 201


@bp.route('/categories/<category_id>', methods=['PUT'])
@login_required
def update_category(category_id: str):
    category = current_app.roster.update_category(category_id, _json().get('name'))
    return jsonify(category.to_dict())


@bp.route('/categories/<category_id>', methods=['DELETE'])
@login_required
def delete_category(category_id: str):
    success, message = current_app.roster.delete_category(category_id)
    if not success:
        return jsonify({'error': message}), 404
    return jsonify({'success': True, 'message': message})


# ==================== Results ====================

@bp.route('/leaderboard', methods=['GET'])
@login_required
def leaderboard():
    snapshot = current_app.store.snapshot()
    board = current_app.aggregator.build_leaderboard(
        snapshot.schools, snapshot.categories, snapshot.scores, snapshot.judge_count
    )
    return jsonify({
        'judge_count': snapshot.judge_count,
        'categories': [{'id': c.id, 'name': c.name} for c in snapshot.categories],
        'tiers': {tier: [e.to_dict() for e in entries] for tier, entries in board.items()}
    })


@bp.route('/feedback', methods=['GET'])
@login_required
def tier_feedback():
    feedback = current_app.score_book.feedback_for_tier(request.args.get('tier', 'Sub-Junior'))
    return jsonify({
        'schools': [
            {'school': item['school'].to_dict(), 'feedback': item['feedback']}
            for item in feedback.values()
        ]
    })


@bp.route('/reports/scores.pdf', methods=['GET'])
@login_required
def score_report():
    snapshot = current_app.store.snapshot()
    aggregator = current_app.aggregator
    board = aggregator.build_leaderboard(
        snapshot.schools, snapshot.categories, snapshot.scores, snapshot.judge_count
    )
    breakdowns = {
        school.id: aggregator.judge_breakdown(
            school, snapshot.judges, snapshot.categories, snapshot.scores
        )
        for school in snapshot.schools
    }
    settings = current_app.settings_service.get_interschool_settings()
    
    pdf = exports.score_report_pdf(
        board,
        snapshot.categories,
        breakdowns,
        feedback=current_app.score_book.feedback_for_tier('Sub-Junior'),
        remarks=settings.remarks or ''
    )
    return _download(pdf, exports.PDF_MIMETYPE, f"Competition_Score_Report_{_stamp()}.pdf")


# ==================== Lottery ====================

@bp.route('/lottery/<tier>/run', methods=['POST'])
@login_required
def run_lottery(tier: str):
    """Draw a new order and keep it as this organizer's preview until committed."""
    tier = parse_tier(tier)
    snapshot = current_app.store.snapshot()
    if not any(s.tier == tier for s in snapshot.schools):
        raise ValidationError('tier', 'noSchools', f"No schools in the {tier} category")
    
    draw = current_app.lottery.run(snapshot.schools, tier)
    session[LOTTERY_SESSION_KEY] = {
        'tier': tier,
        'serials': {s.id: s.serial_number for s in draw.tier_schools}
    }
    return jsonify(draw.to_dict())


@bp.route('/lottery/<tier>/commit', methods=['POST'])
@login_required
def commit_lottery(tier: str):
    tier = parse_tier(tier)
    preview = session.get(LOTTERY_SESSION_KEY)
    if not preview or preview.get('tier') != tier:
        raise ValidationError('lottery', 'noPreview', f"Run the lottery for {tier} before saving it")
    
    draw = current_app.lottery.restore(current_app.store.snapshot().schools, tier, preview['serials'])
    written = current_app.lottery.commit(draw)
    session.pop(LOTTERY_SESSION_KEY, None)
    return jsonify({'success': True, 'saved': written, **draw.to_dict()})


@bp.route('/lottery/order.xlsx', methods=['GET'])
@login_required
def performance_order():
    order = current_app.lottery.performance_order(current_app.store.snapshot().schools)
    tier = request.args.get('tier')
    if tier:
        tier = parse_tier(tier)
        order = {tier: order.get(tier, [])}
    data = exports.performance_order_workbook(order)
    name = f"{tier.replace('-', '_')}_Lottery_Order" if tier else 'Lottery_Order'
    return _download(data, exports.XLSX_MIMETYPE, f"{name}_{_stamp()}.xlsx")


# ==================== Registrations ====================

@bp.route('/registrations', methods=['GET'])
@login_required
def list_registrations():
    registrations = current_app.registrations.list_registrations()
    return jsonify({
        'registrations': [r.to_dict() for r in registrations],
        'count': len(registrations)
    })


@bp.route('/registrations/<registration_id>', methods=['DELETE'])
@login_required
def delete_registration(registration_id: str):
    current_app.registrations.delete(registration_id)
    return jsonify({'success': True})


@bp.route('/registrations/export.xlsx', methods=['GET'])
@login_required
def registrations_xlsx():
    data = exports.registrations_workbook(current_app.registrations.list_registrations())
    return _download(data, exports.XLSX_MIMETYPE, f"Registrations_{_stamp()}.xlsx")


@bp.route('/registrations/export.pdf', methods=['GET'])
@login_required
def registrations_pdf():
    data = exports.registrations_pdf(current_app.registrations.list_registrations())
    return _download(data, exports.PDF_MIMETYPE, f"Registrations_{_stamp()}.pdf")


# ==================== Settings ====================

@bp.route('/settings/interschool', methods=['GET'])
@login_required
def get_interschool_settings():
    return jsonify(current_app.settings_service.get_interschool_settings().to_dict())


@bp.route('/settings/interschool', methods=['POST'])
@login_required
def update_interschool_settings():
    """Multipart form: remarks, circular_name, remove_circular and an optional 'circular' file."""
    form = request.form
    circular = request.files.get('circular')
    settings = current_app.settings_service.update_interschool_settings(
        remarks=form.get('remarks'),
        circular_name=form.get('circular_name'),
        circular=circular.read() if circular else None,
        circular_content_type=circular.mimetype if circular else None,
        circular_filename=circular.filename if circular else None,
        remove_circular=form.get('remove_circular') in ('1', 'true', 'on')
    )
    return jsonify(settings.to_dict())


@bp.route('/home', methods=['POST'])
@login_required
def update_home():
    image = request.files.get('image')
    content = current_app.settings_service.update_home_content(
        note=request.form.get('note'),
        image=image.read() if image else None,
        image_content_type=image.mimetype if image else None,
        image_filename=image.filename if image else None
    )
    return jsonify(content.to_dict())


@bp.route('/reset', methods=['POST'])
@login_required
def reset_competition():
    """Start a new competition. Judges, categories and registrations are kept."""
    if not _json().get('confirm'):
        raise ValidationError('confirm', 'required', 'Please confirm the reset')
    removed = current_app.roster.reset_competition()
    session.pop(LOTTERY_SESSION_KEY, None)
    return jsonify({'success': True, 'removed': removed})
