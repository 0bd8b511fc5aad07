from flask import Blueprint, request, jsonify, current_app

from culturefest.errors import UploadError
from culturefest.media_store import IMAGE_TYPES

bp = Blueprint('public', __name__, url_prefix='/api/v1')


# ==================== Site content ====================

@bp.route('/home', methods=['GET'])
def get_home():
    content = current_app.settings_service.get_home_content()
    return jsonify(content.to_dict())


@bp.route('/settings/interschool', methods=['GET'])
def get_interschool_settings():
    """Public view of the circular; remarks are only printed on the score report."""
    settings = current_app.settings_service.get_interschool_settings()
    return jsonify({
        'circular_url': settings.circular_url,
        'circular_name': settings.circular_name,
    })


# ==================== Registrations ====================

@bp.route('/registrations', methods=['POST'])
def create_registration():
    registration = current_app.registrations.create(request.get_json(silent=True) or {})
    return jsonify({
        'id': registration.id,
        'message': 'Registration successful. Keep this ID to edit your registration later.',
        'registration': registration.to_dict()
    }), 201


@bp.route('/registrations/<registration_id>', methods=['GET'])
def get_registration(registration_id: str):
    registration = current_app.registrations.get(registration_id)
    return jsonify(registration.to_dict())


@bp.route('/registrations/<registration_id>', methods=['PUT'])
def update_registration(registration_id: str):
    registration = current_app.registrations.update(registration_id, request.get_json(silent=True) or {})
    return jsonify({
        'id': registration.id,
        'message': 'Registration updated',
        'registration': registration.to_dict()
    })


@bp.route('/uploads/id-card', methods=['POST'])
def upload_id_card():
    """Store one participant ID card image; the returned url/public_id go into the registration form."""
    media = current_app.media
    if media is None:
        raise UploadError('File uploads are not configured')
    
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise UploadError('No file was uploaded')
    
    stored = media.store(
        upload.read(),
        upload.mimetype,
        filename=upload.filename,
        max_bytes=current_app.config['ID_CARD_MAX_BYTES'],
        allowed_types=IMAGE_TYPES,
        subfolder='id-cards'
    )
    return jsonify(stored.to_dict()), 201
