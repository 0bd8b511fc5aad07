import logging
import os

from flask import Flask, Response, jsonify, current_app
from flask_login import LoginManager

from shared.pubsub import EventPublisher, redis_from_url

from .config import config
from .document_store import DocumentStore
from .errors import ValidationError, NotFoundError, PersistenceError, UploadError
from .lottery import LotterySequencer
from .media_store import MediaStore
from .models import db, Organizer
from .registration_manager import RegistrationManager
from .roster import CompetitionRoster
from .score_aggregator import ScoreAggregator
from .score_book import ScoreBook
from .settings_service import SettingsService

logger = logging.getLogger(__name__)

login_manager = LoginManager()


@login_manager.user_loader
def load_organizer(organizer_id):
    return db.session.get(Organizer, int(organizer_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Organizer login required'}), 401


def create_app(config_name: str = None, media_client=None, redis_client=None) -> Flask:
    """Application factory for the competition service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')
    
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    
    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('culturefest').setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('shared').setLevel(app.config['LOG_LEVEL'])
    
    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    
    # Create tables
    with app.app_context():
        db.create_all()
    
    # Initialize services
    store = DocumentStore()
    events = EventPublisher(redis_client if redis_client is not None else redis_from_url(app.config['REDIS_URL']))
    media = MediaStore.from_config(app.config, client=media_client)
    
    # Store services on app for access in routes
    app.store = store
    app.events = events
    app.media = media
    app.aggregator = ScoreAggregator()
    app.roster = CompetitionRoster(store=store, events=events)
    app.score_book = ScoreBook(store=store, events=events)
    app.lottery = LotterySequencer(store=store, events=events)
    app.registrations = RegistrationManager(store=store, media=media, events=events)
    app.settings_service = SettingsService(
        store=store,
        media=media,
        circular_max_bytes=app.config['CIRCULAR_MAX_BYTES'],
        home_image_max_bytes=app.config['HOME_IMAGE_MAX_BYTES']
    )
    
    register_error_handlers(app)
    register_routes(app)
    
    from .routes import public, judging, organizer
    app.register_blueprint(public.bp)
    app.register_blueprint(judging.bp)
    app.register_blueprint(organizer.bp)
    
    logger.info(f"Competition service created ({config_name})")
    return app


def register_error_handlers(app: Flask):
    
    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify(e.to_dict()), 400
    
    @app.errorhandler(NotFoundError)
    def handle_not_found(e: NotFoundError):
        body = {'error': e.message}
        if e.entity == 'registration':
            body['error'] = 'Registration not found. Please check the ID and search again.'
            body['search_again'] = True
        return jsonify(body), 404
    
    @app.errorhandler(PersistenceError)
    def handle_persistence_error(e: PersistenceError):
        logger.exception(f"Persistence failure: {e}")
        return jsonify({'error': 'Could not save your changes. Please try again.'}), 503
    
    @app.errorhandler(UploadError)
    def handle_upload_error(e: UploadError):
        return jsonify({'error': e.message}), 413 if e.too_large else 400
    
    @app.errorhandler(413)
    def handle_request_too_large(e):
        return jsonify({'error': 'Uploaded file is too large'}), 413


def register_routes(app: Flask):
    
    @app.route('/api/v1/health')
    def health_check():
        """Health check endpoint."""
        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            db_ok = False
        
        events_ok = None
        if app.events.enabled:
            try:
                app.events.redis.ping()
                events_ok = True
            except Exception as e:
                logger.warning(f"Redis health check failed: {e}")
                events_ok = False
        
        healthy = db_ok and events_ok is not False
        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'database': db_ok,
            'events': events_ok,
            'media': app.media is not None
        }), 200 if healthy else 503
    
    # ==================== Real-time Events (SSE) ====================
    
    @app.route('/api/v1/events')
    def api_events():
        """SSE endpoint for live leaderboard and roster refreshes."""
        if not current_app.events.enabled:
            return jsonify({'error': 'Live updates are not configured'}), 503
        
        sse_events = EventPublisher(redis_from_url(current_app.config['REDIS_URL'], socket_timeout=None))
        
        def generate():
            yield 'data: {"type":"connected"}\n\n'
            for payload in sse_events.listen(timeout=30):
                if payload is None:
                    yield ': keepalive\n\n'
                else:
                    yield f"data: {payload}\n\n"
        
        return Response(generate(), mimetype='text/event-stream', headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no'
        })
