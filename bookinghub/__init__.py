# Flask application factory

import logging
from flask import Flask, jsonify
import config as default_config
from bookinghub.extensions import db, socketio, login_manager

logger = logging.getLogger(__name__)


def create_app(config=None):
    # Create and configure the realtime service
    flask_app = Flask(__name__)

    # Load config: module defaults first, then the caller's overrides
    flask_app.config.from_object(default_config)
    if config:
        flask_app.config.from_object(config)
    flask_app.config.setdefault(
        'SQLALCHEMY_ENGINE_OPTIONS',
        default_config.engine_options(
            flask_app.config['SQLALCHEMY_DATABASE_URI'],
            flask_app.config['DOWNSTREAM_TIMEOUT'],
        ),
    )

    _setup_logging(flask_app)

    # Socket handlers must be registered before init_app so every server gets them
    from bookinghub.sockets import EventRouter
    from bookinghub.sockets.events import send_frame

    # Initialize extensions
    db.init_app(flask_app)
    socketio.init_app(
        flask_app,
        async_mode=flask_app.config['SOCKETIO_ASYNC_MODE'],
        cors_allowed_origins=flask_app.config['CORS_ALLOWED_ORIGINS'],
        ping_interval=flask_app.config['PING_INTERVAL'],
        ping_timeout=flask_app.config['PING_TIMEOUT'],
    )
    login_manager.init_app(flask_app)

    # HTTP callers authenticate with the same session token as sockets
    @login_manager.request_loader
    def load_user_from_request(req):
        from bookinghub.functions import authenticate_token
        header = req.headers.get('Authorization', '')
        if not header.startswith('Bearer '):
            return None
        return authenticate_token(header[len('Bearer '):].strip())

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    # Register blueprints
    from bookinghub.routes import main_bp, api_bp
    flask_app.register_blueprint(main_bp)
    flask_app.register_blueprint(api_bp)

    # Build this app's relay and router
    from bookinghub.relay import FanoutRelay

    relay = FanoutRelay(
        url=flask_app.config['REDIS_URL'],
        channels=flask_app.config['RELAY_CHANNELS'],
        timeout=flask_app.config['DOWNSTREAM_TIMEOUT'],
    )
    router = EventRouter(
        send_frame,
        relay=relay,
        recent_limit=flask_app.config['RECENT_MESSAGES_LIMIT'],
        pending_limit=flask_app.config['PENDING_NOTIFICATIONS_LIMIT'],
    )
    flask_app.extensions['booking_relay'] = relay
    flask_app.extensions['booking_router'] = router

    # Create database tables if needed
    with flask_app.app_context():
        _init_database()

    if relay.enabled:
        socketio.start_background_task(relay.listen, router.handle_relayed, socketio.sleep)
        logger.info("[SERVER STARTUP] Relay listener started")
    else:
        logger.info("[SERVER STARTUP] REDIS_URL not set, cross-process relay disabled")

    return flask_app


def _setup_logging(flask_app):
    level = getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logging.getLogger('bookinghub').setLevel(level)


def _init_database():
    # Users, sessions and bookings belong to other subsystems; create_all only
    # fills in tables that are missing (fresh dev databases, tests)
    import bookinghub.models  # noqa

    try:
        db.create_all()
    except Exception:
        logger.exception("[SERVER STARTUP] Could not create database tables")
