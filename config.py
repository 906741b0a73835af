# Configuration file for the BookingHub realtime service

import json
import os

# Try to load configuration from `config.json` located next to this file.
# If the file is missing or a key is absent, fall back to the defaults below.
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_JSON_PATH = os.path.join(_BASE_DIR, 'config.json')

# Defaults
_defaults = {
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///drone_booking.db',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'SECRET_KEY': 'change-me',
    'HOST': '0.0.0.0',
    'PORT': 8080,
    'LOG_LEVEL': 'INFO',

    # Transport
    'SOCKETIO_ASYNC_MODE': 'eventlet',
    'CORS_ALLOWED_ORIGINS': '*',
    'PING_INTERVAL': 25,
    'PING_TIMEOUT': 60,

    # Cross-process fan-out; empty URL disables the relay
    'REDIS_URL': '',
    'RELAY_CHANNELS': ['chat_messages', 'location_updates', 'booking_updates'],

    # Upper bound (seconds) for every store/broker round-trip
    'DOWNSTREAM_TIMEOUT': 5,

    'RECENT_MESSAGES_LIMIT': 50,
    'PENDING_NOTIFICATIONS_LIMIT': 50,
}

_cfg = {}
try:
    with open(_JSON_PATH, 'r', encoding='utf-8') as f:
        _cfg = json.load(f) or {}
except FileNotFoundError:
    # No config.json present, we'll use defaults
    _cfg = {}
except ValueError:
    # Unparseable config.json: fall back to defaults
    _cfg = {}


# Helper to get value from JSON or defaults
def _get(key):
    return _cfg.get(key, _defaults.get(key))


# Database
SQLALCHEMY_DATABASE_URI = _get('SQLALCHEMY_DATABASE_URI')
SQLALCHEMY_TRACK_MODIFICATIONS = _get('SQLALCHEMY_TRACK_MODIFICATIONS')

# Security
SECRET_KEY = _get('SECRET_KEY')

# Server
HOST = _get('HOST')
PORT = int(_get('PORT'))
LOG_LEVEL = _get('LOG_LEVEL')

# Transport
SOCKETIO_ASYNC_MODE = _get('SOCKETIO_ASYNC_MODE')
CORS_ALLOWED_ORIGINS = _get('CORS_ALLOWED_ORIGINS')
PING_INTERVAL = int(_get('PING_INTERVAL'))
PING_TIMEOUT = int(_get('PING_TIMEOUT'))

# Relay
REDIS_URL = _get('REDIS_URL') or ''
RELAY_CHANNELS = list(_get('RELAY_CHANNELS') or [])

DOWNSTREAM_TIMEOUT = float(_get('DOWNSTREAM_TIMEOUT'))

RECENT_MESSAGES_LIMIT = int(_get('RECENT_MESSAGES_LIMIT'))
PENDING_NOTIFICATIONS_LIMIT = int(_get('PENDING_NOTIFICATIONS_LIMIT'))


def engine_options(uri=SQLALCHEMY_DATABASE_URI, timeout=DOWNSTREAM_TIMEOUT):
    # Driver-level timeouts so a stalled store call fails instead of hanging
    if uri.startswith('sqlite'):
        return {'connect_args': {'timeout': timeout}}
    options = {'pool_pre_ping': True, 'pool_timeout': timeout}
    if uri.startswith('mysql+pymysql'):
        options['connect_args'] = {
            'connect_timeout': int(timeout),
            'read_timeout': int(timeout),
            'write_timeout': int(timeout),
        }
    return options
