# Operational routes: health probe and live stats

import os
from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from bookinghub.extensions import db

main_bp = Blueprint('main', __name__)


def check_db():
    try:
        db.session.execute(text('SELECT 1'))
    except Exception as exc:  # health must degrade, not crash
        db.session.rollback()
        return {'ok': False, 'error': str(exc)}
    return {'ok': True}


def check_redis():
    relay = current_app.extensions['booking_relay']
    if not relay.enabled:
        return {'ok': True, 'enabled': False}
    try:
        relay.ping()
    except Exception as exc:  # health must degrade, not crash
        return {'ok': False, 'enabled': True, 'error': str(exc)}
    return {'ok': True, 'enabled': True}


@main_bp.route('/health')
def health():
    components = {'db': check_db(), 'redis': check_redis()}

    all_ok = all(v.get('ok', False) for v in components.values())
    some_ok = any(v.get('ok', False) for v in components.values())
    status = 'ok' if all_ok else ('degraded' if some_ok else 'down')

    return jsonify({'status': status, 'components': components}), 200 if all_ok else 503


@main_bp.route('/stats')
def stats():
    router = current_app.extensions['booking_router']
    data = router.stats()
    data['pid'] = os.getpid()
    return jsonify({'success': True, 'stats': data})
