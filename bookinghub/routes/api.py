# API routes (notification center)

from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from bookinghub.extensions import db
from bookinghub.models import Notification

api_bp = Blueprint('api', __name__, url_prefix='/api')

NOTIFICATION_FILTERS = ('all', 'unread', 'read')


def get_own_notification(notification_id):
    # Notifications are only ever visible to their recipient
    return Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()


# --- NOTIFICATIONS ---

@api_bp.route('/notifications', methods=['GET'])
@login_required
def list_notifications():
    status = request.args.get('filter', 'all')
    if status not in NOTIFICATION_FILTERS:
        return jsonify({'success': False, 'error': 'invalid filter'}), 400
    try:
        limit = min(max(int(request.args.get('limit', 50)), 1), 200)
    except ValueError:
        return jsonify({'success': False, 'error': 'invalid limit'}), 400

    query = Notification.query.filter_by(user_id=current_user.id)
    if status == 'unread':
        query = query.filter_by(is_read=False)
    elif status == 'read':
        query = query.filter_by(is_read=True)
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    return jsonify({'success': True, 'notifications': [n.to_dict() for n in rows]})


@api_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    notification = get_own_notification(notification_id)
    if notification is None:
        return jsonify({'success': False, 'error': 'notification not found'}), 404

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        db.session.commit()
    return jsonify({'success': True})


@api_bp.route('/notifications/mark-all-read', methods=['POST'])
@login_required
def mark_all_notifications_read():
    updated = (
        Notification.query.filter_by(user_id=current_user.id, is_read=False)
        .update({'is_read': True, 'read_at': datetime.utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return jsonify({'success': True, 'updated': updated})


@api_bp.route('/notifications/<int:notification_id>', methods=['DELETE'])
@login_required
def delete_notification(notification_id):
    notification = get_own_notification(notification_id)
    if notification is None:
        return jsonify({'success': False, 'error': 'notification not found'}), 404

    db.session.delete(notification)
    db.session.commit()
    return jsonify({'success': True})
