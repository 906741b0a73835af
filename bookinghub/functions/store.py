# Persistence of chat, telemetry, notifications and presence

from datetime import datetime
from bookinghub.extensions import db
from bookinghub.models import ChatMessage, TrackingPoint, Notification, OnlineUser, Booking


def save_chat_message(booking_id, sender_id, sender_role, content, message_type='text', metadata=None):
    msg = ChatMessage(
        booking_id=booking_id,
        sender_id=sender_id,
        sender_type=sender_role,
        message_type=message_type,
        content=content,
        meta=metadata or {},
    )
    db.session.add(msg)
    db.session.commit()
    return msg


def recent_messages(booking_id, limit=50):
    # Newest `limit` messages, returned oldest first
    rows = (
        ChatMessage.query.filter_by(booking_id=booking_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    rows.reverse()
    return rows


def mark_messages_read(message_ids, reader_id, booking_filter=None):
    # A participant never marks their own messages as read.
    # `booking_filter` restricts the update to messages of bookings it matches.
    if not message_ids:
        return 0
    criteria = [ChatMessage.id.in_(message_ids), ChatMessage.sender_id != reader_id]
    if booking_filter is not None:
        allowed = db.select(Booking.id).where(booking_filter)
        criteria.append(ChatMessage.booking_id.in_(allowed))
    updated = (
        ChatMessage.query.filter(*criteria)
        .update({'is_read': True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def save_tracking_point(booking_id, operator_id, latitude, longitude, status,
                        altitude=None, speed=None, battery_level=None, signal_strength=None):
    point = TrackingPoint(
        booking_id=booking_id,
        operator_id=operator_id,
        latitude=latitude,
        longitude=longitude,
        altitude=altitude,
        speed=speed,
        battery_level=battery_level,
        signal_strength=signal_strength,
        status=status,
    )
    db.session.add(point)
    db.session.commit()
    return point


def latest_tracking_point(booking_id):
    return (
        TrackingPoint.query.filter_by(booking_id=booking_id)
        .order_by(TrackingPoint.timestamp.desc(), TrackingPoint.id.desc())
        .first()
    )


def update_booking_status(booking_id, status):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        return None
    booking.status = status
    booking.updated_at = datetime.utcnow()
    db.session.commit()
    return booking


def create_notification(user_id, type, title, message, data=None, pushed=False):
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data or {},
        is_pushed=pushed,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def pending_notifications(user_id, limit=50):
    return (
        Notification.query.filter_by(user_id=user_id, is_pushed=False)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_notifications_pushed(notification_ids):
    if not notification_ids:
        return 0
    updated = (
        Notification.query.filter(Notification.id.in_(notification_ids))
        .update({'is_pushed': True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def update_online_status(user_id, status):
    # Upsert the presence row
    row = db.session.get(OnlineUser, user_id)
    if row is None:
        row = OnlineUser(user_id=user_id)
        db.session.add(row)
    row.status = status
    row.last_seen = datetime.utcnow()
    db.session.commit()
    return row
