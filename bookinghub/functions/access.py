# Authentication and booking access checks

from datetime import datetime
from bookinghub.extensions import db
from bookinghub.models import User, UserSession, Booking, STAFF_ROLES


def authenticate_token(token):
    # Resolve an active, unexpired session token to its user (or None)
    if not token or not isinstance(token, str):
        return None
    return (
        User.query.join(UserSession, UserSession.user_id == User.id)
        .filter(
            UserSession.session_token == token,
            UserSession.status == 'active',
            UserSession.expires_at > datetime.utcnow(),
        )
        .first()
    )


def get_booking(booking_id):
    return db.session.get(Booking, booking_id)


def can_access_booking(user_id, role, booking_id):
    # Owner of the booking, or staff (admin/operator)
    booking = get_booking(booking_id)
    if booking is None:
        return False
    return booking.user_id == user_id or role in STAFF_ROLES


def can_report_location(role, booking_id):
    # Only staff may publish telemetry, and only for an existing booking
    if role not in STAFF_ROLES:
        return False
    return get_booking(booking_id) is not None


def accessible_booking_filter(user_id, role):
    # SQL criterion for bookings the caller is a party to; None means no restriction
    if role in STAFF_ROLES:
        return None
    return Booking.user_id == user_id


def booking_participant_ids(booking_id):
    # Owner plus every admin/operator: everyone who may follow this booking
    ids = set()
    booking = get_booking(booking_id)
    if booking is not None:
        ids.add(booking.user_id)
    for (uid,) in User.query.with_entities(User.id).filter(User.role.in_(STAFF_ROLES)).all():
        ids.add(uid)
    return ids
