# Models package
# Import all models here for convenience

from bookinghub.models.user import User, UserSession, OnlineUser, ROLES, STAFF_ROLES
from bookinghub.models.booking import Booking
from bookinghub.models.content import (
    ChatMessage, TrackingPoint, Notification, MESSAGE_TYPES, TRACKING_STATUSES
)

__all__ = [
    'User', 'UserSession', 'OnlineUser', 'ROLES', 'STAFF_ROLES',
    'Booking',
    'ChatMessage', 'TrackingPoint', 'Notification', 'MESSAGE_TYPES', 'TRACKING_STATUSES'
]
