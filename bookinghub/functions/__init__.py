# Functions package

from bookinghub.functions.access import (
    authenticate_token, get_booking, can_access_booking, can_report_location,
    accessible_booking_filter, booking_participant_ids
)
from bookinghub.functions import store

__all__ = [
    'authenticate_token', 'get_booking', 'can_access_booking', 'can_report_location',
    'accessible_booking_filter', 'booking_participant_ids', 'store'
]
