# Inbound frame decoding and outbound frame construction

import json
from datetime import datetime

INVALID_MESSAGE_FORMAT = 'invalid_message_format'
AUTHENTICATION_REQUIRED = 'authentication_required'
AUTHENTICATION_FAILED = 'authentication_failed'
ACCESS_DENIED = 'access_denied'
UNKNOWN_MESSAGE_TYPE = 'unknown_message_type'

# Frame types accepted before authentication
PUBLIC_TYPES = ('auth', 'ping')

INBOUND_TYPES = (
    'auth', 'ping', 'join_booking', 'leave_booking', 'send_message',
    'location_update', 'status_update', 'mark_read',
)


class FrameError(Exception):
    # Carries the error code sent back to the client

    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


def now_iso():
    return datetime.utcnow().strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def decode(raw):
    """Parse an inbound frame into ``(type, payload)``.

    The web client nests its fields under ``data``; flat frames are accepted
    too and nested keys win on collision.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise FrameError(INVALID_MESSAGE_FORMAT, 'Invalid message format')
    if not isinstance(raw, dict):
        raise FrameError(INVALID_MESSAGE_FORMAT, 'Invalid message format')

    frame_type = raw.get('type')
    if not isinstance(frame_type, str) or not frame_type:
        raise FrameError(INVALID_MESSAGE_FORMAT, 'Message type is required')

    payload = {k: v for k, v in raw.items() if k not in ('type', 'data')}
    nested = raw.get('data')
    if nested is not None:
        if not isinstance(nested, dict):
            raise FrameError(INVALID_MESSAGE_FORMAT, 'Message data must be an object')
        payload.update(nested)
    return frame_type, payload


def require_int(payload, key):
    value = payload.get(key)
    if isinstance(value, bool):
        value = None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be an integer")


def optional_number(payload, key, cast=float):
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be a number")
    if cast is int:
        if not number.is_integer():
            raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be an integer")
        return int(number)
    return cast(number)


def require_coordinate(payload, key, bound):
    value = optional_number(payload, key)
    if value is None or not -bound <= value <= bound:
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be within +/-{bound}")
    return value


def require_id_list(payload, key):
    values = payload.get(key)
    if not isinstance(values, list):
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must be a list")
    try:
        return [int(v) for v in values if not isinstance(v, bool)]
    except (TypeError, ValueError):
        raise FrameError(INVALID_MESSAGE_FORMAT, f"'{key}' must contain integers")


def frame(frame_type, **fields):
    fields['type'] = frame_type
    return fields


def error_frame(code, message):
    return {'type': 'error', 'error': code, 'message': message, 'timestamp': now_iso()}
