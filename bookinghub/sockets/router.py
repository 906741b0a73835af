"""
Event router for booking rooms.

Owns the connection registry and room membership for one process and turns
decoded inbound frames into replies, room broadcasts, persisted rows and relay
publications. Outbound delivery goes through the ``send(sid, frame)`` callable
given at construction, so the router can be driven without a live transport.
"""

import logging
import time

from bookinghub.extensions import db
from bookinghub.functions import (
    store, authenticate_token, can_access_booking, can_report_location,
    accessible_booking_filter, booking_participant_ids
)
from bookinghub.models import MESSAGE_TYPES, TRACKING_STATUSES
from bookinghub.sockets import frames
from bookinghub.sockets.frames import FrameError, frame, error_frame
from bookinghub.sockets.registry import Connection, ConnectionRegistry, RoomMembership

logger = logging.getLogger(__name__)


class EventRouter:

    def __init__(self, send, relay=None, recent_limit=50, pending_limit=50):
        self.send = send
        self.relay = relay
        self.recent_limit = recent_limit
        self.pending_limit = pending_limit
        self.registry = ConnectionRegistry()
        self.rooms = RoomMembership(self.registry, send)
        self._connections = {}
        self.started_at = time.time()

    # --- connection lifecycle ---

    def connect(self, sid):
        connection = Connection(sid)
        self._connections[sid] = connection
        self.send(sid, frame('connection', status='connected', timestamp=frames.now_iso()))
        return connection

    def disconnect(self, sid):
        connection = self._connections.pop(sid, None)
        if connection is None or not connection.authenticated:
            return
        self._release(connection)

    def _release(self, connection):
        participant_id = connection.participant_id
        if not self.registry.remove(participant_id, connection):
            # A newer socket owns this participant now; leave its state alone
            logger.info("[SOCKET DISCONNECT] Stale connection %s for user %s", connection.sid, participant_id)
            connection.rooms.clear()
            connection.current_room = None
            return
        self.rooms.leave_all(connection)
        self._best_effort('online status', store.update_online_status, participant_id, 'offline')
        logger.info("[SOCKET DISCONNECT] User %s is offline", participant_id)

    def connection(self, sid):
        return self._connections.get(sid)

    # --- dispatch ---

    def dispatch(self, sid, raw):
        connection = self._connections.get(sid) or self.connect(sid)
        try:
            frame_type, payload = frames.decode(raw)
        except FrameError as e:
            logger.warning("[SOCKET MESSAGE] Bad frame from %s: %s", sid, e.message)
            self.send(sid, error_frame(e.code, e.message))
            return

        if frame_type not in frames.INBOUND_TYPES:
            self.send(sid, error_frame(frames.UNKNOWN_MESSAGE_TYPE, f"Unknown message type: {frame_type}"))
            return
        if not connection.authenticated and frame_type not in frames.PUBLIC_TYPES:
            self.send(sid, error_frame(frames.AUTHENTICATION_REQUIRED, 'Authentication required'))
            return

        handler = getattr(self, f"on_{frame_type}")
        try:
            handler(connection, payload)
        except FrameError as e:
            db.session.rollback()
            logger.info("[SOCKET %s] Rejected for user %s: %s",
                        frame_type.upper(), connection.participant_id, e.code)
            self.send(sid, error_frame(e.code, e.message))
        except Exception:
            db.session.rollback()
            logger.exception("[SOCKET %s] Failed for user %s", frame_type.upper(), connection.participant_id)
            self.send(sid, error_frame(f"{frame_type}_failed", f"Failed to process {frame_type}"))

    def _best_effort(self, what, func, *args, **kwargs):
        # Side steps whose failure must not fail the operation that triggered them
        try:
            return func(*args, **kwargs)
        except Exception:
            db.session.rollback()
            logger.exception("[SOCKET] Could not update %s", what)
            return None

    def _publish(self, channel, event):
        if self.relay is not None and self.relay.enabled:
            self.relay.publish(channel, event)

    # --- handlers ---

    def on_ping(self, connection, payload):
        self.send(connection.sid, frame('pong', timestamp=frames.now_iso()))

    def on_auth(self, connection, payload):
        try:
            user = authenticate_token(payload.get('token'))
        except Exception:
            db.session.rollback()
            logger.exception("[SOCKET AUTH] Token lookup failed")
            raise FrameError(frames.AUTHENTICATION_FAILED, 'Authentication failed')
        if user is None:
            raise FrameError(frames.AUTHENTICATION_FAILED, 'Invalid authentication token')

        if connection.authenticated and connection.participant_id != user.id:
            self._release(connection)
        connection.participant = user.to_participant()
        previous = self.registry.lookup(user.id)
        if previous is not None and previous is not connection:
            self._adopt_rooms(previous, connection)
        self.registry.register(user.id, connection)
        logger.info("[SOCKET AUTH] User %s (%s) authenticated on %s", user.id, user.role, connection.sid)

        self._best_effort('online status', store.update_online_status, user.id, 'online')
        self.send(connection.sid, frame('auth_success', user=connection.participant))
        self._best_effort('pending notifications', self._push_pending, connection)

    def _adopt_rooms(self, previous, connection):
        # Membership is per participant, so the replacing socket inherits the rooms
        connection.rooms.update(previous.rooms)
        if connection.current_room is None:
            connection.current_room = previous.current_room
        previous.rooms.clear()
        previous.current_room = None

    def _push_pending(self, connection):
        notifications = store.pending_notifications(connection.participant_id, limit=self.pending_limit)
        if not notifications:
            return
        self.send(connection.sid, frame(
            'pending_notifications',
            notifications=[n.to_dict() for n in notifications],
        ))
        store.mark_notifications_pushed([n.id for n in notifications])

    def on_join_booking(self, connection, payload):
        booking_id = frames.require_int(payload, 'booking_id')
        participant = connection.participant
        if not can_access_booking(participant['id'], participant['role'], booking_id):
            raise FrameError(frames.ACCESS_DENIED, 'Access denied to this booking')

        name = self.rooms.join(booking_id, connection)
        logger.info("[SOCKET JOIN] User %s joined %s", participant['id'], name)
        self.send(connection.sid, frame('joined_booking', booking_id=booking_id, room_id=name))
        self.rooms.broadcast(booking_id, frame(
            'user_joined',
            user_id=participant['id'],
            user_name=participant['name'],
            booking_id=booking_id,
        ), exclude=participant['id'])

        messages = self._best_effort('recent messages', store.recent_messages, booking_id, limit=self.recent_limit)
        self.send(connection.sid, frame(
            'recent_messages',
            booking_id=booking_id,
            messages=[m.to_dict() for m in messages or []],
        ))
        point = self._best_effort('current tracking', store.latest_tracking_point, booking_id)
        if point is not None:
            self.send(connection.sid, frame('current_tracking', booking_id=booking_id, tracking=point.to_dict()))

    def on_leave_booking(self, connection, payload):
        booking_id = frames.require_int(payload, 'booking_id')
        participant = connection.participant
        if not can_access_booking(participant['id'], participant['role'], booking_id):
            raise FrameError(frames.ACCESS_DENIED, 'Access denied to this booking')

        self.rooms.leave(booking_id, connection)
        logger.info("[SOCKET LEAVE] User %s left booking %s", connection.participant_id, booking_id)
        self.send(connection.sid, frame('left_booking', booking_id=booking_id))
        self.rooms.broadcast(booking_id, frame(
            'user_left',
            user_id=connection.participant_id,
            booking_id=booking_id,
        ), exclude=connection.participant_id)

    def on_send_message(self, connection, payload):
        booking_id = frames.require_int(payload, 'booking_id')
        content = payload.get('content')
        if not isinstance(content, str) or not content.strip():
            raise FrameError(frames.INVALID_MESSAGE_FORMAT, "'content' must be a non-empty string")
        message_type = payload.get('message_type') or 'text'
        if message_type not in MESSAGE_TYPES:
            raise FrameError(frames.INVALID_MESSAGE_FORMAT, f"Unsupported message_type: {message_type}")
        metadata = payload.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise FrameError(frames.INVALID_MESSAGE_FORMAT, "'metadata' must be an object")

        participant = connection.participant
        if not self.rooms.is_member(booking_id, participant['id']):
            raise FrameError(frames.ACCESS_DENIED, 'Join the booking before sending messages')

        msg = store.save_chat_message(
            booking_id, participant['id'], participant['role'], content,
            message_type=message_type, metadata=metadata,
        )
        event = frame('new_message', message=msg.to_dict())
        self.rooms.broadcast(booking_id, event)
        self._best_effort('chat notifications', self._notify_offline, booking_id, msg, participant)
        self._publish('chat_messages', event)

    def _notify_offline(self, booking_id, msg, sender):
        for user_id in booking_participant_ids(booking_id):
            if user_id == sender['id'] or self.registry.is_online(user_id):
                continue
            store.create_notification(
                user_id,
                'new_message',
                'New Message',
                f"{sender['name']}: {msg.content}",
                data={'booking_id': booking_id, 'message_id': msg.id},
            )

    def on_location_update(self, connection, payload):
        booking_id = frames.require_int(payload, 'booking_id')
        participant = connection.participant
        if not can_report_location(participant['role'], booking_id):
            raise FrameError(frames.ACCESS_DENIED, 'Access denied to update location for this booking')

        latitude = frames.require_coordinate(payload, 'latitude', 90)
        longitude = frames.require_coordinate(payload, 'longitude', 180)
        status = payload.get('status')
        if status not in TRACKING_STATUSES:
            raise FrameError(frames.INVALID_MESSAGE_FORMAT, f"Unsupported tracking status: {status}")

        point = store.save_tracking_point(
            booking_id, participant['id'], latitude, longitude, status,
            altitude=frames.optional_number(payload, 'altitude'),
            speed=frames.optional_number(payload, 'speed'),
            battery_level=frames.optional_number(payload, 'battery_level', int),
            signal_strength=frames.optional_number(payload, 'signal_strength', int),
        )
        event = frame('location_update', **point.to_dict())
        self.rooms.broadcast(booking_id, event)
        self._publish('location_updates', event)

    def on_status_update(self, connection, payload):
        booking_id = frames.require_int(payload, 'booking_id')
        status = payload.get('status')
        if not isinstance(status, str) or not status.strip():
            raise FrameError(frames.INVALID_MESSAGE_FORMAT, "'status' must be a non-empty string")
        message = payload.get('message')
        participant = connection.participant
        if not can_access_booking(participant['id'], participant['role'], booking_id):
            raise FrameError(frames.ACCESS_DENIED, 'Access denied to this booking')

        booking = store.update_booking_status(booking_id, status)
        if booking is None:
            raise FrameError(frames.ACCESS_DENIED, 'Access denied to this booking')
        event = frame(
            'status_update',
            booking_id=booking_id,
            status=status,
            message=message,
            updated_by=participant['id'],
            timestamp=frames.now_iso(),
        )
        self.rooms.broadcast(booking_id, event)

        owner = self.registry.lookup(booking.user_id)
        notification = store.create_notification(
            booking.user_id,
            'status_update',
            'Booking Status Updated',
            f"Your booking status has been updated to: {status}",
            data={'booking_id': booking_id, 'status': status},
            pushed=owner is not None,
        )
        if owner is not None:
            self.send(owner.sid, frame('notification', notification=notification.to_dict()))
        self._publish('booking_updates', event)

    def on_mark_read(self, connection, payload):
        message_ids = frames.require_id_list(payload, 'message_ids')
        participant = connection.participant
        store.mark_messages_read(
            message_ids, participant['id'],
            booking_filter=accessible_booking_filter(participant['id'], participant['role']),
        )
        self.send(connection.sid, frame('messages_marked_read', message_ids=message_ids))

    # --- relay ---

    def handle_relayed(self, channel, event):
        # Re-broadcast a peer's frame to the members connected to this process
        booking_id = event.get('booking_id')
        if booking_id is None and isinstance(event.get('message'), dict):
            booking_id = event['message'].get('booking_id')
        if booking_id is None:
            return
        delivered = self.rooms.broadcast(booking_id, event)
        logger.debug("[RELAY] %s for booking %s delivered to %d local members", channel, booking_id, delivered)

    def stats(self):
        return {
            'uptime_seconds': int(time.time() - self.started_at),
            'connections': len(self._connections),
            'connected_participants': len(self.registry),
            'active_rooms': len(self.rooms),
        }
