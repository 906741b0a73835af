# Realtime content models: chat messages, tracking points, notifications

from datetime import datetime
from bookinghub.extensions import db

MESSAGE_TYPES = ('text', 'image', 'file', 'location', 'system')
TRACKING_STATUSES = ('preparing', 'takeoff', 'flying', 'recording', 'returning', 'landed')


def iso(value):
    # Render a naive UTC datetime the way every outbound frame carries it
    return value.strftime('%Y-%m-%dT%H:%M:%SZ') if value else None


class ChatMessage(db.Model):
    # Chat message inside a booking room
    __tablename__ = 'chat_messages'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    sender_type = db.Column(db.String(20), nullable=False)  # participant role at send time
    message_type = db.Column(db.String(20), default='text')
    content = db.Column(db.Text, nullable=False)
    # `metadata` is reserved on declarative classes
    meta = db.Column('metadata', db.JSON, nullable=True)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sender = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'sender_id': self.sender_id,
            'sender_name': self.sender.full_name if self.sender else None,
            'sender_type': self.sender_type,
            'message_type': self.message_type,
            'content': self.content,
            'metadata': self.meta or {},
            'is_read': bool(self.is_read),
            'created_at': iso(self.created_at),
        }


class TrackingPoint(db.Model):
    # Append-only telemetry sample; the newest row is the booking's current position
    __tablename__ = 'live_tracking'

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    latitude = db.Column(db.Numeric(10, 8, asdecimal=False), nullable=False)
    longitude = db.Column(db.Numeric(11, 8, asdecimal=False), nullable=False)
    altitude = db.Column(db.Numeric(8, 2, asdecimal=False), nullable=True)
    speed = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=True)
    battery_level = db.Column(db.Integer, nullable=True)
    signal_strength = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), default='preparing')
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'booking_id': self.booking_id,
            'operator_id': self.operator_id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'speed': self.speed,
            'battery_level': self.battery_level,
            'signal_strength': self.signal_strength,
            'status': self.status,
            'timestamp': iso(self.timestamp),
        }


class Notification(db.Model):
    # Durable notice for a participant, pushed on their next authentication
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=True)
    is_read = db.Column(db.Boolean, default=False)
    is_pushed = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    read_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data or {},
            'is_read': bool(self.is_read),
            'created_at': iso(self.created_at),
        }
