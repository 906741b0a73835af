# Participant-related models (owned by the auth subsystem, read here)

from datetime import datetime
from flask_login import UserMixin
from bookinghub.extensions import db

ROLES = ('customer', 'operator', 'admin')
STAFF_ROLES = ('admin', 'operator')


class User(UserMixin, db.Model):
    # Authenticated participant
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    role = db.Column(db.String(20), nullable=False, default='customer')  # 'customer', 'operator', 'admin'

    sessions = db.relationship('UserSession', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES

    def to_participant(self):
        return {'id': self.id, 'name': self.full_name, 'role': self.role}


class UserSession(db.Model):
    # Login session; `session_token` is what clients present on `auth`
    __tablename__ = 'user_sessions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    session_token = db.Column(db.String(255), unique=True, nullable=False)
    status = db.Column(db.String(20), default='active')  # 'active', 'revoked', 'expired'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)


class OnlineUser(db.Model):
    # Presence row, one per participant
    __tablename__ = 'online_users'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    status = db.Column(db.String(20), default='online')  # 'online', 'away', 'busy', 'offline'
    last_seen = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
