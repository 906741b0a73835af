from datetime import datetime, timedelta

import pytest

from bookinghub import create_app
from bookinghub.extensions import db, socketio
from bookinghub.models import User, UserSession, Booking


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SOCKETIO_ASYNC_MODE = 'threading'
    REDIS_URL = ''
    LOG_LEVEL = 'WARNING'


OWNER_BOOKING = 42
OTHER_BOOKING = 7


@pytest.fixture
def app():
    flask_app = create_app(TestConfig)
    with flask_app.app_context():
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def router(app):
    return app.extensions['booking_router']


def _user(full_name, role, token, expires_in=timedelta(hours=1)):
    user = User(full_name=full_name, role=role, email=f"{token}@example.com")
    db.session.add(user)
    db.session.flush()
    db.session.add(UserSession(
        user_id=user.id,
        session_token=token,
        status='active',
        expires_at=datetime.utcnow() + expires_in,
    ))
    return user


@pytest.fixture
def people(app):
    """Owner of booking 42, another customer (owner of booking 7), an operator and an admin."""
    users = {
        'owner': _user('Asha Owner', 'customer', 'tok-owner'),
        'stranger': _user('Sam Stranger', 'customer', 'tok-stranger'),
        'operator': _user('Bo Operator', 'operator', 'tok-operator'),
        'admin': _user('Cy Admin', 'admin', 'tok-admin'),
    }
    _user('Ex Pired', 'customer', 'tok-expired', expires_in=timedelta(hours=-1))
    db.session.add(Booking(id=OWNER_BOOKING, user_id=users['owner'].id, status='confirmed'))
    db.session.add(Booking(id=OTHER_BOOKING, user_id=users['stranger'].id, status='confirmed'))
    db.session.commit()
    return users


def frames(client):
    # Outbound frames queued for a test client, oldest first
    return [pkt['args'] for pkt in client.get_received() if pkt['name'] == 'message']


def of_type(received, frame_type):
    return [f for f in received if f['type'] == frame_type]


@pytest.fixture
def connect(app):
    """Open a socket client, optionally authenticate it, and drain its inbox."""
    clients = []

    def _connect(token=None):
        client = socketio.test_client(app)
        clients.append(client)
        client.get_received()
        if token is not None:
            client.send({'type': 'auth', 'token': token})
            client.get_received()
        return client

    yield _connect

    for client in clients:
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def room(connect):
    """Authenticate with `token` and join booking `booking_id`, draining the join frames."""

    def _room(token, booking_id=OWNER_BOOKING):
        client = connect(token)
        client.send({'type': 'join_booking', 'booking_id': booking_id})
        client.get_received()
        return client

    return _room
