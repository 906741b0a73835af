# Flask extensions initialization
# Helps avoid circular imports by initializing extensions without app context

from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_login import LoginManager

db = SQLAlchemy()
# Events of one client are handled inline and in order (async_handlers=False);
# different clients interleave at I/O points on the event loop
socketio = SocketIO(
    async_mode='eventlet',
    cors_allowed_origins='*',
    ping_timeout=60,
    ping_interval=25,
    async_handlers=False,
    manage_transports=True,
    path='socket.io',
    engineio_logger=False,
    socketio_logger=False
)
login_manager = LoginManager()
