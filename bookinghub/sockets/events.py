# Socket.IO event handlers
# Every client frame arrives on the 'message' event; the app's router does the rest

import logging
from flask import current_app, request
from bookinghub.extensions import socketio

logger = logging.getLogger(__name__)


def get_router():
    return current_app.extensions['booking_router']


def send_frame(sid, frame):
    # Outbound transport used by the router
    socketio.emit('message', frame, to=sid)


@socketio.on('connect')
def on_connect(auth=None):
    logger.info("[SOCKET CONNECT] Connection %s opened", request.sid)
    get_router().connect(request.sid)


@socketio.on('disconnect')
def on_disconnect(*args):
    logger.info("[SOCKET DISCONNECT] Connection %s closed", request.sid)
    get_router().disconnect(request.sid)


@socketio.on('message')
def on_message(data):
    get_router().dispatch(request.sid, data)


@socketio.on('json')
def on_json(data):
    get_router().dispatch(request.sid, data)
