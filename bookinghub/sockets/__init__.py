# Socket handlers package; importing it registers the Socket.IO events

from bookinghub.sockets import events  # noqa
from bookinghub.sockets.router import EventRouter
from bookinghub.sockets.registry import Connection, ConnectionRegistry, RoomMembership, room_name

__all__ = ['EventRouter', 'Connection', 'ConnectionRegistry', 'RoomMembership', 'room_name']
