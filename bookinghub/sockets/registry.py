# Connection registry and booking-room membership

import logging

logger = logging.getLogger(__name__)


def room_name(booking_id):
    return f"booking_{booking_id}"


class Connection:
    # One live socket; `participant` is None until a successful `auth`

    def __init__(self, sid):
        self.sid = sid
        self.participant = None
        self.rooms = set()
        self.current_room = None

    @property
    def authenticated(self):
        return self.participant is not None

    @property
    def participant_id(self):
        return self.participant['id'] if self.participant else None

    def __repr__(self):
        return f"<Connection {self.sid} participant={self.participant_id}>"


class ConnectionRegistry:
    # participant id -> Connection; registering again overwrites (last writer wins)

    def __init__(self):
        self._by_participant = {}

    def register(self, participant_id, connection):
        previous = self._by_participant.get(participant_id)
        if previous is not None and previous is not connection:
            logger.info("[REGISTRY] Participant %s re-registered, %s replaces %s",
                        participant_id, connection.sid, previous.sid)
        self._by_participant[participant_id] = connection

    def lookup(self, participant_id):
        return self._by_participant.get(participant_id)

    def remove(self, participant_id, connection=None):
        # With `connection` given, only remove if it is still the registered one
        current = self._by_participant.get(participant_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False
        del self._by_participant[participant_id]
        return True

    def is_online(self, participant_id):
        return participant_id in self._by_participant

    def participant_ids(self):
        return set(self._by_participant)

    def __len__(self):
        return len(self._by_participant)

    def __contains__(self, participant_id):
        return participant_id in self._by_participant


class RoomMembership:
    """Booking room id -> set of participant ids.

    Rooms exist only while they have members. Delivery goes through the
    registry, so members without a live connection are skipped.
    """

    def __init__(self, registry, send):
        self.registry = registry
        self._send = send
        self._rooms = {}

    def join(self, booking_id, connection):
        name = room_name(booking_id)
        self._rooms.setdefault(name, set()).add(connection.participant_id)
        connection.rooms.add(name)
        connection.current_room = name
        return name

    def leave(self, booking_id, connection):
        return self.discard(room_name(booking_id), connection)

    def discard(self, name, connection):
        connection.rooms.discard(name)
        if connection.current_room == name:
            connection.current_room = None
        members = self._rooms.get(name)
        if members is None:
            return False
        members.discard(connection.participant_id)
        if not members:
            del self._rooms[name]
        return True

    def leave_all(self, connection):
        for name in list(connection.rooms):
            self.discard(name, connection)

    def members(self, booking_id):
        return set(self._rooms.get(room_name(booking_id), ()))

    def is_member(self, booking_id, participant_id):
        return participant_id in self._rooms.get(room_name(booking_id), ())

    def broadcast(self, booking_id, frame, exclude=None):
        delivered = 0
        for participant_id in list(self._rooms.get(room_name(booking_id), ())):
            if participant_id == exclude:
                continue
            connection = self.registry.lookup(participant_id)
            if connection is None:
                continue
            self._send(connection.sid, frame)
            delivered += 1
        return delivered

    def room_names(self):
        return set(self._rooms)

    def __len__(self):
        return len(self._rooms)
