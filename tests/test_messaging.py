from unittest import mock

import pytest

from bookinghub.extensions import db
from bookinghub.functions import store
from bookinghub.models import Booking, ChatMessage, Notification, TrackingPoint

from conftest import OWNER_BOOKING, frames, of_type


def _notifications(user):
    return Notification.query.filter_by(user_id=user.id).all()


def test_message_broadcast_to_room_including_sender(room, people):
    owner = room('tok-owner')
    operator = room('tok-operator')
    frames(owner)

    owner.send({'type': 'send_message', 'data': {
        'booking_id': OWNER_BOOKING, 'content': 'Is the drone ready?', 'metadata': {'client_id': 'abc'},
    }})

    (mine,) = of_type(frames(owner), 'new_message')
    (theirs,) = of_type(frames(operator), 'new_message')
    assert mine == theirs
    message = mine['message']
    assert message['content'] == 'Is the drone ready?'
    assert message['sender_id'] == people['owner'].id
    assert message['sender_name'] == 'Asha Owner'
    assert message['sender_type'] == 'customer'
    assert message['message_type'] == 'text'
    assert message['metadata'] == {'client_id': 'abc'}
    assert db.session.get(ChatMessage, message['id']) is not None


def test_replayed_message_is_stored_twice(room, people):
    owner = room('tok-owner')
    payload = {'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'same'}

    owner.send(payload)
    owner.send(payload)

    ids = [f['message']['id'] for f in of_type(frames(owner), 'new_message')]
    assert len(ids) == 2
    assert ids[0] != ids[1]
    assert ChatMessage.query.filter_by(content='same').count() == 2


def test_sending_requires_room_membership(connect, people):
    stranger = connect('tok-stranger')
    stranger.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'hello'})
    (error,) = frames(stranger)
    assert error['error'] == 'access_denied'
    assert ChatMessage.query.count() == 0


def test_empty_content_is_invalid(room, people):
    owner = room('tok-owner')
    owner.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': '   '})
    assert frames(owner)[0]['error'] == 'invalid_message_format'


def test_offline_participants_get_one_notification(room, people):
    owner = room('tok-owner')
    room('tok-operator')
    # admin is a booking participant but not connected

    owner.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'hello'})

    (note,) = _notifications(people['admin'])
    assert note.type == 'new_message'
    assert note.message == 'Asha Owner: hello'
    assert note.data['booking_id'] == OWNER_BOOKING
    assert _notifications(people['operator']) == []
    assert _notifications(people['owner']) == []
    assert _notifications(people['stranger']) == []


def test_persistence_failure_maps_to_operation_error(room, people, monkeypatch):
    owner = room('tok-owner')

    def boom(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr(store, 'save_chat_message', boom)
    owner.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'hello'})

    (error,) = frames(owner)
    assert error['error'] == 'send_message_failed'
    assert owner.is_connected()


def test_chat_message_is_relayed(room, router, people):
    owner = room('tok-owner')
    relay = mock.Mock(enabled=True)
    router.relay = relay

    owner.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'hello'})

    relay.publish.assert_called_once()
    channel, event = relay.publish.call_args[0]
    assert channel == 'chat_messages'
    assert event['type'] == 'new_message'


def test_relay_failure_is_reported(room, router, people):
    owner = room('tok-owner')
    router.relay = mock.Mock(enabled=True, **{'publish.side_effect': ConnectionError('broker down')})

    owner.send({'type': 'send_message', 'booking_id': OWNER_BOOKING, 'content': 'hello'})

    received = frames(owner)
    assert of_type(received, 'new_message')
    assert of_type(received, 'error')[0]['error'] == 'send_message_failed'


def test_live_tracking_scenario(room, people):
    owner = room('tok-owner')
    operator = room('tok-operator')
    frames(owner)

    operator.send({'type': 'location_update', 'booking_id': OWNER_BOOKING,
                   'latitude': 28.61, 'longitude': 77.20, 'status': 'flying', 'battery_level': 80})

    point = TrackingPoint.query.filter_by(booking_id=OWNER_BOOKING).one()
    assert point.operator_id == people['operator'].id

    (update,) = of_type(frames(owner), 'location_update')
    assert update['latitude'] == pytest.approx(28.61)
    assert update['longitude'] == pytest.approx(77.20)
    assert update['status'] == 'flying'
    assert update['battery_level'] == 80


def test_late_joiner_receives_current_tracking(room, connect, people):
    operator = room('tok-operator')
    operator.send({'type': 'location_update', 'booking_id': OWNER_BOOKING,
                   'latitude': 28.61, 'longitude': 77.20, 'status': 'flying'})

    late = connect('tok-admin')
    late.send({'type': 'join_booking', 'booking_id': OWNER_BOOKING})
    (current,) = of_type(frames(late), 'current_tracking')
    assert current['tracking']['latitude'] == pytest.approx(28.61)
    assert current['tracking']['longitude'] == pytest.approx(77.20)
    assert current['tracking']['status'] == 'flying'


def test_customer_cannot_report_location(room, people):
    owner = room('tok-owner')
    owner.send({'type': 'location_update', 'booking_id': OWNER_BOOKING,
                'latitude': 1, 'longitude': 1, 'status': 'flying'})
    assert frames(owner)[0]['error'] == 'access_denied'
    assert TrackingPoint.query.count() == 0


@pytest.mark.parametrize('fields', [
    {'latitude': 95, 'longitude': 0, 'status': 'flying'},
    {'latitude': 0, 'longitude': -181, 'status': 'flying'},
    {'latitude': 0, 'longitude': 0, 'status': 'hovering'},
])
def test_invalid_telemetry_is_rejected(room, people, fields):
    operator = room('tok-operator')
    operator.send(dict({'type': 'location_update', 'booking_id': OWNER_BOOKING}, **fields))
    assert frames(operator)[0]['error'] == 'invalid_message_format'


def test_status_update_notifies_online_owner(room, people):
    owner = room('tok-owner')
    operator = room('tok-operator')
    frames(owner)

    operator.send({'type': 'status_update', 'booking_id': OWNER_BOOKING, 'status': 'in_progress',
                   'message': 'Drone is airborne'})

    received = frames(owner)
    (update,) = of_type(received, 'status_update')
    assert update['status'] == 'in_progress'
    assert update['updated_by'] == people['operator'].id
    (pushed,) = of_type(received, 'notification')
    assert pushed['notification']['title'] == 'Booking Status Updated'

    assert db.session.get(Booking, OWNER_BOOKING).status == 'in_progress'
    (note,) = _notifications(people['owner'])
    assert note.is_pushed is True


def test_status_update_for_offline_owner_waits(room, connect, people):
    operator = room('tok-operator')
    operator.send({'type': 'status_update', 'booking_id': OWNER_BOOKING, 'status': 'completed'})

    (note,) = _notifications(people['owner'])
    assert note.is_pushed is False

    owner = connect()
    owner.send({'type': 'auth', 'token': 'tok-owner'})
    (batch,) = of_type(frames(owner), 'pending_notifications')
    assert batch['notifications'][0]['data'] == {'booking_id': OWNER_BOOKING, 'status': 'completed'}


def test_stranger_cannot_update_status(connect, people):
    stranger = connect('tok-stranger')
    stranger.send({'type': 'status_update', 'booking_id': OWNER_BOOKING, 'status': 'cancelled'})
    assert frames(stranger)[0]['error'] == 'access_denied'
    assert db.session.get(Booking, OWNER_BOOKING).status == 'confirmed'


def test_mark_read_skips_own_messages(connect, people):
    owner, operator = people['owner'], people['operator']
    own = ChatMessage(booking_id=OWNER_BOOKING, sender_id=owner.id, sender_type='customer', content='mine')
    other = ChatMessage(booking_id=OWNER_BOOKING, sender_id=operator.id, sender_type='operator', content='theirs')
    db.session.add_all([own, other])
    db.session.commit()
    ids = [own.id, other.id]

    client = connect('tok-owner')
    client.send({'type': 'mark_read', 'message_ids': ids})

    (reply,) = frames(client)
    assert reply == {'type': 'messages_marked_read', 'message_ids': ids}
    db.session.expire_all()
    assert db.session.get(ChatMessage, ids[0]).is_read is False
    assert db.session.get(ChatMessage, ids[1]).is_read is True


def test_mark_read_ignores_bookings_of_others(connect, people):
    operator = people['operator']
    msg = ChatMessage(booking_id=OWNER_BOOKING, sender_id=operator.id, sender_type='operator', content='private')
    db.session.add(msg)
    db.session.commit()

    stranger = connect('tok-stranger')
    stranger.send({'type': 'mark_read', 'message_ids': [msg.id]})

    (reply,) = frames(stranger)
    assert reply == {'type': 'messages_marked_read', 'message_ids': [msg.id]}
    db.session.expire_all()
    assert db.session.get(ChatMessage, msg.id).is_read is False


def test_staff_may_mark_any_booking_read(connect, people):
    owner = people['owner']
    msg = ChatMessage(booking_id=OWNER_BOOKING, sender_id=owner.id, sender_type='customer', content='hi')
    db.session.add(msg)
    db.session.commit()

    connect('tok-admin').send({'type': 'mark_read', 'message_ids': [msg.id]})

    db.session.expire_all()
    assert db.session.get(ChatMessage, msg.id).is_read is True


def test_location_update_is_relayed(room, router, people):
    operator = room('tok-operator')
    router.relay = mock.Mock(enabled=True)

    operator.send({'type': 'location_update', 'booking_id': OWNER_BOOKING,
                   'latitude': 10, 'longitude': 20, 'status': 'takeoff'})

    channel, event = router.relay.publish.call_args[0]
    assert channel == 'location_updates'
    assert event['type'] == 'location_update'
    assert event['booking_id'] == OWNER_BOOKING


def test_status_update_is_relayed(room, router, people):
    operator = room('tok-operator')
    router.relay = mock.Mock(enabled=True)

    operator.send({'type': 'status_update', 'booking_id': OWNER_BOOKING, 'status': 'in_progress'})

    channel, event = router.relay.publish.call_args[0]
    assert channel == 'booking_updates'
    assert event['type'] == 'status_update'
    assert event['status'] == 'in_progress'


def test_fractional_battery_level_is_rejected(room, people):
    operator = room('tok-operator')
    operator.send({'type': 'location_update', 'booking_id': OWNER_BOOKING,
                   'latitude': 1, 'longitude': 1, 'status': 'flying', 'battery_level': 80.9})
    assert frames(operator)[0]['error'] == 'invalid_message_format'
    assert TrackingPoint.query.count() == 0
