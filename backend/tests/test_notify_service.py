"""Monitor match notifications: persisted row plus push to the user's devices."""
from unittest.mock import MagicMock

from tablewatch.models.push_token import PushToken
from tablewatch.models.user_notification import UserNotification
from tablewatch.services.notify_service import MonitorNotifier
from tablewatch.services.push import PushMessage, is_expo_token, send_push
from tests.fakes import utc


def _notify(notifier, user_id="u1"):
    return notifier.notify_monitor_match(
        user_id=user_id,
        booking_id=7,
        place_id="place-1",
        restaurant_name="Alinea",
        party_size=2,
        slot_datetime=utc(2024, 6, 1, 20, 30),
    )


def test_persists_and_pushes_to_each_device(db, session_factory):
    db.add_all(
        [
            PushToken(user_id="u1", device_token="ExponentPushToken[abc]", platform="ios"),
            PushToken(user_id="u1", device_token="a1b2c3", platform="ios"),
            PushToken(user_id="u2", device_token="other", platform="ios"),
        ]
    )
    db.commit()
    sender = MagicMock(return_value=True)

    assert _notify(MonitorNotifier(session_factory, sender=sender)) == 2

    sent_tokens = sorted(call.args[0] for call in sender.call_args_list)
    assert sent_tokens == ["ExponentPushToken[abc]", "a1b2c3"]
    message = sender.call_args_list[0].args[1]
    assert message.title == "Table Available!"
    assert message.data["type"] == "MONITORING_MATCH"
    assert message.data["bookingId"] == 7
    row = db.query(UserNotification).one()
    assert row.recipient_id == "u1"
    assert row.type == "monitor_match"
    assert row.payload["restaurant_name"] == "Alinea"


def test_sender_failure_is_absorbed(db, session_factory):
    db.add(PushToken(user_id="u1", device_token="tok", platform="ios"))
    db.commit()
    sender = MagicMock(side_effect=RuntimeError("network"))
    assert _notify(MonitorNotifier(session_factory, sender=sender)) == 0
    assert db.query(UserNotification).count() == 1


def test_no_devices_still_records_notification(db, session_factory):
    assert _notify(MonitorNotifier(session_factory, sender=MagicMock())) == 0
    assert db.query(UserNotification).count() == 1


def test_token_routing():
    assert is_expo_token("ExponentPushToken[xyz]")
    assert not is_expo_token("a1b2c3d4")


def test_apns_without_config_is_a_noop(monkeypatch):
    for key in ("APNS_BUNDLE_ID", "APNS_KEY_ID", "APNS_TEAM_ID"):
        monkeypatch.delenv(key, raising=False)
    assert send_push("a1b2c3d4", PushMessage(title="t", body="b")) is False
