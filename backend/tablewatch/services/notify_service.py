"""
Notify a user that monitoring found a table: persist an in-app notification and push to
every registered device. Best-effort; never raises, so a failure here can't undo the
booking or the job completion that triggered it.
"""
import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from tablewatch.core.constants import NOTIFICATION_MONITOR_MATCH
from tablewatch.models.push_token import PushToken
from tablewatch.models.user_notification import UserNotification
from tablewatch.services.push import PushMessage, send_push

logger = logging.getLogger(__name__)


class MonitorNotifier:
    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session],
        sender: Callable[[str, PushMessage], bool] = send_push,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender

    def notify_monitor_match(
        self,
        *,
        user_id: str,
        booking_id: int,
        place_id: str,
        restaurant_name: str,
        party_size: int,
        slot_datetime: datetime,
    ) -> int:
        """Returns the number of devices the push reached (0 if none or on failure)."""
        message = PushMessage(
            title="Table Available!",
            body=f"A table is available at {restaurant_name} for {party_size} people",
            data={
                "type": "MONITORING_MATCH",
                "bookingId": booking_id,
                "placeId": place_id,
                "datetime": slot_datetime.isoformat(),
            },
        )
        tokens: list[str] = []
        db = self._session_factory()
        try:
            db.add(
                UserNotification(
                    recipient_id=user_id,
                    type=NOTIFICATION_MONITOR_MATCH,
                    read_at=None,
                    payload={
                        "booking_id": booking_id,
                        "place_id": place_id,
                        "restaurant_name": restaurant_name,
                        "party_size": party_size,
                        "datetime": slot_datetime.isoformat(),
                    },
                )
            )
            db.commit()
            tokens = [r.device_token for r in db.query(PushToken).filter(PushToken.user_id == user_id).all()]
        except Exception as e:
            logger.warning("Could not record notification for user %s: %s", user_id, e, exc_info=True)
            db.rollback()
        finally:
            db.close()

        sent = 0
        for token in tokens:
            try:
                if self._sender(token, message):
                    sent += 1
            except Exception as e:
                logger.warning("Push to %s... failed: %s", token[:20], e)
        logger.info("Monitor match for user %s: pushed to %s/%s devices", user_id, sent, len(tokens))
        return sent
