from tablewatch.models.booking import Booking
from tablewatch.models.monitor_job import MonitorJob
from tablewatch.models.push_token import PushToken
from tablewatch.models.search_cache import SearchCache
from tablewatch.models.user_notification import UserNotification

__all__ = [
    "Booking",
    "MonitorJob",
    "PushToken",
    "SearchCache",
    "UserNotification",
]
