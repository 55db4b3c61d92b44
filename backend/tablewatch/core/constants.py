"""
Centralized constants for search ranking and the monitor scheduler.

Change job IDs, limits or status names here instead of scattering literals across
services and routes. Tunable intervals come from Settings (.env).
"""

# Scheduler job IDs (must match ids used in main.py add_job)
MONITOR_DISPATCH_JOB_ID = "monitor_dispatch"
SEARCH_CACHE_PRUNE_JOB_ID = "search_cache_prune"

# Search: ranked list is truncated to this many results
SEARCH_RESULT_LIMIT = 5
# Candidates further than this from the requested time are dropped (exactly 30 is kept)
TIME_WINDOW_MINUTES = 30

# Ranking weights
SCORE_LOCATION_MATCH = 30
SCORE_LOCATION_PARTIAL = 10
SCORE_RATING_MULTIPLIER = 8
SCORE_CUISINE_EXACT = 20
SCORE_CUISINE_FUZZY = 10
SCORE_PER_VIBE = 5
SCORE_TIME_PROXIMITY_MAX = 10

# MonitorJob status. Transitions are ACTIVE -> one of the terminal states, never back.
MONITOR_ACTIVE = "ACTIVE"
MONITOR_COMPLETED = "COMPLETED"
MONITOR_CANCELLED = "CANCELLED"
MONITOR_EXPIRED = "EXPIRED"  # tick budget used up without a verified slot
MONITOR_TERMINAL_STATUSES = (MONITOR_COMPLETED, MONITOR_CANCELLED, MONITOR_EXPIRED)

# Booking status
BOOKING_AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"  # created by a monitor match
BOOKING_PENDING_EXTERNAL = "PENDING_EXTERNAL"  # user finishes on the platform's page
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_CANCELLED = "CANCELLED"

# Monitor request validation
MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 20

# user_notifications.type for monitor hits
NOTIFICATION_MONITOR_MATCH = "monitor_match"
