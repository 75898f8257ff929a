"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

CLASS_NAME_MAX_LENGTH = 100
CLASS_DESCRIPTION_MAX_LENGTH = 500
CAPACITY_MIN = 1
CAPACITY_MAX = 1000

SESSION_TIME_MAX_LENGTH = 50
ATTENDANCE_NOTE_MAX_LENGTH = 255
REQUEST_MESSAGE_MAX_LENGTH = 500

DEFAULT_ROSTER_CAS_RETRIES = 3
DEFAULT_JOIN_REQUEST_COOLDOWN_MINUTES = 0
DEFAULT_LIST_LIMIT = 200
