"""
Application-wide constants.
Centralizes magic numbers and status values for better maintainability.
"""

# Event Status Values
EVENT_STATUS_PENDING = "Pending"
EVENT_STATUS_APPROVED = "Approved"
EVENT_STATUS_REJECTED = "Rejected"

# Event defaults
DEFAULT_EVENT_CAPACITY = 50
MAX_EVENT_TITLE_LENGTH = 100

# Event visibility scopes for non-admin callers
VISIBILITY_SCOPE_APPROVED = "approved"  # everyone sees approved events
VISIBILITY_SCOPE_OWN = "own"  # users only see events they created

# Feedback types
FEEDBACK_TYPE_EVENT = "event"
FEEDBACK_TYPE_WEBSITE = "website"

# Feedback eligibility policies
FEEDBACK_ELIGIBILITY_OPEN = "open"
FEEDBACK_ELIGIBILITY_ATTENDANCE = "attendance"  # must have joined, event must have ended

# Feedback limits
MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 500
MAX_PHOTOS_PER_FEEDBACK = 5
REPORTS_TO_FLAG = 3

# Machine-readable refusal reasons
REASON_NOT_JOINED = "notJoined"
REASON_EVENT_NOT_ENDED = "eventNotEnded"
REASON_ALREADY_SUBMITTED = "alreadySubmitted"

# Default pagination
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Media storage categories
MEDIA_CATEGORY_EVENT = "event"
MEDIA_CATEGORY_FEEDBACK = "feedback"
MEDIA_CATEGORY_AVATAR = "avatar"
