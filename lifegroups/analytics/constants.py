# lifegroups/analytics/constants.py

# Organization time zone for "local" weekdays and calendar months.
DEFAULT_TIMEZONE = "America/Chicago"

# Python weekday numbers (Monday=0) the groups meet on: Wednesday, Thursday.
MEETING_WEEKDAYS = frozenset({2, 3})

# Minimum groups with attendance to keep a week in the unfiltered view.
QUORUM_UNFILTERED = 5

# Any filtered view keeps a week as soon as one group reported.
QUORUM_FILTERED = 1

# How far back a stale registered-member count may be borrowed from.
MEMBERSHIP_FALLBACK_MONTHS = 4

# Attention window: meetings in the last N days, overdue by the buffer.
ATTENTION_LOOKBACK_DAYS = 6
ATTENTION_BUFFER_HOURS = 4
ASSUMED_EVENT_DURATION_HOURS = 2

# Family groups: 1st meeting of the month, 2nd, 3rd.
FAMILY_ROLE_LABELS = ("Mothers Night", "Fathers Night", "Family Night")


def ordinal_label(position: int) -> str:
    """Label for a zero-based meeting position past the family roles."""
    n = position + 1
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix} Meeting"
