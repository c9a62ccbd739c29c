"""
Streak window constants.
"""
# a progress event on the next calendar day extends the streak only within this window
STREAK_WINDOW_HOURS = 48
STREAK_WINDOW_SECONDS = STREAK_WINDOW_HOURS * 3600

# day-of-week deltas that mean "the next calendar day" (Sunday -> Monday wraps to -6)
NEXT_DAY_DELTAS = (1, -6)

# attempts for a compare-and-swap goal write before giving up
MAX_WRITE_ATTEMPTS = 3
