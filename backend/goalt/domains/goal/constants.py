"""
Goal lifecycle limits.
"""
# a user may own at most this many live goals
MAX_GOALS_PER_USER = 5

GOAL_NAME_MAX_LENGTH = 100

# Messenger quick-reply titles cap the useful length of a log line
LOG_TEXT_MAX_LENGTH = 96

LOGS_PAGE_SIZE = 5

FINISHED_SUMMARY_MARK = "🔥"
