"""Personal habit tracker: habits, daily check-ins, streaks, XP and levels."""

__version__ = "0.1.0"
