# Domain Stats Package
from .models import DailyStats, SessionStats, SessionSummary

__all__ = ["DailyStats", "SessionStats", "SessionSummary"]
