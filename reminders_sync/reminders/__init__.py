"""
Apple Reminders integration module for reminders-sync.
"""

from .gateway import RemindersGateway, ReminderData
from .tasks import RemindersTaskManager

__all__ = [
    'RemindersGateway',
    'ReminderData',
    'RemindersTaskManager',
]
