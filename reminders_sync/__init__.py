"""
reminders-sync: Obsidian vault tasks mirrored in Apple Reminders.
"""

__version__ = "0.1.0"
