"""
Test suite for reminders-sync.

This package contains:
- Unit tests for the parser, identity, mapping and merge components
- End-to-end passes against an in-memory Reminders gateway
- Command and CLI dispatch tests
"""
