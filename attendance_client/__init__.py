"""
Attendance Client.

Async client for the HR attendance-tracking API with persisted sessions and
transparent credential renewal.
"""

__version__ = "1.0.0"
