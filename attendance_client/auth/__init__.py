"""
Authentication package for the Attendance Client.

This package contains session storage, the explicit session object and the
session lifecycle (login, registration, logout, bootstrap).
"""
