"""
HTTP package for the Attendance Client.

This package contains the transport, the credential renewal client and the
request/response middleware.
"""
