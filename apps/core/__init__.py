"""
Core app for Newsdesk.

Provides editorial roles, service credentials, error handling,
observability, and health checks.
"""
