"""
Articles app for Newsdesk.

Provides editorial article storage, the workflow state machine and the
articles API.
"""
