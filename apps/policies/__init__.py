"""
Policies app for Newsdesk.

Role registry, policy checks, policy chains and the decision audit trail
that gate every editorial operation.
"""
