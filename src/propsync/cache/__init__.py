"""Query cache layer.

This package is the single owner of cached server state. Views read it
through subscriptions; writes reach it only through fetch settlement and
invalidation.
"""
