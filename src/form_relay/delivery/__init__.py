"""Delivery-state engine for form submission notifications.

Why not Celery / RQ / a broker?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
One relational table is the whole queue. A job moves to `processing` only
through a conditional UPDATE, so any number of worker processes can sweep
the same store and exactly one wins each job. The remaining pieces are a
cumulative backoff table anchored at creation time and a sweep loop.
Adding a broker would add a second source of truth without removing any
of them.
"""
