"""Ticketing backend - Domain Action execution engine

Persisted, typed job queue that runs deferred work (communications, inventory
release, settlements, search engine pings) for the ticketing platform.
"""

__version__ = "0.1.0"
