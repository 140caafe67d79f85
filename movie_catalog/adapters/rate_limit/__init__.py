"""Rate limiting adapters.

This package provides a small abstraction layer so the API depends on an
interface while the in-memory token bucket limiter and its idle-state sweeper
stay swappable.
"""
