"""Rate limiting adapters.

Request handlers depend on the abstract limiter so the in-process registry can
later be replaced by a shared counter store (e.g., a key-value store with
atomic increment and expiry) without touching the API layer.
"""
