"""Rate limiting adapters.

The service starts with an in-memory store per process; a shared store can
replace it behind ``AbstractRateLimiter`` without touching the HTTP layer.
"""
