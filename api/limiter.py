"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
Counters are per-process; running several workers multiplies the budget.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Brute-force mitigation for the admin login: 5 attempts per IP per window.
LOGIN_RATE_LIMIT = "5/15 minutes"

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
