"""API routers package."""

from quotebook.api import quotes, bookings, payments, events, deps

__all__ = [
    "quotes",
    "bookings",
    "payments",
    "events",
    "deps",
]
