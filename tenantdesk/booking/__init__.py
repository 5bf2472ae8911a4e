"""Booking-service administration (venues, spaces, presets, services)."""

from .client import BookingClient, BookingGraphQLError, BookingServiceError

__all__ = ["BookingClient", "BookingGraphQLError", "BookingServiceError"]
