"""Booking engine services: catalog, exclusivity, pricing, loyalty, lifecycle and waitlist."""
