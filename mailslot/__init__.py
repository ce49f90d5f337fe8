"""Direct-mail slot booking engine.

Exclusive campaign/route/industry slots, layered pricing, the booking
lifecycle and the waitlist, exposed as a FastAPI service.
"""

__all__: list[str] = []
