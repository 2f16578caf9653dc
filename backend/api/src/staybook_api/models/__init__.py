"""API-specific request/response models.

Domain models (Reservation, SearchResult, PaymentSession, ...) live in
``staybook.models`` and are reused as response models where they fit.
"""

__all__: list[str] = []
