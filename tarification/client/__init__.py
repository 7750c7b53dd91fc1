"""
Async client layer: HTTP client and the editing state of the tarification
panel, payment terms and room demand.
"""

from tarification.client.api_client import ApiClient, ApiError
from tarification.client.payment_terms_editor import PaymentTermsDraft
from tarification.client.tarification_session import SessionClosedError, SessionState, TarificationSession

__all__ = [
    "ApiClient",
    "ApiError",
    "PaymentTermsDraft",
    "SessionClosedError",
    "SessionState",
    "TarificationSession",
]
