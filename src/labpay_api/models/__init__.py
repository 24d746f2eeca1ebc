"""API request/response models.

Domain models live in labpay.models; this package holds HTTP-layer shapes
only.
"""

from labpay_api.models.checkout import CreateCheckoutRequest, CreateCheckoutResponse
from labpay_api.models.sessions import CheckoutDetailsResponse, SessionToLabResponse

__all__ = [
    "CheckoutDetailsResponse",
    "CreateCheckoutRequest",
    "CreateCheckoutResponse",
    "SessionToLabResponse",
]
