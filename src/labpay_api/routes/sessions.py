"""Post-checkout lookup endpoints used by the success page."""

from fastapi import APIRouter, Depends, Query

from labpay.models.errors import ErrorResponse
from labpay.services.session_lookup import SessionLookupService
from labpay_api.dependencies import get_session_lookup_service
from labpay_api.models.sessions import CheckoutDetailsResponse, SessionToLabResponse

router = APIRouter(tags=["sessions"])

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"description": "Missing or malformed session_id", "model": ErrorResponse},
    404: {"description": "Unknown session or no linked flight lab", "model": ErrorResponse},
}


@router.get(
    "/session-to-lab",
    summary="Map a Checkout Session to its flight lab",
    response_model=SessionToLabResponse,
    responses=_ERROR_RESPONSES,
)
def session_to_lab(
    session_id: str | None = Query(default=None, description="Checkout Session ID (cs_...)"),
    lookup: SessionLookupService = Depends(get_session_lookup_service),
) -> SessionToLabResponse:
    return SessionToLabResponse(lab_id=lookup.lab_id_for_session(session_id))


@router.get(
    "/checkout-details",
    summary="Summarize a completed checkout",
    response_model=CheckoutDetailsResponse,
    responses=_ERROR_RESPONSES,
)
def checkout_details(
    session_id: str | None = Query(default=None, description="Checkout Session ID (cs_...)"),
    lookup: SessionLookupService = Depends(get_session_lookup_service),
) -> CheckoutDetailsResponse:
    """Return the session, lab and coach summary for a checkout."""
    return CheckoutDetailsResponse(**lookup.checkout_details(session_id))
