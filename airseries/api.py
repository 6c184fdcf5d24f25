"""HTTP API for the hourly air-quality series."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from .aq_service import get_air_quality_series
from .config import settings
from .data_sources import build_data_source
from .domain import InvalidCoordinatesError, SeriesResponse
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="airseries/api")

router = APIRouter()
DATA_SOURCE = build_data_source(settings)

EXAMPLE_QUERY = "/api/aq?lat=34.0522&lon=-118.2437"


def _client_ip(request: Request) -> str:
    """Best-effort caller address for request logs."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.get(
    "/aq",
    response_model=SeriesResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
def get_air_quality(
    request: Request,
    lat: Optional[str] = Query(default=None),
    lon: Optional[str] = Query(default=None),
):
    """Return the reconciled hourly series for a point."""
    logger.info(f"Request from {_client_ip(request)} for coords: {lat or 'n/a'},{lon or 'n/a'}")
    try:
        return get_air_quality_series(lat, lon, data_source=DATA_SOURCE, settings=settings)
    except InvalidCoordinatesError as exc:
        logger.debug("Rejected request with invalid coordinates", extra={"error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(exc), "example": EXAMPLE_QUERY},
        )
