"""Country lookup used to decide whether climate reanalysis is queried."""
from __future__ import annotations

from airseries.data_sources import http
from airseries.data_sources.base import Err, Ok, ProviderResult
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="geocode")

BIGDATACLOUD_REVERSE_URL = "https://api.bigdatacloud.net/data/reverse-geocode-client"


def reverse_geocode_country(
    latitude: float,
    longitude: float,
    *,
    timeout: float | None = None,
) -> ProviderResult[str]:
    """Country code from BigDataCloud's keyless client endpoint."""
    params = {"latitude": latitude, "longitude": longitude, "localityLanguage": "en"}
    result = http.safe_get(BIGDATACLOUD_REVERSE_URL, params=params, timeout=timeout, source="bigdatacloud")
    if not result.ok:
        return result
    data = result.data if isinstance(result.data, dict) else {}
    code = data.get("countryCode")
    if not code:
        logger.warning("Reverse geocode returned no country", extra={"latitude": latitude, "longitude": longitude})
        return Err(reason="bigdatacloud response has no countryCode")
    return Ok(str(code).upper())

