"""Shared HTTP session and the call wrapper every provider adapter goes through."""
from __future__ import annotations

from typing import Any, Mapping

import requests
import requests_cache
from retry_requests import retry

from airseries.config import settings
from airseries.data_sources.base import Err, Ok, ProviderResult
from utils.logging_utils import get_tagged_logger, mask_params, mask_url_secrets

logger = get_tagged_logger(__name__, tag="data_sources/http")


def _fail_fast_on_timeouts(sess: requests.Session) -> requests.Session:
    """Keep the 5xx status retries but give up on the first connect or read error."""
    for prefix in ("http://", "https://"):
        adapter = sess.get_adapter(prefix)
        adapter.max_retries = adapter.max_retries.new(connect=0, read=0, other=0)
    return sess


cache_session = requests_cache.CachedSession(settings.http_cache_name, expire_after=settings.http_cache_seconds)
session = _fail_fast_on_timeouts(retry(cache_session, retries=settings.http_retries, backoff_factor=0.2))


def safe_get(
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    timeout: float | None = None,
    source: str = "http",
) -> ProviderResult[Any]:
    """
    GET `url` and decode JSON, capturing every failure into an Err.

    Transport errors, non-2xx statuses and undecodable bodies all come back as
    Err so callers can inspect them without exception handling.
    """
    timeout = timeout if timeout is not None else settings.request_timeout_seconds
    try:
        resp = session.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
        return Ok(resp.json())
    except requests.HTTPError as exc:
        status = getattr(exc.response, "status_code", None)
        body = getattr(exc.response, "text", "") or ""
        logger.error(
            "Provider returned an error status",
            extra={
                "source": source,
                "url": mask_url_secrets(url),
                "params": mask_params(params),
                "status": status,
                "body": body[:500],
            },
        )
        return Err(reason=f"{source} returned HTTP {status}", status=status)
    except requests.exceptions.JSONDecodeError as exc:
        logger.error(
            "Provider returned a malformed body",
            extra={"source": source, "url": mask_url_secrets(url), "error": str(exc)},
        )
        return Err(reason=f"{source} returned a malformed body")
    except requests.RequestException as exc:
        logger.error(
            "Provider request failed",
            extra={"source": source, "url": mask_url_secrets(url), "params": mask_params(params), "error": str(exc)},
        )
        return Err(reason=f"{source} request failed: {exc.__class__.__name__}")
    except ValueError as exc:
        logger.error(
            "Provider returned a malformed body",
            extra={"source": source, "url": mask_url_secrets(url), "error": str(exc)},
        )
        return Err(reason=f"{source} returned a malformed body")
