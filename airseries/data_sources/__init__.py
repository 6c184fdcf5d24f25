"""Upstream provider adapters and the factory that picks a backend."""

from .base import (
    AirQualityDataSource,
    CallableAirQualityDataSource,
    Err,
    Ok,
    ProviderResult,
)
from .factory import build_data_source

__all__ = [
    "build_data_source",
    "AirQualityDataSource",
    "CallableAirQualityDataSource",
    "Err",
    "Ok",
    "ProviderResult",
]
