import os

import uvicorn

from airseries.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def configure_logging() -> None:
    """
    Apply the full logging config. Controlled by:
    - AIRSERIES_LOG_LEVEL to pick the root level (default INFO).
    """
    level = settings.log_level.upper()
    setup_logging(level=level, job_name="airseries")
    logger.info("Logging configured", extra={"level": level})


if __name__ == "__main__":
    configure_logging()

    port = int(os.getenv("PORT", 4000))
    logger.info(f"AirSeries server starting on port {port}")
    uvicorn.run(
        "airseries.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )
