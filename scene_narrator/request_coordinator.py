import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

from .detection_provider import DetectionProvider

# Configure logging
logger = logging.getLogger(__name__)


class InvalidInputError(ValueError):
    """Raised when a detection request carries no image data"""


class RequestCoordinator:
    """
    Limits concurrent detection calls and times each one
    """

    def __init__(self, provider: DetectionProvider, max_concurrent_requests: int = 1):
        """
        Initialize the coordinator

        Args:
            provider: Detection provider to call
            max_concurrent_requests: Maximum number of in-flight calls
        """
        if max_concurrent_requests < 1:
            raise ValueError(f"max_concurrent_requests must be >= 1, got {max_concurrent_requests}")

        self.provider = provider
        self.max_concurrent_requests = max_concurrent_requests
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)

        # Statistics
        self.in_flight = 0
        self.peak_in_flight = 0
        self.total_requests = 0
        self.last_duration_ms: Optional[float] = None
        self.last_completed_at: Optional[datetime] = None

    async def detect(self, image_bytes: bytes) -> str:
        """
        Describe an image through the provider

        Args:
            image_bytes: Encoded image

        Returns:
            str: Provider description (or its fallback text)
        """
        if not image_bytes:
            raise InvalidInputError("Image bytes cannot be null or empty")

        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            start = time.perf_counter()
            logger.info(f"[{datetime.now():%H:%M:%S}] Starting image analysis...")

            try:
                description = await self.provider.analyze(image_bytes)
            finally:
                self.last_duration_ms = (time.perf_counter() - start) * 1000.0
                self.last_completed_at = datetime.now()
                self.in_flight -= 1
                self.total_requests += 1

            logger.info(f"[{self.last_completed_at:%H:%M:%S}] Analysis completed in {self.last_duration_ms:.0f}ms")
            return description

    def get_statistics(self) -> dict:
        """
        Get request statistics

        Returns:
            dict: Counters and timing of detection calls
        """
        return {
            'max_concurrent_requests': self.max_concurrent_requests,
            'in_flight': self.in_flight,
            'peak_in_flight': self.peak_in_flight,
            'total_requests': self.total_requests,
            'last_duration_ms': self.last_duration_ms,
            'last_completed_at': self.last_completed_at.isoformat() if self.last_completed_at else None
        }
