# meter_app/services/recognition_client.py

from __future__ import annotations

import asyncio
import logging
import math
from typing import Iterable, Optional

import httpx

from meter_app.core.config import settings
from meter_app.models.recognition import (
    RecognitionOutcome,
    Recognized,
    RemoteFailure,
    TimedOut,
    Unreadable,
)

logger = logging.getLogger(__name__)

LOG_BODY_LIMIT = 500


def parse_reading(raw: str) -> Optional[float]:
    """Float value of an OCR ``result`` string, or None if it isn't a finite number."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


class RecognitionClient:
    """
    Single-shot client for the remote meter OCR endpoint.

    Exactly one POST per call, never retried. The whole exchange is bounded by
    ``timeout`` seconds; when it elapses the request is cancelled and a
    ``TimedOut`` outcome is returned instead of raising.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 60.0,
        timeout_markers: Optional[Iterable[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.timeout = float(timeout)
        self.timeout_markers = [m.lower() for m in (timeout_markers or []) if m]
        self._transport = transport

    def has_timeout_marker(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(marker in lowered for marker in self.timeout_markers)

    async def _post(self, image_bytes: bytes, filename: str, content_type: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        ) as client:
            return await client.post(
                self.endpoint,
                files={"file": (filename, image_bytes, content_type)},
            )

    async def recognize(
        self,
        image_bytes: bytes,
        filename: str = "meter.jpg",
        content_type: str = "image/jpeg",
    ) -> RecognitionOutcome:
        loop = asyncio.get_running_loop()
        started = loop.time()
        logger.info(f"Calling OCR endpoint {self.endpoint} ({len(image_bytes)} bytes, timeout={self.timeout}s)")

        try:
            response = await asyncio.wait_for(
                self._post(image_bytes, filename, content_type),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            elapsed = loop.time() - started
            logger.warning(f"OCR call timed out after {elapsed:.2f}s")
            return TimedOut(elapsed=elapsed)
        except httpx.HTTPError as e:
            message = f"{type(e).__name__}: {e}"
            logger.error(f"OCR transport error: {message}")
            return RemoteFailure(status_code=None, body=message, server_timeout=self.has_timeout_marker(message))

        logger.info(f"OCR responded {response.status_code} in {loop.time() - started:.2f}s")
        return self.interpret(response)

    def interpret(self, response: httpx.Response) -> RecognitionOutcome:
        body = response.text

        if not response.is_success:
            logger.error(f"OCR error response {response.status_code}: {body[:LOG_BODY_LIMIT]}")
            return RemoteFailure(
                status_code=response.status_code,
                body=body,
                server_timeout=self.has_timeout_marker(body),
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            logger.warning(f"Non-JSON OCR response ({content_type or 'no content-type'}): {body[:LOG_BODY_LIMIT]}")
            return Unreadable(raw_body=body)

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"Invalid JSON from OCR: {body[:LOG_BODY_LIMIT]}")
            return Unreadable(raw_body=body)

        if not isinstance(payload, dict) or payload.get("success") is not True:
            logger.info(f"OCR could not read the meter: {body[:LOG_BODY_LIMIT]}")
            return Unreadable(raw_body=body)

        raw = payload.get("result")
        if raw is None or isinstance(raw, bool):
            return Unreadable(raw_body=body)

        raw_text = str(raw).strip()
        value = parse_reading(raw_text) if raw_text else None
        if value is None:
            logger.warning(f"OCR result is not numeric: {raw_text!r}")
            return Unreadable(raw_body=body)

        return Recognized(value=value, raw=raw_text)


_client: Optional[RecognitionClient] = None


def get_recognition_client() -> RecognitionClient:
    global _client
    if _client is None:
        _client = RecognitionClient(
            endpoint=settings.OCR_API_URL,
            timeout=settings.OCR_TIMEOUT_SECONDS,
            timeout_markers=settings.get_ocr_timeout_markers(),
        )
    return _client
