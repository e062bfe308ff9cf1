"""
HTTP client for a remote visit service.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError as PydanticValidationError

from dispatch.core.config import Settings
from dispatch.core.exceptions import ExternalServiceError
from dispatch.core.logger import setup_logger
from dispatch.interfaces.visit_service import IVisitService
from dispatch.models.visit import JobVisit, VisitCreate

logger = setup_logger(__name__)


class HttpVisitService(IVisitService):
    """Creates visits through ``POST {VISIT_SERVICE_URL}/visits``."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        if not settings.VISIT_SERVICE_URL:
            raise ValueError("VISIT_SERVICE_URL must be set for the HTTP visit service")
        self._base_url = settings.VISIT_SERVICE_URL.rstrip("/")
        self._timeout = settings.VISIT_SERVICE_TIMEOUT_SECONDS
        self._transport = transport

    async def create_visit(self, data: VisitCreate) -> JobVisit:
        payload = data.model_dump(mode="json")
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/visits", json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning(f"Visit service timed out for occurrence {data.occurrence_id}")
            raise ExternalServiceError(
                "Visit service timed out; the operation can be retried",
                details={"occurrence_id": str(data.occurrence_id)},
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                f"Visit service returned {exc.response.status_code}; the operation can be retried",
                details={"occurrence_id": str(data.occurrence_id), "body": exc.response.text},
            ) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(
                f"Visit service unreachable: {exc}; the operation can be retried",
                details={"occurrence_id": str(data.occurrence_id)},
            ) from exc

        # The remote service may answer with only the id; fill the rest from the request
        try:
            body = response.json()
            if not isinstance(body, dict):
                raise ValueError(f"expected a JSON object, got {type(body).__name__}")
            return JobVisit.model_validate({**payload, **body})
        except (ValueError, PydanticValidationError) as exc:
            logger.warning(f"Visit service sent an unusable response for occurrence {data.occurrence_id}")
            raise ExternalServiceError(
                f"Visit service returned an unusable response: {exc}",
                details={
                    "occurrence_id": str(data.occurrence_id),
                    "status_code": response.status_code,
                    "body": response.text,
                },
            ) from exc
