"""
Client for the external workflow validation service.

The service inspects workflow definitions for security, compliance and
best-practice issues. Calls are slow (tens of seconds) so callers should run
them off the hot path.
"""

import time

import backoff
import httpx

from cadence.config import ValidationServiceConfig, get_config
from cadence.core import metrics
from cadence.core.datetime_utils import elapsed_ms
from cadence.core.exceptions import ValidationServiceError
from cadence.core.logging import get_logger
from cadence.schemas.workflow import ValidationReport, Workflow

logger = get_logger(__name__)


def _is_client_error(e: Exception) -> bool:
    """4xx responses will not improve on retry."""
    return isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500


class ValidationServiceClient:
    """Async HTTP client for the validation service."""

    def __init__(
        self,
        config: ValidationServiceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_factor: float = 1.0,
    ) -> None:
        """
        Initialize client.

        Args:
            config: Service settings (defaults to the application config)
            transport: Optional httpx transport, used to stub the service
            backoff_factor: Scale for the exponential wait between tries
        """
        config = config or get_config().validation_service
        self.url = config.url
        self.timeout = config.timeout
        self.max_tries = config.max_tries
        self._api_key = config.api_key
        self._transport = transport
        self._backoff_factor = backoff_factor

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
        )

    async def _post(self, payload: dict) -> dict:
        send = backoff.on_exception(
            backoff.expo,
            (httpx.TransportError, httpx.HTTPStatusError),
            max_tries=self.max_tries,
            giveup=_is_client_error,
            factor=self._backoff_factor,
        )(self._post_once)
        return await send(payload)

    async def _post_once(self, payload: dict) -> dict:
        async with self._client() as client:
            resp = await client.post(self.url, json=payload)
            resp.raise_for_status()
            return resp.json()

    async def validate_workflow(self, workflow: Workflow) -> ValidationReport:
        """
        Validate a workflow definition remotely.

        Raises:
            ValidationServiceError: If the service is unreachable, keeps
                failing after retries, or returns an unusable body
        """
        started = time.monotonic()

        logger.info(
            "validation_service_call",
            workflow_id=workflow.id,
            customer_id=workflow.customer_id,
            service_url=self.url,
        )

        try:
            body = await self._post(workflow.model_dump(mode="json"))
            duration = elapsed_ms(started, time.monotonic())
            report = ValidationReport(
                valid=bool(body.get("valid", False)),
                errors=body.get("errors") or [],
                warnings=body.get("warnings") or [],
                validation_duration_ms=body.get("validation_duration_ms", duration),
            )
        except Exception as e:
            duration = elapsed_ms(started, time.monotonic())
            logger.bind(error=str(e)).error(
                "validation_service_failed",
                workflow_id=workflow.id,
                customer_id=workflow.customer_id,
                duration_ms=duration,
            )
            metrics.validation_service_calls_total.labels(outcome="error").inc()
            raise ValidationServiceError(f"Validation service error: {e}") from e

        logger.info(
            "validation_service_completed",
            workflow_id=workflow.id,
            customer_id=workflow.customer_id,
            duration_ms=duration,
            valid=report.valid,
        )
        metrics.validation_service_calls_total.labels(
            outcome="valid" if report.valid else "invalid"
        ).inc()
        return report

    async def health_check(self) -> bool:
        """Return True if the service answers its health endpoint."""
        health_url = httpx.URL(self.url).join("health")
        try:
            async with self._client() as client:
                resp = await client.get(health_url)
        except httpx.HTTPError as e:
            logger.bind(error=str(e)).error("validation_service_unhealthy")
            return False

        healthy = resp.status_code == 200
        if not healthy:
            logger.bind(status=resp.status_code).warning("validation_service_unhealthy")
        return healthy
