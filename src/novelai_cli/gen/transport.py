from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import httpx

from .errors import ApiError, GenerationCancelled, RequestTimeoutError, TransportError
from .types import GenerationRequest

if TYPE_CHECKING:
    from .config import GenerationConfig
    from .repeat import CancelToken

logger = logging.getLogger(__name__)


class Transport:
    """Performs exactly one authenticated POST per request.

    A caller-supplied ``httpx.Client`` is used as-is and left open; otherwise a
    short-lived client is created for each call.
    """

    def __init__(self, config: "GenerationConfig", client: Optional[httpx.Client] = None):
        self._config = config
        self._client = client

    @property
    def config(self) -> "GenerationConfig":
        return self._config

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.auth_token}",
        }

    def send(self, request: GenerationRequest, cancel: Optional["CancelToken"] = None) -> bytes:
        """POST the request and return the raw response body.

        Raises:
            GenerationCancelled: If ``cancel`` fired before dispatch.
            ApiError: On a non-2xx status, with the body text verbatim.
            RequestTimeoutError: If the call exceeds ``timeout_sec``.
            TransportError: On any other network failure.
        """
        if cancel is not None and cancel.cancelled:
            raise GenerationCancelled("Generation cancelled before the request was sent")

        timeout = self._config.timeout_sec
        logger.info("POST %s model=%s", self._config.api_endpoint, request.model)
        try:
            if self._client is not None:
                response = self._post(self._client, request, timeout)
            else:
                with httpx.Client() as client:
                    response = self._post(client, request, timeout)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(timeout) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self._config.api_endpoint} failed: {e}") from e

        if not response.is_success:
            raise ApiError(response.status_code, response.text)

        logger.debug("Received %d bytes (status %d)", len(response.content), response.status_code)
        return response.content

    def _post(self, client: httpx.Client, request: GenerationRequest, timeout: Optional[float]) -> httpx.Response:
        return client.post(
            self._config.api_endpoint,
            json=request.to_wire(),
            headers=self.headers(),
            timeout=timeout,
        )
