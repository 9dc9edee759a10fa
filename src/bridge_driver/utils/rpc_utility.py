import itertools
import json
import logging
from typing import Any

import httpx

from ..constants import DEFAULT_REQUEST_TIMEOUT
from ..errors import BridgeError

logger = logging.getLogger(__name__)


class JsonRpcUtility:
    """JSON-RPC 2.0 over HTTP POST.

    One ``httpx.AsyncClient`` is created per instance and reused for every
    call; ``aclose`` releases it. Nothing is retried.
    """

    error_class: type[BridgeError] = BridgeError

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def _rpc_error(self, message: str, error: dict[str, Any] | None = None) -> BridgeError:
        return self.error_class(message)

    async def _post(self, method: str, params: Any) -> Any:
        payload = {
            "id": next(self._ids),
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
        }
        logger.debug(f"Posting to {self.endpoint}: {json.dumps(payload)}")
        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise self.error_class(f"{method} request failed") from e

        # Error bodies may come with a non-2xx status
        try:
            body = response.json()
        except ValueError as e:
            if response.is_error:
                raise self.error_class(f"{method} failed with HTTP {response.status_code}") from e
            raise self.error_class(f"{method} returned a non-JSON response") from e

        if not isinstance(body, dict):
            raise self.error_class(f"{method} returned an unexpected response: {body!r}")
        if body.get("error") is not None:
            raise self._rpc_error(f"{method} failed: {body['error']}", body["error"])
        if response.is_error:
            raise self.error_class(f"{method} failed with HTTP {response.status_code}")
        if "result" not in body:
            raise self.error_class(f"{method} response has neither result nor error")
        return body["result"]
