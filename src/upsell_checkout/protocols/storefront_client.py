"""GraphQL client for the storefront API.

Sends queries and mutations to a single GraphQL endpoint and maps
transport, HTTP, and top-level GraphQL failures onto
:class:`~upsell_checkout.errors.StorefrontClientError`.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from upsell_checkout.errors import StorefrontClientError

logger = structlog.get_logger(__name__)

_DEFAULT_TIMEOUT = 15.0
_ACCESS_TOKEN_HEADER = "X-Shopify-Storefront-Access-Token"


class StorefrontClient:
    """Async HTTP client for a storefront GraphQL endpoint.

    Requests are not retried: a failed call surfaces immediately so the
    caller can report it.
    """

    def __init__(
        self,
        endpoint: str,
        access_token: str = "",
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-initialise the shared ``httpx.AsyncClient``."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._access_token:
                headers[_ACCESS_TOKEN_HEADER] = self._access_token
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Shut down the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # GraphQL
    # ------------------------------------------------------------------

    async def query(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL document and return the full response body.

        Parameters
        ----------
        query:
            The GraphQL query or mutation document.
        variables:
            Variables referenced by the document.
        operation_name:
            Name of the operation to run when the document has several.

        Returns
        -------
        dict
            The decoded JSON body; ``body["data"]`` holds the result.

        Raises
        ------
        StorefrontClientError
            On timeouts, connection errors, non-2xx responses, undecodable
            bodies, or a non-empty top-level ``errors`` array.
        """
        client = await self._get_client()
        payload: dict[str, Any] = {"query": query, "variables": variables or {}}
        if operation_name:
            payload["operationName"] = operation_name

        try:
            response = await client.post(self._endpoint, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            logger.warning(
                "storefront_request_timeout",
                endpoint=self._endpoint,
                operation=operation_name,
            )
            raise StorefrontClientError(
                f"Storefront request timed out: {operation_name or 'anonymous'}"
            ) from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "storefront_request_http_error",
                endpoint=self._endpoint,
                operation=operation_name,
                status=exc.response.status_code,
            )
            raise StorefrontClientError(
                f"Storefront request failed ({exc.response.status_code}): {exc.response.text}"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning(
                "storefront_request_error",
                endpoint=self._endpoint,
                operation=operation_name,
                error=str(exc),
            )
            raise StorefrontClientError(f"Storefront request failed: {exc}") from exc
        except ValueError as exc:
            raise StorefrontClientError("Storefront returned a non-JSON body") from exc

        if not isinstance(body, dict):
            raise StorefrontClientError("Storefront returned an unexpected body")

        errors = body.get("errors")
        if errors:
            messages = [err.get("message", "unknown error") for err in errors]
            logger.warning(
                "storefront_graphql_errors",
                operation=operation_name,
                errors=messages,
            )
            raise StorefrontClientError(f"GraphQL errors: {'; '.join(messages)}")

        return body
