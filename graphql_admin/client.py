# Copyright 2021-present Kensho Technologies, LLC.
"""A minimal asynchronous GraphQL-over-HTTP client."""
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .exceptions import TransportError


logger = logging.getLogger(__name__)


class GraphQLClient:
    """Sends GraphQL requests to a single endpoint.

    Usage:
        client = GraphQLClient("http://localhost:3000/graphql", timeout=10.0)
        body = await client.request("query ($ID: ID!) { thing(ID: $ID) { name } }", {"ID": 1})
        await client.aclose()
    """

    def __init__(self, endpoint: str, **client_options: Any) -> None:
        """Create a client for the given endpoint URL.

        Args:
            endpoint: URL to POST GraphQL requests to
            client_options: keyword arguments for the underlying httpx.AsyncClient, such as
                            timeout, verify (TLS settings), limits (keep-alive and connection
                            pooling) or transport
        """
        self.endpoint = endpoint
        self.client_options = client_options
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(**self.client_options)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        query: str,
        variables: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send a GraphQL request and return the decoded response body.

        Args:
            query: GraphQL document text
            variables: values of the variables of the document
            headers: additional HTTP headers for this request

        Returns:
            response body, a dict with "data" and possibly "errors". A response with an error
            status is returned as well if its body reports GraphQL errors, so that the caller
            can surface them.

        Raises:
            TransportError if the endpoint cannot be reached, answers with an error status and
            no GraphQL errors, or answers with a body that is not a JSON object
        """
        client = self._get_client()
        body = {"query": query, "variables": dict(variables) if variables is not None else None}

        logger.debug("Sending GraphQL request to %s.", self.endpoint)
        try:
            response = await client.post(self.endpoint, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.endpoint} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error and not (isinstance(payload, dict) and payload.get("errors")):
            raise TransportError(
                f"Request to {self.endpoint} failed with HTTP status {response.status_code}: "
                f"{response.text[:200]}"
            )
        if not isinstance(payload, dict):
            raise TransportError(
                f"Response from {self.endpoint} is not a JSON object: {response.text[:200]}"
            )
        return payload
