# Copyright 2021-present Kensho Technologies, LLC.
"""Connect to a GraphQL API and turn configured resources into initialized resource adapters."""
from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence

from .ast_manipulation import normalize_document
from .client import GraphQLClient
from .exceptions import RemoteGraphQLError, ResourceNotInitializedError
from .property_inference import infer_properties
from .resource import GraphQLResource, GraphQLResourceAdapter
from .schema import SchemaModel, fetch_schema
from .typedefs import ErrorObserver, GraphQLErrorPayloads, HeadersFactory


logger = logging.getLogger(__name__)

# Identifier passed to find_one builders to obtain each resource's sample document. The builders
# only produce the document, so the value is never sent anywhere.
_SAMPLE_RECORD_ID = 42


@dataclass(frozen=True)
class ConnectionOptions:
    """Options of a GraphQL connection.

    Use headers to set an API key, etc. and client_options to tune the HTTP client, e.g.
    {"timeout": 10.0, "verify": False, "limits": httpx.Limits(max_keepalive_connections=5)}.
    """

    # Display name of the connection in the host admin panel.
    name: str = "graphql"

    url: str = "http://localhost:3000/graphql"

    # Called before every request, to produce extra HTTP headers.
    headers: Optional[HeadersFactory] = None

    # Keyword arguments for the underlying httpx.AsyncClient.
    client_options: Mapping[str, Any] = field(default_factory=dict)


class GraphQLConnection:
    """Connects to a GraphQL API, and initializes configured resources from the remote schema.

    Usage:
        connection = GraphQLConnection([thing_resource], ConnectionOptions(url=...))
        adapters = await connection.init()
        things = await adapters["Thing"].find([], FindOptions(limit=10))
        await connection.aclose()
    """

    def __init__(
        self,
        resources: Sequence[GraphQLResource],
        options: Optional[ConnectionOptions] = None,
        on_error: Optional[ErrorObserver] = None,
    ) -> None:
        """Create a connection for the given resources. No request is sent before init().

        Raises:
            ValueError if two resources share the same resource id
        """
        resource_ids = [resource.resource_id for resource in resources]
        duplicate_ids = sorted(
            {resource_id for resource_id in resource_ids if resource_ids.count(resource_id) > 1}
        )
        if duplicate_ids:
            raise ValueError(f"Resource ids must be unique, but found duplicates: {duplicate_ids}")

        options = options or ConnectionOptions()
        self.resources = list(resources)
        self.name = options.name
        self.client = GraphQLClient(options.url, **options.client_options)
        self.schema_model: Optional[SchemaModel] = None
        self._headers = options.headers
        self._on_error = on_error
        self._adapters: Dict[str, GraphQLResourceAdapter] = {}

    async def __aenter__(self) -> "GraphQLConnection":
        """Initialize the connection when entering an async context, closing it if that fails."""
        try:
            await self.init()
        except BaseException:
            await self.aclose()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        """Close the transport when leaving an async context."""
        await self.aclose()

    @property
    def adapters(self) -> Dict[str, GraphQLResourceAdapter]:
        """Return the initialized resource adapters, by resource id."""
        return dict(self._adapters)

    @property
    def r(self) -> Dict[str, GraphQLResourceAdapter]:
        """Shorthand for adapters, e.g. connection.r["Thing"]."""
        return self.adapters

    def get_adapter(self, resource_id: str) -> GraphQLResourceAdapter:
        """Return the adapter of the given resource, which must have been initialized."""
        adapter = self._adapters.get(resource_id)
        if adapter is None:
            raise ResourceNotInitializedError(resource_id)
        return adapter

    async def init(self) -> Dict[str, GraphQLResourceAdapter]:
        """Fetch the remote schema once, and infer the properties of every resource from it.

        Adapters are published only if every resource initializes: on any error, no resource
        of the connection is usable.

        Returns:
            resource id -> initialized resource adapter

        Raises:
            - TransportError, RemoteGraphQLError or SchemaError if the schema cannot be fetched
            - InvalidDocumentError if a sample document is malformed or non-conforming
            - SchemaMismatchError if a sample document does not match the remote schema
        """
        self._adapters = {}
        schema_model = await self.fetch_schema()

        with self.reporting():
            adapters = {}
            for resource in self.resources:
                adapters[resource.resource_id] = self._initialize_resource(resource, schema_model)

        self.schema_model = schema_model
        self._adapters = adapters
        return self.adapters

    async def fetch_schema(self) -> SchemaModel:
        """Run an introspection query against the endpoint, and model the remote schema."""
        with self.reporting():
            return await fetch_schema(self._send)

    def _initialize_resource(
        self, resource: GraphQLResource, schema_model: SchemaModel
    ) -> GraphQLResourceAdapter:
        """Walk the resource's sample document, and bind the inferred metadata to an adapter."""
        sample_mapping = resource.find_one(_SAMPLE_RECORD_ID)
        document_ast = normalize_document(sample_mapping.query)
        properties, type_map = infer_properties(document_ast, schema_model, resource)
        logger.info(
            "Initialized resource %(resource)s with properties %(properties)s.",
            {
                "resource": resource.resource_id,
                "properties": [prop.path for prop in properties],
            },
        )
        return GraphQLResourceAdapter(resource, self, properties, type_map)

    async def request(
        self, document: str, variables: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """Send a GraphQL request through the connection, and return the "data" of the response.

        Raises:
            - TransportError if the endpoint cannot be reached or answers unusably
            - RemoteGraphQLError if the response has a non-empty "errors" list, even if it
              also has data
        """
        with self.reporting():
            return await self._send(document, variables)

    async def _send(
        self, document: str, variables: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        """Send a GraphQL request and return its data, raising on errors without reporting."""
        headers = self._headers() if self._headers is not None else None
        response = await self.client.request(document, variables, headers)
        errors = response.get("errors")
        if errors:
            raise RemoteGraphQLError(errors)
        return response.get("data") or {}

    @contextmanager
    def reporting(self) -> Iterator[None]:
        """Report any error raised within the block to the error observer, then re-raise it."""
        try:
            yield
        except Exception as e:
            self._report(e)
            raise

    def _report(self, error: Exception) -> None:
        """Invoke the error observer, if any, with the error and its GraphQL payloads."""
        original_errors: Optional[GraphQLErrorPayloads] = None
        if isinstance(error, RemoteGraphQLError):
            original_errors = error.errors
        if self._on_error is not None:
            self._on_error(error, original_errors)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
