# Copyright 2021-present Kensho Technologies, LLC.
from typing import Any, Dict, List, Optional


class GraphQLAdminError(Exception):
    """Generic error when adapting a GraphQL API into admin resources."""


class TransportError(GraphQLAdminError):
    """Exception raised when the GraphQL endpoint could not be reached or answered unusably.

    This covers network failures, non-2xx HTTP responses that carry no GraphQL error payload,
    and response bodies that are not valid JSON.
    """


class RemoteGraphQLError(GraphQLAdminError):
    """Exception raised when the endpoint responded with one or more GraphQL errors."""

    errors: List[Dict[str, Any]]

    def __init__(self, errors: List[Dict[str, Any]]) -> None:
        """Record the original error payloads, and build a message from all their messages."""
        self.errors = list(errors)
        super().__init__(
            "GraphQL request error: "
            + ", ".join(str(error.get("message", error)) for error in self.errors)
        )


class InvalidDocumentError(GraphQLAdminError):
    """Exception raised when a resource's sample document is malformed or non-conforming.

    For example:
    - the document does not parse;
    - a fragment spread references an unknown fragment, or fragments spread each other in a cycle;
    - the document does not contain exactly one operation with exactly one top-level field.
    """


class SchemaError(GraphQLAdminError):
    """Exception raised when the introspection response is not a well-formed schema."""


class SchemaMismatchError(GraphQLAdminError):
    """Exception raised when a sample document selects fields the live schema does not have.

    This indicates drift between the resource configuration and the remote API.
    """


class CoercionError(GraphQLAdminError):
    """Exception raised when a filter or mutation value cannot become the field's native type."""


class NotEditableError(GraphQLAdminError):
    """Exception raised when a mutation is invoked on a resource without a builder for it."""


class ResourceNotInitializedError(GraphQLAdminError):
    """Exception raised when a resource is used before its connection was initialized."""

    def __init__(self, resource_id: Optional[str] = None) -> None:
        """Name the offending resource, if known."""
        message = "Resource is not initialized"
        if resource_id is not None:
            message = f'Resource "{resource_id}" is not initialized'
        super().__init__(message)
