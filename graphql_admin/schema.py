# Copyright 2021-present Kensho Technologies, LLC.
"""Client-side model of the remote schema, built from an introspection query result."""
from dataclasses import dataclass
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from graphql import (
    GraphQLEnumType,
    GraphQLError,
    GraphQLNamedType,
    GraphQLSchema,
    GraphQLType,
    TypeKind,
    build_client_schema,
    get_introspection_query,
    is_enum_type,
    is_input_object_type,
    is_interface_type,
    is_list_type,
    is_non_null_type,
    is_object_type,
    is_scalar_type,
    is_union_type,
)

from .exceptions import SchemaError


logger = logging.getLogger(__name__)


# Descriptions are of no use to the property inference, so they are not fetched.
INTROSPECTION_QUERY = get_introspection_query(descriptions=False)

RequestFunction = Callable[[str], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class SchemaModel:
    """Read-only view over the schema of the remote GraphQL API."""

    schema: GraphQLSchema

    def get_type(self, type_name: str) -> Optional[GraphQLNamedType]:
        """Return the named type with the given name, or None if the schema has no such type."""
        return self.schema.get_type(type_name)

    def get_type_kind(self, type_name: str) -> TypeKind:
        """Return the introspection kind (SCALAR, ENUM, OBJECT, ...) of the named type."""
        graphql_type = self.get_type(type_name)
        if graphql_type is None:
            raise KeyError(f'Type "{type_name}" does not exist in the schema.')
        return get_type_kind(graphql_type)

    def get_enum_values(self, type_name: str) -> List[str]:
        """Return the legal values of the enum with the given name."""
        graphql_type = self.get_type(type_name)
        if not isinstance(graphql_type, GraphQLEnumType):
            raise KeyError(f'Type "{type_name}" is not an enum type in the schema.')
        return get_enum_value_names(graphql_type)

    def is_root_type(self, graphql_type: Optional[GraphQLType]) -> bool:
        """Return True if the type is the query or mutation root type of the schema."""
        if graphql_type is None:
            return False
        return graphql_type in (self.schema.query_type, self.schema.mutation_type)


def get_type_kind(graphql_type: GraphQLType) -> TypeKind:
    """Return the introspection kind of the given type."""
    if is_scalar_type(graphql_type):
        return TypeKind.SCALAR
    elif is_object_type(graphql_type):
        return TypeKind.OBJECT
    elif is_interface_type(graphql_type):
        return TypeKind.INTERFACE
    elif is_union_type(graphql_type):
        return TypeKind.UNION
    elif is_enum_type(graphql_type):
        return TypeKind.ENUM
    elif is_input_object_type(graphql_type):
        return TypeKind.INPUT_OBJECT
    elif is_list_type(graphql_type):
        return TypeKind.LIST
    elif is_non_null_type(graphql_type):
        return TypeKind.NON_NULL
    raise AssertionError(f"Unreachable code reached: unknown kind of type {graphql_type}.")


def get_enum_value_names(enum_type: GraphQLEnumType) -> List[str]:
    """Return the names of the values of an enum type, in schema order."""
    return list(enum_type.values.keys())


def build_schema_model(introspection_result: Any) -> SchemaModel:
    """Build a SchemaModel from the "data" part of an introspection query response.

    Raises:
        SchemaError if the result is not a well-formed introspection result
    """
    if not isinstance(introspection_result, dict) or not isinstance(
        introspection_result.get("__schema"), dict
    ):
        raise SchemaError(
            "Invalid or incomplete introspection result. Ensure that the endpoint supports "
            "introspection and that the response contains a '__schema' object. "
            f"Received: {introspection_result!r:.200}"
        )

    try:
        schema = build_client_schema(introspection_result)
    except (GraphQLError, TypeError, KeyError) as e:
        raise SchemaError(f"Cannot build a schema from the introspection result: {e}") from e

    return SchemaModel(schema)


async def fetch_schema(request: RequestFunction) -> SchemaModel:
    """Run the introspection query through the given request function and model the result.

    Args:
        request: coroutine function sending a GraphQL query and returning the response data,
                 raising TransportError or RemoteGraphQLError on failure

    Returns:
        SchemaModel of the remote schema
    """
    introspection_result = await request(INTROSPECTION_QUERY)
    schema_model = build_schema_model(introspection_result)
    logger.debug("Fetched schema with %d types.", len(schema_model.schema.type_map))
    return schema_model
