# Copyright 2021-present Kensho Technologies, LLC.
from typing import Any, List, NamedTuple

from graphql import GraphQLList, GraphQLNamedType, GraphQLNonNull, GraphQLType


class UnwrappedType(NamedTuple):
    """A named GraphQL type, with what its list and non-null wrappers said about the field."""

    named_type: GraphQLNamedType
    is_array: bool
    is_required: bool


def strip_non_null_and_list_from_type(graphql_type: GraphQLType) -> Any:
    """Return the GraphQL type stripped of its GraphQLNonNull and GraphQLList annotations."""
    while isinstance(graphql_type, (GraphQLNonNull, GraphQLList)):
        graphql_type = graphql_type.of_type
    return graphql_type


def unwrap_type(graphql_type: GraphQLType) -> UnwrappedType:
    """Strip the wrappers of a field type, recording list-ness and required-ness.

    Required-ness tracks the outer wrapper only: a non-null wrapper counts if no list wrapper
    was seen before it. Hence "[String!]!" is an array and required, while "[String!]" is an
    array and not required.
    """
    is_array = False
    is_required = False
    while isinstance(graphql_type, (GraphQLNonNull, GraphQLList)):
        if isinstance(graphql_type, GraphQLList):
            is_array = True
        elif not is_array:
            is_required = True
        graphql_type = graphql_type.of_type
    return UnwrappedType(graphql_type, is_array, is_required)


def split_path(path: str) -> List[str]:
    """Split a dotted property path into its segments."""
    return path.split(".")


def join_path(*segments: str) -> str:
    """Join path segments into a dotted property path."""
    return ".".join(segments)
