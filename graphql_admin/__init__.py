# Copyright 2021-present Kensho Technologies, LLC.
"""Commonly-used functions and data types from this package."""
from .client import GraphQLClient  # noqa
from .connection import ConnectionOptions, GraphQLConnection  # noqa
from .exceptions import (  # noqa
    CoercionError,
    GraphQLAdminError,
    InvalidDocumentError,
    NotEditableError,
    RemoteGraphQLError,
    ResourceNotInitializedError,
    SchemaError,
    SchemaMismatchError,
    TransportError,
)
from .filters import (  # noqa
    FieldFilter,
    FilterElement,
    FilterOperation,
    FilterRange,
    coerce_params,
    map_filter,
)
from .params import deflate_params, deflate_reference, inflate_params  # noqa
from .properties import GraphQLProperty, PropertyType, iter_properties  # noqa
from .property_inference import infer_properties  # noqa
from .resource import (  # noqa
    FindOptions,
    GraphQLResource,
    GraphQLResourceAdapter,
    QueryMapping,
    SortOptions,
)
from .schema import SchemaModel, build_schema_model  # noqa


__package_name__ = "graphql-admin"
__version__ = "1.0.0"
